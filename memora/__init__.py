"""
Memora - spaced-repetition review core.

Schedules flashcard reviews with an FSRS memory model and tracks concept
mastery with Bayesian Knowledge Tracing.
"""

__version__ = "0.1.0"
