"""Memora command-line interface."""
