"""HTTP API for the memora review core."""
