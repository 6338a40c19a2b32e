"""Core engine: resolution, state tracking, locking and convergence."""
