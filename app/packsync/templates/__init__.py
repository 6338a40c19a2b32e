"""Template rendering, section composition and drift validation."""
