"""Pack loading, trust and sandbox enforcement."""
