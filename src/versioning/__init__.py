"""Version, constraint and revision handling."""
