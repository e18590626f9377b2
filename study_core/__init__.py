"""Spaced-repetition scheduling core for course study plans."""
