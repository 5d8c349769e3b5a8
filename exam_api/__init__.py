"""Timed exam sessions, scoring and persistence."""
