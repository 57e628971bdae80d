"""Testing utilities module."""
