"""Media and filesystem helpers."""
