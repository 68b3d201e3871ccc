"""Web transport."""
