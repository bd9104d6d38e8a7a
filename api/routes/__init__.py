"""Route groups mounted under /api by api/main.py."""
