"""A small threaded HTTP server library with sessions, cookies, uploads and static files."""

__version__ = "1.8.6"