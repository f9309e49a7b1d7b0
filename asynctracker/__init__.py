"""Task tracker services with JWT-protected HTTP APIs, SQLite storage and in-process messaging."""

__version__ = "0.1.0"