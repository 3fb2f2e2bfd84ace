"""Web server for managing a Linux host and its Docker containers."""

__version__ = "0.1.0"