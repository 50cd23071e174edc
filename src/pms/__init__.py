"""Property management system backend."""

__version__ = "0.1.0"
