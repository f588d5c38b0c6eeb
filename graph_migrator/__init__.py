"""Multi-file dependency graph construction for Python projects."""

__version__ = "0.1.0"
