"""dreamwatch: supervise an autonomous coding agent overnight."""

__version__ = "0.1.0"

__all__ = ["__version__"]
