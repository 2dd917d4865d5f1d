"""Package trust scoring and vulnerability scanning."""

__version__ = "0.1.0"
