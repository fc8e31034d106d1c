"""Mail contact migration between directory services."""

__version__ = "1.0.0"
