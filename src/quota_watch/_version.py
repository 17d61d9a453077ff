"""Version information for quota-watch."""

__version__ = "1.0.0"
