"""Calendar activity-feed bridge and HTTP request wrapper."""

__version__ = "0.1.0"
