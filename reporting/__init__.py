"""Query building, search models and service clients for device and deployment reporting."""

__version__ = "0.1.0"