"""Deal discovery, route planning and journey tracking engine."""

__version__ = "0.1.0"
