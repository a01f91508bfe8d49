"""Field verification rate engine: prices cases for field workers."""

__version__ = "0.1.0"
