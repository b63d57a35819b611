"""Country margin waterfall engine."""

__version__ = "0.1.0"
