"""NSX-T upgrade coordinator."""

__version__ = "0.1.0"
