"""Blood Connect notification dispatch worker."""

__version__ = "1.0.0"
