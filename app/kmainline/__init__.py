"""kmainline - Ubuntu mainline kernel catalog and download cache."""

__version__ = "0.1.0"
