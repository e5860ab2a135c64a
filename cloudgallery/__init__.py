"""cloudgallery - one gallery over many cloud storage accounts."""

__version__ = "0.1.0"
