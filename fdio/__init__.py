"""fdio: discovers Flogo contributions published on GitHub."""

__version__ = "0.1.0"
