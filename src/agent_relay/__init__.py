"""Task dispatch and retrieval-augmented answers over pluggable backends."""

__version__ = "0.1.0"
