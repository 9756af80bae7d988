"""Coffee-leaf disease detection submission pipeline."""

__version__ = "0.1.0"
