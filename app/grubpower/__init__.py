"""grubpower - Keep laptop USB ports powered from a minimal boot environment."""

__version__ = "1.2.0"
