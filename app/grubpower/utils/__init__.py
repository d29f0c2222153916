"""Utility helpers shared across grubpower modules."""
