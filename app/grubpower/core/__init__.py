"""Core infrastructure: paths, theming and logging."""
