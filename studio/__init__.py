"""Style transfer studio service."""
