"""Command line interface for TSL."""
