"""Command line interface for imgpress."""
