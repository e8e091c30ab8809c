"""Command-line interface for clinicsplit."""
