"""Utility functions for clinicsplit."""
