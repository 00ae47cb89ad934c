"""Scan and map persistence."""
