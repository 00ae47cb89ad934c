"""Extract compact polyline and polygon maps from 2-D laser range scans."""

__version__ = "0.1.0"
