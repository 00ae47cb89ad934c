"""Vertex sequences, composite maps and low-level geometric helpers."""
