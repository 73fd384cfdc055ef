"""Differential verification of catalog backends during migration."""

__version__ = "1.0.0"
