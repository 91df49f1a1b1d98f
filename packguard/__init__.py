"""Packguard: package boundary enforcement for Ruby applications."""

__version__ = "0.4.0"
