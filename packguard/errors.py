"""Exception hierarchy shared across packguard modules."""

from __future__ import annotations


class PackguardError(Exception):
    """Base class for all errors raised by packguard."""


class NodeTypeError(PackguardError, TypeError):
    """A node accessor was called on a node kind that does not support it."""


class ParseError(PackguardError):
    """A source file could not be turned into a syntax tree."""

    def __init__(self, file: str, message: str) -> None:
        super().__init__(f"{file}: {message}")
        self.file = file
        self.message = message


class ConstantResolutionError(PackguardError):
    """Constant locations are ambiguous or the load paths are misconfigured."""


class ConfigurationError(PackguardError):
    """The packguard configuration file is unreadable or invalid."""


class ManifestError(PackguardError):
    """A package manifest could not be loaded."""
