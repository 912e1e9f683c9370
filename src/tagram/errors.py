"""Exception types raised by tagram."""

from __future__ import annotations


class TagramError(Exception):
    """Base class for all tagram errors."""


class FramingError(TagramError):
    """A receive or reply buffer violates its sizing contract."""


class ConfigError(TagramError):
    """Configuration file content is invalid."""
