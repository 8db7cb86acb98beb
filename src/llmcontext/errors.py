"""
Exceptions raised by llmcontext.

Only fatal preconditions are exceptions. Problems with a single entry are
recorded as classifications by the walker and never raised.
"""


class ContextGenError(Exception):
    """Base exception for llmcontext errors."""


class InvalidRootError(ContextGenError):
    """Raised when the root directory is missing or not a directory."""


class ConfigFileError(ContextGenError):
    """Raised when the extra-patterns file cannot be used."""


class OutputError(ContextGenError):
    """Raised when the output directory cannot be created or written."""
