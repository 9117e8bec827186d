"""
Error taxonomy for the loader.

Parse failures stay inside a worker and are counted against its error budget.
Source and configuration errors are raised before any worker starts.
"""


class DelimLoadError(Exception):
    """Base class for every error raised by delimload."""


class ConfigurationError(DelimLoadError):
    """Invalid or missing options; fatal to the whole run."""


class SchemaError(ConfigurationError):
    """The table declaration could not be parsed."""


class SourceError(DelimLoadError):
    """The input target cannot be turned into source units."""


class SourceNotFoundError(SourceError):
    """The target is neither stdin, a regular file nor a directory."""


class EmptyDirectoryError(SourceError):
    """The target directory holds no regular files."""


class ParseFailure(DelimLoadError):
    """A single input line could not be converted into typed values."""

    def __init__(self, message: str, column: str = None):
        super().__init__(message)
        self.column = column
