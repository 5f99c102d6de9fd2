from typing import Optional


class ProxyError(Exception):
    """Base class for all errors raised by the local metrics proxy."""


class ConfigError(ProxyError):
    """
    A configuration error, optionally tied to a position in the source text.

    Positioned errors render as ``<filename>:<line> - Error during parsing: <message>``.
    """

    def __init__(self, message: str, filename: Optional[str] = None,
                 line: Optional[int] = None, column: Optional[int] = None):
        self.message = message
        self.filename = filename
        self.line = line
        self.column = column
        super().__init__(self._format())

    def _format(self) -> str:
        if self.line is None:
            return self.message
        return f"{self.filename}:{self.line} - Error during parsing: {self.message}"


class ConfigSyntaxError(ConfigError):
    """Unexpected or extra tokens in the configuration text."""


class ConfigValidationError(ConfigError):
    """Well-formed configuration with invalid content."""


class ProvisionError(ProxyError):
    """The handler cannot be set up with the configuration it was given."""


class RuntimeDialError(ProxyError):
    """The backend endpoint could not be reached."""


class RuntimeIOError(ProxyError):
    """Copying from or closing the backend stream failed."""
