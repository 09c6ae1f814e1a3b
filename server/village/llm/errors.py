from __future__ import annotations


class DecisionError(Exception):
    """Base class for failures while obtaining or applying a generated decision."""


class TransportError(DecisionError):
    """The request could not be sent or no response was received."""


class ProtocolError(DecisionError):
    """The response body is neither a success nor an error envelope."""


class ApplicationError(DecisionError):
    """The service answered with a structured error."""

    def __init__(self, message: str, category: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.category = category or "unknown"

    def __str__(self) -> str:
        return f"{self.category}: {self.message}"


class LogicError(DecisionError):
    """Tool-call arguments are missing, invalid or unrecognized."""


class MissingCredentialError(RuntimeError):
    pass
