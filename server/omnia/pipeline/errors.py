"""Error taxonomy shared by the pipeline and the HTTP handlers."""

import re
from enum import Enum
from typing import Iterable, Optional


class ErrorKind(str, Enum):
    VALIDATION = "validation_error"
    STORE = "store_error"
    EXTERNAL_CALL = "external_call_error"
    PARSE = "parse_error"
    UNEXPECTED = "unexpected_error"


_BEARER_RE = re.compile(r"(Bearer\s+)[A-Za-z0-9._\-]+", re.I)
_KEY_RE = re.compile(r"\b(sk|rk|pk|whsec|shpat|shpca)_[A-Za-z0-9_]{8,}")


def redact(text: str, secrets: Iterable[str] = ()) -> str:
    """Remove secret values and token-looking strings from text."""
    if not text:
        return ""
    for secret in secrets:
        if secret:
            text = text.replace(secret, "[redacted]")
    text = _BEARER_RE.sub(r"\1[redacted]", text)
    return _KEY_RE.sub("[redacted]", text)


class PipelineError(Exception):
    """Base class for categorised failures."""

    kind = ErrorKind.UNEXPECTED
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InputValidationError(PipelineError):
    kind = ErrorKind.VALIDATION
    status_code = 400


class StoreError(PipelineError):
    """The record store failed or had no matching row."""

    kind = ErrorKind.STORE
    status_code = 502

    def __init__(self, message: str, not_found: bool = False):
        super().__init__(message)
        self.not_found = not_found
        if not_found:
            self.status_code = 404


class ExternalCallError(PipelineError):
    """A third-party API call failed, timed out or answered garbage."""

    kind = ErrorKind.EXTERNAL_CALL
    status_code = 502

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status

    def __str__(self) -> str:
        if self.status is not None:
            return f"{self.message} (HTTP {self.status})"
        return self.message


class ParseError(PipelineError):
    kind = ErrorKind.PARSE
    status_code = 502
