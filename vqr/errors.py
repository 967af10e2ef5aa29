"""
Error taxonomy for request building and signing.

Two kinds only:
- ValidationError: malformed, missing or contradictory user input.
  Always names the offending field. Maps to HTTP 400.
- OperationError: signer unreachable, signer error envelope, missing
  signature, codec failure on well-formed-looking input. Maps to HTTP 500.
"""

from __future__ import annotations


class VqrError(Exception):
    """Base class for all errors raised by this package."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(VqrError):
    def __init__(self, field: str, reason: str) -> None:
        self.field = field
        self.reason = reason
        super().__init__(f"{field}: {reason}")


class OperationError(VqrError):
    pass
