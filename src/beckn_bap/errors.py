"""BAP Error Taxonomy.

This module defines the error hierarchy for the BAP, providing structured
error handling with specific error codes and context information.

Protocol-level failures on the callback path (bad signature, unknown
transaction) are answered with a NACK rather than raised; the exceptions
here cover the places where the caller must be told something went wrong.
"""

from __future__ import annotations

from typing import Any


class BAPError(Exception):
    """Base exception for all BAP errors.

    Attributes:
        code: Error code following the bap:<area>/<reason> pattern
        message: Human-readable error message
        details: Optional additional error context
    """

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize to ``{code, message, details}`` dict."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class MalformedContextError(BAPError):
    """Raised when a protocol context is missing or has invalid fields."""

    def __init__(self, reason: str, details: dict[str, Any] | None = None) -> None:
        message = f"Malformed context: {reason}"
        super().__init__(
            code="bap:protocol/malformed_context", message=message, details=details or {}
        )
        self.reason = reason


class TransactionNotFoundError(BAPError):
    """Raised when an operation targets a transaction_id the store does not know."""

    def __init__(self, transaction_id: str, details: dict[str, Any] | None = None) -> None:
        message = f"Transaction not found: {transaction_id}"
        super().__init__(
            code="bap:transaction/not_found",
            message=message,
            details={"transaction_id": transaction_id, **(details or {})},
        )
        self.transaction_id = transaction_id


class SignatureVerificationError(BAPError):
    """Missing, expired or invalid Authorization signature; see message for cause."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="bap:auth/signature-verification",
            message=message,
            details=details or {},
        )


class ChallengeDecryptionError(BAPError):
    """Raised when the registry subscription challenge cannot be answered."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="bap:subscribe/challenge-decryption",
            message=message,
            details=details or {},
        )


class ConfigurationError(BAPError):
    """Raised when required configuration (keys, URLs) is missing or invalid."""

    def __init__(self, setting: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="bap:config/invalid",
            message=message,
            details={"setting": setting, **(details or {})},
        )
        self.setting = setting


class BAPConnectionError(BAPError):
    """Raised when an outbound call to the network fails at the transport level.

    Attributes:
        url: URL that failed
        cause: Original exception that caused this error
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        cause: Exception | None = None,
        status_code: int | None = None,
    ) -> None:
        details: dict[str, Any] = {}
        if url:
            details["url"] = url
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(code="bap:transport/connection", message=message, details=details)
        self.url = url
        self.cause = cause
        self.status_code = status_code


class BAPTimeoutError(BAPError):
    """Raised when an outbound call exceeds the configured request timeout.

    Attributes:
        timeout: Timeout value in seconds
    """

    def __init__(self, message: str, url: str | None = None, timeout: float | None = None) -> None:
        super().__init__(
            code="bap:transport/timeout",
            message=message,
            details={"url": url, "timeout": timeout},
        )
        self.url = url
        self.timeout = timeout
