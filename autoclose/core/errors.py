# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Centralized error types for the auto-close engine.

This module provides:
- Error categories used to tell transport failures from malformed responses
- A structured base exception with correlation IDs and recovery hints
- Provider errors raised by the embedding and completion adapters
- Local errors (dimension mismatch, invalid label, closed engine)

Embedding and completion errors never leave the ClosureDetector or the
IntentClassifier; they exist so those components can pick a fallback.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


# =============================================================================
# Error Categories
# =============================================================================


class ErrorCategory(Enum):
    """Categories of errors for classification and handling."""

    # Provider errors
    PROVIDER_CONNECTION = "provider_connection"
    PROVIDER_AUTH = "provider_auth"
    PROVIDER_RATE_LIMIT = "provider_rate_limit"
    PROVIDER_TIMEOUT = "provider_timeout"
    PROVIDER_INVALID_RESPONSE = "provider_invalid_response"

    # Configuration errors
    CONFIG_INVALID = "config_invalid"
    CONFIG_MISSING = "config_missing"

    # Local errors
    DIMENSION_MISMATCH = "dimension_mismatch"
    INVALID_LABEL = "invalid_label"
    INVALID_STATE = "invalid_state"

    UNKNOWN = "unknown"


# Categories caused by the network path rather than by the payload
TRANSPORT_CATEGORIES = frozenset(
    {
        ErrorCategory.PROVIDER_CONNECTION,
        ErrorCategory.PROVIDER_AUTH,
        ErrorCategory.PROVIDER_RATE_LIMIT,
        ErrorCategory.PROVIDER_TIMEOUT,
        ErrorCategory.CONFIG_MISSING,
    }
)


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


# =============================================================================
# Custom Exception Types
# =============================================================================


class AutoCloseError(Exception):
    """Base exception for all auto-close errors.

    Provides structured error information including:
    - Error category and severity
    - Correlation ID for tracking
    - Recovery suggestions
    - Original exception chain
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        details: Optional[Dict[str, Any]] = None,
        recovery_hint: Optional[str] = None,
        correlation_id: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.details = details or {}
        self.recovery_hint = recovery_hint
        self.correlation_id = correlation_id or str(uuid.uuid4())[:8]
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "correlation_id": self.correlation_id,
            "recovery_hint": self.recovery_hint,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        result = f"[{self.correlation_id}] {self.message}"
        if self.recovery_hint:
            result += f"\nRecovery hint: {self.recovery_hint}"
        return result


class ProviderError(AutoCloseError):
    """Errors raised by a remote embedding or completion capability."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.provider = provider
        self.model = model
        self.status_code = status_code
        self.details["provider"] = provider
        self.details["model"] = model
        if status_code is not None:
            self.details["status_code"] = status_code

    @property
    def is_transport(self) -> bool:
        """True when the call failed on the wire rather than on the payload."""
        return self.category in TRANSPORT_CATEGORIES


class EmbeddingUnavailableError(ProviderError):
    """The remote embedding call failed (network, auth, rate limit, bad payload).

    Recovered by the ClosureDetector keyword fallback.
    """

    def __init__(self, message: str, **kwargs: Any):
        kwargs.setdefault("category", ErrorCategory.PROVIDER_CONNECTION)
        kwargs.setdefault(
            "recovery_hint",
            "Check the embedding endpoint and API key. Detection falls back to keywords meanwhile.",
        )
        super().__init__(message, **kwargs)


class ClassificationUnavailableError(ProviderError):
    """The remote chat-completion call failed.

    Recovered by the IntentClassifier defaulting to ``uncertain``.
    """

    def __init__(self, message: str, **kwargs: Any):
        kwargs.setdefault("category", ErrorCategory.PROVIDER_CONNECTION)
        kwargs.setdefault(
            "recovery_hint",
            "Check the completion endpoint and API key. Replies are treated as uncertain meanwhile.",
        )
        super().__init__(message, **kwargs)


class DimensionMismatchError(AutoCloseError, ValueError):
    """Two vectors of unequal length were compared."""

    def __init__(self, left: int, right: int, **kwargs: Any):
        super().__init__(
            f"Vectors must have the same length (got {left} and {right})",
            category=ErrorCategory.DIMENSION_MISMATCH,
            recovery_hint="All embeddings must come from the same model.",
            **kwargs,
        )
        self.details["left"] = left
        self.details["right"] = right


class InvalidLabelError(AutoCloseError):
    """The completion model answered outside the closed label set."""

    def __init__(self, raw_output: str, **kwargs: Any):
        super().__init__(
            f"Unexpected classification: {raw_output!r}",
            category=ErrorCategory.INVALID_LABEL,
            severity=ErrorSeverity.WARNING,
            **kwargs,
        )
        self.raw_output = raw_output
        self.details["raw_output"] = raw_output


class ConfigurationError(AutoCloseError):
    """Configuration-related errors."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs: Any,
    ):
        kwargs.setdefault("category", ErrorCategory.CONFIG_INVALID)
        super().__init__(message, **kwargs)
        self.config_key = config_key
        self.details["config_key"] = config_key


class EngineClosedError(AutoCloseError):
    """An operation was attempted on a conversation that is already closed."""

    def __init__(self, message: str = "Conversation is already closed", **kwargs: Any):
        super().__init__(
            message,
            category=ErrorCategory.INVALID_STATE,
            severity=ErrorSeverity.WARNING,
            **kwargs,
        )


__all__ = [
    "ErrorCategory",
    "ErrorSeverity",
    "TRANSPORT_CATEGORIES",
    "AutoCloseError",
    "ProviderError",
    "EmbeddingUnavailableError",
    "ClassificationUnavailableError",
    "DimensionMismatchError",
    "InvalidLabelError",
    "ConfigurationError",
    "EngineClosedError",
]
