"""Custom exception classes for the health-check engine."""

from __future__ import annotations

from typing import Any


class EtcdHealthCheckError(Exception):
    """Base health-check exception.

    All custom exceptions should inherit from this class. The fields mirror
    the problem-details shape so errors log consistently.

    Attributes:
        detail: Human-readable error message.
        type: Error type identifier.
        title: Short, human-readable summary of the problem type.
        extra: Additional context-specific information about the error.

    Example:
            raise EtcdHealthCheckError(
            detail="Endpoint list could not be parsed",
            type="invalid-endpoints",
            extra={"etcd_cluster": "default/etcd-a"}
        )
    """

    default_title = "Health Check Error"

    def __init__(
        self,
        detail: str,
        type: str = "about:blank",
        title: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        """Initialize health-check exception.

        Args:
            detail: Human-readable error message.
            type: Error type identifier.
            title: Short summary of the problem type.
            extra: Additional context about the error.
        """
        self.detail = detail
        self.type = type
        self.title = title or self.default_title
        self.extra = extra or {}
        super().__init__(detail)

    def to_log_extra(self) -> dict[str, Any]:
        """Flatten the error into a dict suitable for ``logger.*(extra=...)``."""
        return {"error": self.detail, "error_type": self.type, **self.extra}


class ConfigurationError(EtcdHealthCheckError):
    """Raised when settings or cluster configuration cannot be used."""

    default_title = "Configuration Error"

    def __init__(
        self,
        detail: str,
        type: str = "configuration-error",
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(detail=detail, type=type, extra=extra)


class OrchestrationApiError(EtcdHealthCheckError):
    """Exception raised when a call to the orchestration API fails.

    Covers transport failures (timeouts, refused connections) as well as
    non-2xx responses. ``status_code`` is None for transport failures.

    Example:
            raise OrchestrationApiError(
            detail="Machine deletion rejected",
            operation="delete_machine",
            status_code=403,
        )
    """

    default_title = "Orchestration API Error"

    def __init__(
        self,
        detail: str,
        operation: str,
        status_code: int | None = None,
        type: str = "orchestration-api-error",
        extra: dict[str, Any] | None = None,
    ) -> None:
        """Initialize orchestration API exception.

        Args:
            detail: Human-readable error message.
            operation: Client operation that failed (e.g. "delete_machine").
            status_code: HTTP status code, if a response was received.
            type: Error type identifier.
            extra: Additional context about the error.
        """
        self.operation = operation
        self.status_code = status_code
        merged = {"operation": operation, **(extra or {})}
        if status_code is not None:
            merged["status_code"] = status_code
        super().__init__(detail=detail, type=type, extra=merged)


class ResourceNotFoundError(OrchestrationApiError):
    """Exception raised when the requested API object does not exist."""

    default_title = "Not Found"

    def __init__(
        self,
        detail: str,
        operation: str,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            detail=detail,
            operation=operation,
            status_code=404,
            type="not-found",
            extra=extra,
        )


class RemediationError(EtcdHealthCheckError):
    """Raised when a health check cycle could not complete member removal.

    The cycle's ledger is already consistent when this is raised; entries
    that failed remain pending and are retried on the next tick.

    Attributes:
        failed_endpoints: Endpoints whose removal or status update failed.
    """

    default_title = "Remediation Failed"

    def __init__(
        self,
        detail: str,
        failed_endpoints: list[str],
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.failed_endpoints = list(failed_endpoints)
        super().__init__(
            detail=detail,
            type="remediation-failed",
            extra={"failed_endpoints": self.failed_endpoints, **(extra or {})},
        )
