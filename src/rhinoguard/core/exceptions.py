"""RhinoGuard exception hierarchy.

This module defines the base exception class and specialized exceptions
for the alert lifecycle engine.
"""


class RhinoGuardError(Exception):
    """Base exception for all RhinoGuard errors.

    All custom exceptions in RhinoGuard should inherit from this class
    to enable consistent error handling and logging.
    """

    pass


class ValidationError(RhinoGuardError):
    """Raised when data validation fails.

    Use this for invalid detection input, payloads rejected by the backend
    (4xx other than 404/429) and malformed backend responses.

    Attributes:
        status_code: HTTP status code when the backend rejected the request.

    Example:
        raise ValidationError("Detection is missing an id")
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class FeatureDisabledError(RhinoGuardError):
    """Raised when an operation is gated off by a feature flag.

    Not recoverable by retrying; the configuration has to change.
    """

    pass


class DuplicateAlertError(RhinoGuardError):
    """Raised when an alert is requested again inside the dedup window.

    Attributes:
        detection_id: Detection the repeat request was made for.
        existing_alert_id: The active alert that blocks the request.
        elapsed_seconds: Seconds since the existing alert was created.
    """

    def __init__(
        self,
        detection_id: str,
        existing_alert_id: str,
        elapsed_seconds: float,
    ) -> None:
        self.detection_id = detection_id
        self.existing_alert_id = existing_alert_id
        self.elapsed_seconds = elapsed_seconds
        super().__init__(
            f"An alert ({existing_alert_id}) was already sent for detection "
            f"{detection_id} {elapsed_seconds:.0f}s ago"
        )


class InvalidStatusTransitionError(RhinoGuardError):
    """Raised when a local edit would move an alert along an illegal edge.

    Attributes:
        alert_id: Alert being edited.
        current: Status the alert is in.
        requested: Status the edit asked for.
    """

    def __init__(self, alert_id: str, current: str, requested: str) -> None:
        self.alert_id = alert_id
        self.current = current
        self.requested = requested
        super().__init__(f"Alert {alert_id}: cannot move from {current} to {requested}")


class ExternalServiceError(RhinoGuardError):
    """Raised when a call to the detection backend fails.

    Attributes:
        service: Name or base URL of the service that failed.
        status_code: HTTP status code if available, None otherwise.

    Example:
        raise ExternalServiceError(service="backend", message="Bad gateway", status_code=502)
    """

    def __init__(
        self,
        service: str,
        message: str,
        status_code: int | None = None,
    ) -> None:
        self.service = service
        self.status_code = status_code
        super().__init__(f"{service}: {message}")


class BackendUnreachableError(ExternalServiceError):
    """Raised when the backend did not answer or does not implement the endpoint.

    Covers HTTP 404, transport failures and timeouts. Callers that support
    local-only mode catch this and fall back instead of failing.
    """

    pass


class CircuitBreakerOpenError(BackendUnreachableError):
    """Raised when the circuit breaker is open and no request was sent."""

    def __init__(self, message: str) -> None:
        super().__init__(service="circuit_breaker", message=message)


class ServerError(ExternalServiceError):
    """Raised when the backend keeps answering 5xx/429 after all retries."""

    pass
