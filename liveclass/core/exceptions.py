from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class InvalidTransition(ServiceError):
    """Raised when a lifecycle event is not allowed from the record's current status."""

    def __init__(self, current_status: str, event: str) -> None:
        super().__init__(
            f"Cannot {event.lower().replace('_', ' ')} a class that is {current_status}",
            status.HTTP_409_CONFLICT,
        )
        self.current_status = current_status
        self.event = event
