"""Error taxonomy shared by the scheduling services."""


class SchedulerError(Exception):
    """Base class for scheduling failures reported to callers."""

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(SchedulerError):
    """Missing or malformed input."""


class NotFoundError(SchedulerError):
    """A referenced user does not exist."""


class ConflictError(SchedulerError):
    """The requested slot is no longer free."""


class ExternalServiceDegraded(SchedulerError):
    """A calendar call failed. Absorbed by callers, never surfaced."""

    def __init__(self, operation: str, detail: str):
        super().__init__(f'{operation}: {detail}')
        self.operation = operation
