"""Request-level errors.

These abort a request as a whole and are turned into JSON responses by
core.middleware. A failing behavior never raises one of these past the
sequencer; it becomes an unsuccessful BehaviorResult in the run report.
"""


class EngineException(Exception):
    """Base class; ``status_code`` is the HTTP status the API answers with."""

    status_code = 500

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(EngineException):
    status_code = 404

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message)


class FeatureAccessDeniedError(EngineException):
    """The organization's plan tier does not include ``feature``."""

    status_code = 403

    def __init__(self, feature: str, message: str):
        super().__init__(message)
        self.feature = feature


class LimitExceededError(EngineException):
    """Creating one more item would exceed the plan tier's ``limit``."""

    status_code = 403

    def __init__(self, limit_key: str, limit: int, current: int, message: str):
        super().__init__(message)
        self.limit_key = limit_key
        self.limit = limit
        self.current = current


class WorkflowConfigError(EngineException):
    """A workflow definition was rejected.

    ``issues`` holds the ValidationIssue entries (level "error") that caused
    the rejection; the API returns them alongside the message.
    """

    status_code = 422

    def __init__(self, message: str = "Invalid workflow configuration", issues: list = None):
        super().__init__(message)
        self.issues = issues or []
