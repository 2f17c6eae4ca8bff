"""
Error taxonomy for lifecycle operations.
Each error carries the HTTP status the API layer answers with; see the
PortalError handler in app.main.
"""


class PortalError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PortalError):
    """Required input missing or malformed"""
    status_code = 400


class NotFoundError(PortalError):
    status_code = 404


class InvalidStateError(PortalError):
    """Action is not legal for the deployment's current status"""
    status_code = 400


class NoChangeError(PortalError):
    status_code = 400


class AlreadyInProgressError(PortalError):
    status_code = 400


class ExecutionError(PortalError):
    """Raised by executors; only ever caught by the job runner"""
    status_code = 500
