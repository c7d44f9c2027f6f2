"""Error taxonomy shared by the state layer and the HTTP routers."""

from typing import Dict, Optional


class PedeAIError(Exception):
    """Base class for errors surfaced to dashboard users."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(PedeAIError):
    """Malformed user input; the operation was not attempted."""

    status_code = 400

    def __init__(self, errors: Dict[str, str]):
        super().__init__("; ".join(f"{field}: {msg}" for field, msg in errors.items()))
        self.errors = errors


class InvalidCredentials(PedeAIError):
    """Login failed. Never says whether the account exists."""

    status_code = 401

    def __init__(self):
        super().__init__("Invalid email or password")


class NotAuthenticated(PedeAIError):
    status_code = 401

    def __init__(self, message: str = "Login required"):
        super().__init__(message)


class NotFound(PedeAIError):
    status_code = 404


class RemoteCallFailed(PedeAIError):
    """A read or write against the remote store failed."""

    status_code = 502

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        message = f"Could not {operation}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.operation = operation
        self.cause = cause
