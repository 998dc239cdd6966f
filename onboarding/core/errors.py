"""Error taxonomy for the onboarding draft subsystem."""

from typing import Optional


class OnboardingError(Exception):
    """Base class for every error raised by this package."""


class PersistenceError(OnboardingError):
    """The local key-value store could not be read or written."""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key


class ResolutionError(OnboardingError):
    """A single photo path could not be turned into a display URL."""

    def __init__(self, path: str, reason: str = "no display URL issued"):
        super().__init__(f"Could not resolve {path}: {reason}")
        self.path = path
        self.reason = reason


class RemoteServiceError(OnboardingError):
    """The remote property service failed or was unreachable."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        server_message: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.server_message = server_message

    @property
    def display_message(self) -> str:
        """Message suitable for showing inline next to the failed action."""
        return self.server_message or str(self)


class RemoteSaveError(RemoteServiceError):
    """The remote property service rejected a write."""


class NotFoundError(OnboardingError):
    """No draft where one was expected.

    Not a failure: callers route the user back to ``redirect_step``.
    """

    def __init__(self, message: str = "No resumable draft", redirect_step: int = 1):
        super().__init__(message)
        self.redirect_step = redirect_step


class AreaNotRemovableError(OnboardingError):
    """Default areas follow bedroom/bathroom counts and cannot be removed directly."""

    def __init__(self, area_id: str):
        super().__init__(f"Area {area_id} is a default area; change the room counts instead")
        self.area_id = area_id
