"""Error taxonomy shared by the extraction pipeline."""

from enum import Enum


class ErrorKind(Enum):
    """How a collaborator failure should be handled."""

    CAPACITY = "capacity"
    MALFORMED = "malformed"
    FATAL = "fatal"


class ThemeForgeError(Exception):
    pass


class CapacityExceededError(ThemeForgeError):
    """The external service rejected the input as too large.

    Recoverable: the caller re-chunks the input and tries again.
    """


class MalformedResponseError(ThemeForgeError):
    """The service answered, but the answer could not be interpreted."""


class CollaboratorError(ThemeForgeError):
    """A network service or subprocess failed for a reason other than size.

    ``detail`` keeps the collaborator's own diagnostic text.
    """

    def __init__(self, message: str, detail: str = ""):
        super().__init__(message)
        self.detail = detail


class StageError(ThemeForgeError):
    """A pipeline stage failed; names the stage and wraps the cause."""

    def __init__(self, stage: str, cause: BaseException):
        super().__init__(f"{stage}: {cause}")
        self.stage = stage
        self.cause = cause


def raise_for_kind(kind: ErrorKind, message: str, source: str) -> None:
    """Raise the exception matching *kind* for a failed call to *source*."""
    if kind is ErrorKind.CAPACITY:
        raise CapacityExceededError(f"{source} rejected the input as too large: {message}")
    if kind is ErrorKind.MALFORMED:
        raise MalformedResponseError(f"{source} returned an unusable response: {message}")
    raise CollaboratorError(f"{source} request failed: {message}", detail=message)
