"""Typed rejections for player input.

Every subclass of GameValidationError is raised synchronously before any
session state changes, so the caller can show the message inline and let the
player try again.
"""


class GameValidationError(ValueError):
    """Base exception for rejected player input."""


class InvalidDifficultyError(GameValidationError):
    """Requested code length is outside the supported range."""


class InvalidGuessError(GameValidationError):
    """Guess is not exactly code-length digits."""


class DuplicateGuessError(GameValidationError):
    """Guess repeats an earlier guess of the same session."""


class SubmissionThrottledError(GameValidationError):
    """A guess arrived inside the debounce window of the previous one."""


class SessionClosedError(GameValidationError):
    """The session already ended (won or abandoned)."""


class NoActiveSessionError(GameValidationError):
    """No game has been started yet."""
