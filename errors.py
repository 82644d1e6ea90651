"""
errors.py

Exceptions raised by the proof-of-work session and the challenge issuer.
"""


class PowError(Exception):
    """Base class for every proof-of-work error."""


class AlreadyWorkingError(PowError):
    """A search is already running on this controller."""

    def __init__(self, message="Already working! Please wait..."):
        super().__init__(message)


class EmptyChallengeError(PowError):
    """No challenge was supplied to start a search with."""

    def __init__(self, message="No challenge found! Please refresh the page."):
        super().__init__(message)


class InvalidSolutionFormat(PowError, ValueError):
    """A submitted solution is not a decimal integer."""
