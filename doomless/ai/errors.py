"""Exceptions raised by the completion and provisioning layers."""

from __future__ import annotations


class DoomlessError(Exception):
    """Base class for pipeline errors."""


class InferenceError(DoomlessError):
    """A completion request could not produce text."""


class InferenceUnavailable(InferenceError):
    """No completion session is initialized."""

    def __init__(self, message: str = "No completion model is initialized"):
        super().__init__(message)


class InferenceFailure(InferenceError):
    """The completion backend failed or returned an empty/invalid payload."""


class ModelInitializationFailed(DoomlessError):
    """Every model candidate failed to provision."""
