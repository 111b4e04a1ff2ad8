"""Exceptions for labflow."""


class LabFlowError(Exception):
    """Base class for errors raised by labflow itself."""


class InputError(LabFlowError, ValueError):
    """Raised for invalid configuration or input.

    Covers unknown integration hosts, missing tokens and malformed
    repository URLs. These are raised before any network activity and
    retrying does not help.
    """


class PathEscapeError(LabFlowError):
    """Raised when a relative path would resolve outside its base directory."""
