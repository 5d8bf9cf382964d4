"""Exception types shared across the ActionQ backend."""


class ActionQError(Exception):
    """Base class for all ActionQ errors."""


class PoseContractError(ActionQError, ValueError):
    """Model output or keypoint data does not match the expected layout."""


class StorageFormatError(ActionQError, ValueError):
    """Persisted session bytes cannot be encoded or decoded."""


class ReplayAborted(ActionQError):
    """A replay could not continue because the client transport failed."""


class UnknownExerciseError(ActionQError, KeyError):
    """No exercise logic is registered under the requested id."""
