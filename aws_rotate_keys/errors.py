class RotationError(Exception):
    """Base class for every failure that ends a rotation run."""


class ConfigurationError(RotationError):
    pass


class InconsistentProfilesError(RotationError):
    pass


class TooManyKeysError(RotationError):
    pass


class KeyCreationError(RotationError):
    pass


class VerificationError(RotationError):
    pass


class PropagationError(RotationError):
    def __init__(self, message, updated=()):
        super().__init__(message)
        self.updated = tuple(updated)


class KeyDeletionError(RotationError):
    pass


class StoreError(Exception):
    """The credentials file could not be read or written."""


class ProviderError(Exception):
    """An IAM call failed."""
