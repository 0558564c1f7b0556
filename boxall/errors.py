"""Exceptions raised by the storage core."""


class BoxAllError(Exception):
    """Base class for errors that callers are expected to handle."""


class CapacityExceededError(BoxAllError):
    """Raised when no identifier is left for a box type."""


class UnknownBoxTypeError(BoxAllError):
    """Raised for unrecognised type tokens when strict resolution is on."""


class StorageUnavailableError(BoxAllError):
    """Raised when the backing record store cannot be reached at all."""
