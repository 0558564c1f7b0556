from .errors import BoxAllError, CapacityExceededError, StorageUnavailableError, UnknownBoxTypeError
from .inventory import Inventory, open_store

__all__ = [
    "BoxAllError",
    "CapacityExceededError",
    "Inventory",
    "StorageUnavailableError",
    "UnknownBoxTypeError",
    "open_store",
]
