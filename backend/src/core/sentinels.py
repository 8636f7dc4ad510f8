"""
Sentinel for partial updates.

Commission rule updates need to tell a field the caller left out (MISSING)
apart from one explicitly cleared (None).
"""
from typing import Any


class MissingType:
    """Singleton type of MISSING. Falsy, and equal only to itself."""
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False

    def __copy__(self):
        return self

    def __deepcopy__(self, memo: Any):
        return self


MISSING = MissingType()
