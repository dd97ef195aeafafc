from typing import Any

class MissingType:
    """
    Type for the MISSING sentinel, representing an omitted optional field.

    Used by partial update requests to distinguish between a field that was
    not provided (MISSING) and a field explicitly cleared (None), e.g. notes.
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(MissingType, cls).__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False

    def __eq__(self, other: object) -> bool:
        return isinstance(other, MissingType)

    def __hash__(self) -> int:
        return hash("MISSING")

    def __copy__(self):
        return self

    def __deepcopy__(self, memo: Any):
        return self


MISSING = MissingType()
