"""Error kinds raised by the estimation core."""


class MapGraphError(Exception):
    """Base class for mapgraph errors."""


class CheiralityError(MapGraphError):
    """A point projects to non-positive depth in the camera frame."""

    def __init__(self, depth: float = None, message: str = "Cheirality Exception"):
        if depth is not None:
            message = f"{message}: point depth {depth:.6g} is not positive"
        super().__init__(message)
        self.depth = depth


class MissingVariableError(MapGraphError, KeyError):
    """A key was requested that does not exist in Values."""

    def __init__(self, key, context: str = ""):
        from .optimization.keys import format_key

        message = f"Variable {format_key(key)} not found"
        if context:
            message = f"{message} ({context})"
        super().__init__(message)
        self.key = key

    def __str__(self) -> str:
        return self.args[0]


class TypeMismatchError(MapGraphError, TypeError):
    """A value or factor is not of the type an operation requires."""
