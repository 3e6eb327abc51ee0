from __future__ import annotations

from boxflow.app.models.box import Arity


class BoxError(Exception):
    """Base class for every structured failure raised by the box engine."""

    kind = "BoxError"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


class ArityMismatch(BoxError):
    kind = "ArityMismatch"

    def __init__(self, operator: str, left: Arity, right: Arity, detail: str = ""):
        self.operator = operator
        self.left = Arity(*left)
        self.right = Arity(*right)
        message = f"{operator}: cannot compose {self.left} with {self.right}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class UnresolvableRecursion(BoxError):
    kind = "UnresolvableRecursion"


class OpenInputError(BoxError):
    kind = "OpenInputError"

    def __init__(self, input_count: int):
        self.input_count = input_count
        super().__init__(
            f"root box has {input_count} unconnected input(s); only closed (0-input) boxes can be flattened"
        )


class MalformedGraphError(BoxError):
    kind = "MalformedGraphError"


class ContextError(BoxError):
    kind = "ContextError"


class ContextAlreadyActive(ContextError):
    kind = "ContextAlreadyActive"

    def __init__(self) -> None:
        super().__init__("a box context is already active in this thread; destroy it first")


class NoActiveContext(ContextError):
    kind = "NoActiveContext"

    def __init__(self) -> None:
        super().__init__("no box context is active in this thread; call create_lib_context() first")


class StaleBoxError(ContextError):
    kind = "StaleBoxError"


class ForeignBoxError(ContextError):
    kind = "ForeignBoxError"
