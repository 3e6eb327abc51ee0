from __future__ import annotations

from dataclasses import dataclass

from boxflow.app.engine.errors import MalformedGraphError, StaleBoxError
from boxflow.app.models.box import Arity, BoxKind, BoxNode, BoxPayload


def payload_key(value: object) -> object:
    """Hashable key for a payload value that keeps 0.0/-0.0 apart and NaN equal to itself."""
    if isinstance(value, float):
        return ("float", value.hex())
    if isinstance(value, tuple):
        return tuple(payload_key(item) for item in value)
    return value


@dataclass(frozen=True, slots=True)
class Box:
    """Opaque reference to a node in a box store."""

    store: BoxStore
    index: int

    @property
    def node(self) -> BoxNode:
        return self.store.node(self.index)

    @property
    def kind(self) -> BoxKind:
        return self.node.kind

    @property
    def payload(self) -> BoxPayload:
        return self.node.payload

    @property
    def arity(self) -> Arity:
        return self.node.arity

    @property
    def inputs(self) -> int:
        return self.node.arity.inputs

    @property
    def outputs(self) -> int:
        return self.node.arity.outputs

    @property
    def operands(self) -> tuple[Box, ...]:
        return tuple(self.store.handle(index) for index in self.node.operands)

    def __repr__(self) -> str:
        if self.store.closed:
            return f"Box(#{self.index}, stale)"
        node = self.store.peek(self.index)
        if node is None:
            return f"Box(#{self.index}, undefined)"
        return f"Box(#{self.index}, {node.kind}, {node.arity})"


class BoxStore:
    def __init__(self, name: str):
        self.name = name
        self._nodes: list[BoxNode | None] = []
        self._handles: list[Box] = []
        self._interned: dict[tuple[object, ...], int] = {}
        self._closed = False

    def __len__(self) -> int:
        return len(self._nodes)

    @property
    def closed(self) -> bool:
        return self._closed

    def intern(
        self,
        kind: BoxKind,
        payload: BoxPayload,
        operands: tuple[int, ...],
        arity: Arity,
    ) -> Box:
        self._ensure_open()
        key = (kind, payload_key(payload), operands)
        existing = self._interned.get(key)
        if existing is not None:
            return self._handles[existing]

        index = len(self._nodes)
        self._nodes.append(BoxNode(kind=kind, payload=payload, operands=operands, arity=arity))
        self._handles.append(Box(self, index))
        self._interned[key] = index
        return self._handles[index]

    def reserve(self, count: int) -> list[Box]:
        """Allocate undefined slots so imported graphs may reference nodes before defining them."""
        self._ensure_open()
        start = len(self._nodes)
        for index in range(start, start + count):
            self._nodes.append(None)
            self._handles.append(Box(self, index))
        return self._handles[start:]

    def fill(
        self,
        index: int,
        kind: BoxKind,
        payload: BoxPayload,
        operands: tuple[int, ...],
        arity: Arity,
    ) -> None:
        # Filled slots skip interning and legality checks; the declared arity is
        # trusted until the cycle resolver re-derives it.
        self._ensure_open()
        if self._nodes[index] is not None:
            raise MalformedGraphError(f"box #{index} is already defined")
        for operand in operands:
            if not 0 <= operand < len(self._nodes):
                raise MalformedGraphError(f"box #{index} references unknown box #{operand}")
        self._nodes[index] = BoxNode(kind=kind, payload=payload, operands=operands, arity=arity)

    def node(self, index: int) -> BoxNode:
        self._ensure_open()
        if not 0 <= index < len(self._nodes):
            raise MalformedGraphError(f"box #{index} does not exist in store '{self.name}'")
        node = self._nodes[index]
        if node is None:
            raise MalformedGraphError(f"box #{index} was reserved but never defined")
        return node

    def peek(self, index: int) -> BoxNode | None:
        if self._closed or not 0 <= index < len(self._nodes):
            return None
        return self._nodes[index]

    def handle(self, index: int) -> Box:
        self._ensure_open()
        return self._handles[index]

    def close(self) -> None:
        self._nodes.clear()
        self._handles.clear()
        self._interned.clear()
        self._closed = True

    def _ensure_open(self) -> None:
        if self._closed:
            raise StaleBoxError(f"box store '{self.name}' belongs to a destroyed context")
