from __future__ import annotations

import logging
from enum import StrEnum

from boxflow.app.engine.context import BoxContext
from boxflow.app.engine.errors import MalformedGraphError
from boxflow.app.engine.store import Box
from boxflow.app.models.box import (
    BARGRAPH_KINDS,
    UI_CONTROL_KINDS,
    Arity,
    BinaryOperator,
    BoxKind,
    BoxPayload,
    ForeignType,
    UnaryOperator,
)
from boxflow.app.models.document import (
    BoxGraphDocument,
    BoxNodeDocument,
    SignalGraphDocument,
    SignalNodeDocument,
)
from boxflow.app.models.signal import Signal

logger = logging.getLogger(__name__)

LABELLED_KINDS = frozenset({BoxKind.BUTTON, BoxKind.CHECKBOX}) | UI_CONTROL_KINDS | BARGRAPH_KINDS


def _int(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"expected an integer, got {value!r}")
    return value


def _str(value: object) -> str:
    if not isinstance(value, str):
        raise TypeError(f"expected a string, got {value!r}")
    return value


def _encode(value: object) -> object:
    if isinstance(value, tuple):
        return [_encode(item) for item in value]
    if isinstance(value, StrEnum):
        return value.value
    return value


class DocumentService:
    """Converts between JSON graph documents and the engine's boxes and signals."""

    def import_graph(self, context: BoxContext, document: BoxGraphDocument) -> Box:
        """Load a box graph as-is, trusting the declared arities.

        Nothing here runs the composition checks: the cycle resolver re-derives
        every arity when the graph is flattened, which is how malformed or
        cyclic documents are reported.
        """
        store = context.store
        boxes = store.reserve(len(document.nodes))
        by_id = {node.id: box for node, box in zip(document.nodes, boxes)}

        for node, box in zip(document.nodes, boxes):
            store.fill(
                box.index,
                node.kind,
                self._decode_payload(node),
                tuple(by_id[operand].index for operand in node.operands),
                Arity(node.inputs, node.outputs),
            )

        logger.debug("Imported %d box node(s) into context %s", len(boxes), context.id)
        return by_id[document.root]

    def export_graph(self, root: Box) -> BoxGraphDocument:
        """Describe the boxes reachable from an unresolved root, operands first."""
        store = root.store
        ordered: list[int] = []
        visited: set[int] = set()
        stack: list[tuple[int, bool]] = [(root.index, False)]
        while stack:
            index, expanded = stack.pop()
            if expanded:
                ordered.append(index)
                continue
            if index in visited:
                continue
            visited.add(index)
            stack.append((index, True))
            for operand in reversed(store.node(index).operands):
                if operand not in visited:
                    stack.append((operand, False))

        nodes = []
        for index in ordered:
            node = store.node(index)
            nodes.append(
                BoxNodeDocument(
                    id=f"b{index}",
                    kind=node.kind,
                    payload=[_encode(value) for value in node.payload],
                    operands=[f"b{operand}" for operand in node.operands],
                    inputs=node.arity.inputs,
                    outputs=node.arity.outputs,
                )
            )
        return BoxGraphDocument(nodes=nodes, root=f"b{root.index}")

    def export_signals(self, signals: list[Signal]) -> SignalGraphDocument:
        """Describe flattened signals as a DAG; shared subexpressions appear once."""
        ids: dict[Signal, str] = {}
        nodes: list[SignalNodeDocument] = []

        for output in signals:
            stack: list[tuple[Signal, bool]] = [(output, False)]
            while stack:
                signal, expanded = stack.pop()
                if signal in ids:
                    continue
                if not expanded:
                    stack.append((signal, True))
                    for child in reversed(signal.children):
                        if child not in ids:
                            stack.append((child, False))
                    continue
                ids[signal] = f"s{len(ids)}"
                nodes.append(
                    SignalNodeDocument(
                        id=ids[signal],
                        kind=signal.kind,
                        payload=[_encode(value) for value in signal.payload],
                        children=[ids[child] for child in signal.children],
                    )
                )

        return SignalGraphDocument(nodes=nodes, outputs=[ids[signal] for signal in signals])

    @staticmethod
    def _decode_payload(node: BoxNodeDocument) -> BoxPayload:
        kind = node.kind
        raw = node.payload
        try:
            if kind == BoxKind.INT:
                (value,) = raw
                return (_int(value),)
            if kind == BoxKind.REAL:
                (value,) = raw
                if isinstance(value, bool) or not isinstance(value, (int, float)):
                    raise TypeError(f"expected a number, got {value!r}")
                return (float(value),)
            if kind == BoxKind.BINARY_OP:
                (op,) = raw
                return (BinaryOperator(op),)
            if kind == BoxKind.UNARY_OP:
                (op,) = raw
                return (UnaryOperator(op),)
            if kind == BoxKind.SELECT:
                (choices,) = raw
                return (_int(choices),)
            if kind == BoxKind.SOUNDFILE:
                label, channels = raw
                return (_str(label), _int(channels))
            if kind in (BoxKind.FCONST, BoxKind.FVAR):
                foreign_type, name, file = raw
                return (ForeignType(foreign_type), _str(name), _str(file))
            if kind in LABELLED_KINDS:
                (label,) = raw
                return (_str(label),)
            if kind == BoxKind.ROUTE:
                n, m, pairs = raw
                if not isinstance(pairs, list):
                    raise TypeError(f"expected a list of pairs, got {pairs!r}")
                decoded = []
                for pair in pairs:
                    source, destination = pair
                    decoded.append((_int(source), _int(destination)))
                return (_int(n), _int(m), tuple(decoded))
            if raw:
                raise ValueError(f"{kind} boxes take no payload")
            return ()
        except (TypeError, ValueError) as error:
            raise MalformedGraphError(f"node '{node.id}' has an invalid {kind} payload {raw!r}: {error}") from error
