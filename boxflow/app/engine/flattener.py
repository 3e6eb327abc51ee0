from __future__ import annotations

import logging
from typing import Generator

from boxflow.app.engine.context import BoxContext, get_active_context
from boxflow.app.engine.errors import BoxError, MalformedGraphError, OpenInputError
from boxflow.app.engine.resolver import CycleResolver
from boxflow.app.engine.store import Box
from boxflow.app.models.box import BARGRAPH_KINDS, UI_CONTROL_KINDS, BoxKind, BoxNode
from boxflow.app.models.signal import Signal, SignalKind

logger = logging.getLogger(__name__)

Signals = tuple[Signal, ...]
# (box index, input signals) asked of the driver loop; the reply is that box's outputs.
Request = tuple[int, Signals]
Expansion = Generator[Request, Signals, Signals]

_PASSTHROUGH_SIGNALS: dict[BoxKind, SignalKind] = {
    BoxKind.BINARY_OP: SignalKind.BINARY_OP,
    BoxKind.UNARY_OP: SignalKind.UNARY_OP,
    BoxKind.DELAY: SignalKind.DELAY,
    BoxKind.INT_CAST: SignalKind.INT_CAST,
    BoxKind.FLOAT_CAST: SignalKind.FLOAT_CAST,
    BoxKind.SELECT: SignalKind.SELECT,
}

_TABLE_NAMES = {
    BoxKind.READ_ONLY_TABLE: "rdtable",
    BoxKind.WRITE_READ_TABLE: "rwtable",
}


class Flattener:
    """Lower a closed box into one signal expression per output.

    Expansion is memoised on (box, input signals) and signals are interned by
    the context, so a box reached twice with the same inputs yields the very
    same signal objects and repeated flattening is idempotent.

    Each box expansion is a generator that yields the (box, inputs) pairs it
    needs and receives their outputs back. ``_propagate`` drives those
    generators from an explicit stack, so graph depth is not limited by the
    interpreter's recursion limit.
    """

    def __init__(self, context: BoxContext):
        self._context = context
        self._store = context.store
        self._signals = context.signals
        self._memo: dict[Request, Signals] = {}

    def flatten(self, root: Box) -> list[Signal]:
        self._context.check(root)
        arity = root.arity
        if arity.inputs != 0:
            raise OpenInputError(arity.inputs)
        if arity.outputs == 0:
            raise MalformedGraphError(f"root box #{root.index} ({root.kind}) has no outputs to flatten")

        resolved = CycleResolver(self._context).resolve(root)
        outputs = self._propagate(resolved.index, ())
        logger.debug(
            "Flattened box #%d into %d signal(s); %d signal node(s) in context",
            root.index,
            len(outputs),
            len(self._signals),
        )
        return list(outputs)

    def _propagate(self, index: int, inputs: Signals) -> Signals:
        request: Request = (index, inputs)
        cached = self._memo.get(request)
        if cached is not None:
            return cached

        stack: list[tuple[Request, Expansion]] = [(request, self._expand(*request))]
        reply: Signals | None = None
        while stack:
            current, expansion = stack[-1]
            try:
                needed = expansion.send(reply)
            except StopIteration as finished:
                stack.pop()
                self._memo[current] = finished.value
                reply = finished.value
                continue

            reply = self._memo.get(needed)
            if reply is None:
                stack.append((needed, self._expand(*needed)))

        return self._memo[request]

    def _expand(self, index: int, inputs: Signals) -> Expansion:
        node = self._store.node(index)
        if len(inputs) != node.arity.inputs:
            raise MalformedGraphError(
                f"box #{index} ({node.kind}) expects {node.arity.inputs} input(s), received {len(inputs)}"
            )
        if node.kind.is_composite:
            outputs = yield from self._expand_composite(index, node, inputs)
        else:
            outputs = yield from self._expand_leaf(index, node, inputs)
        if len(outputs) != node.arity.outputs:
            raise MalformedGraphError(
                f"box #{index} ({node.kind}) declares {node.arity.outputs} output(s), produced {len(outputs)}"
            )
        return outputs

    def _constants(self, operands: tuple[int, ...]) -> Generator[Request, Signals, Signals]:
        values: list[Signal] = []
        for operand in operands:
            outputs = yield (operand, ())
            values.append(outputs[0])
        return tuple(values)

    def _expand_leaf(self, index: int, node: BoxNode, inputs: Signals) -> Expansion:
        kind = node.kind
        make = self._signals.make

        if kind == BoxKind.INT:
            return (self._signals.int_const(node.payload[0]),)
        if kind == BoxKind.REAL:
            return (self._signals.real_const(node.payload[0]),)
        if kind == BoxKind.WIRE:
            return inputs
        if kind == BoxKind.CUT:
            return ()

        passthrough = _PASSTHROUGH_SIGNALS.get(kind)
        if passthrough is not None:
            return (make(passthrough, node.payload, inputs),)

        if kind in _TABLE_NAMES:
            return (make(SignalKind.TABLE, (_TABLE_NAMES[kind],), inputs),)

        if kind in (BoxKind.BUTTON, BoxKind.CHECKBOX):
            return (make(SignalKind.UI, (kind.value, node.payload[0])),)

        if kind in UI_CONTROL_KINDS or kind in BARGRAPH_KINDS:
            parameters = yield from self._constants(node.operands)
            signal_kind = SignalKind.UI if kind in UI_CONTROL_KINDS else SignalKind.BARGRAPH
            return (make(signal_kind, (kind.value, node.payload[0]), parameters + inputs),)

        if kind == BoxKind.WAVEFORM:
            values = yield from self._constants(node.operands)
            return (self._signals.int_const(len(values)), make(SignalKind.WAVEFORM, (), values))

        if kind == BoxKind.SOUNDFILE:
            label, channels = node.payload
            part, read_index = inputs
            return (
                make(SignalKind.SOUNDFILE_LENGTH, (label,), (part,)),
                make(SignalKind.SOUNDFILE_RATE, (label,), (part,)),
                *(
                    make(SignalKind.SOUNDFILE_BUFFER, (label, channel), (part, read_index))
                    for channel in range(channels)
                ),
            )

        if kind == BoxKind.FCONST:
            return (make(SignalKind.FCONST, node.payload),)
        if kind == BoxKind.FVAR:
            return (make(SignalKind.FVAR, node.payload),)

        if kind == BoxKind.FEEDBACK_TAP:
            reference = make(SignalKind.REC_REF, node.payload)
            return (make(SignalKind.DELAY1, (), (reference,)),)

        raise MalformedGraphError(f"box #{index} has kind '{kind}', which cannot be flattened")

    def _expand_composite(self, index: int, node: BoxNode, inputs: Signals) -> Expansion:
        kind = node.kind
        if kind == BoxKind.ROUTE:
            return self._route(node, inputs)

        a_index, b_index = node.operands
        a = self._store.node(a_index)
        b = self._store.node(b_index)

        if kind == BoxKind.SEQ:
            a_out = yield (a_index, inputs)
            return (yield (b_index, a_out))

        if kind == BoxKind.PAR:
            split_at = a.arity.inputs
            a_out = yield (a_index, inputs[:split_at])
            b_out = yield (b_index, inputs[split_at:])
            return a_out + b_out

        if kind == BoxKind.SPLIT:
            a_out = yield (a_index, inputs)
            return (yield (b_index, tuple(a_out[j % len(a_out)] for j in range(b.arity.inputs))))

        if kind == BoxKind.MERGE:
            a_out = yield (a_index, inputs)
            width = b.arity.inputs
            folded = tuple(self._signals.sum_of(list(a_out[slot::width])) for slot in range(width))
            return (yield (b_index, folded))

        if kind == BoxKind.ATTACH:
            a_out = yield (a_index, inputs)
            b_out = yield (b_index, ())
            if not b_out:
                return a_out
            carrier = a_out[0]
            for attached in b_out:
                carrier = self._signals.make(SignalKind.ATTACH, (), (carrier, attached))
            return (carrier, *a_out[1:])

        if kind == BoxKind.FEEDBACK_LOOP:
            (name,) = node.payload
            feedback_inputs = b.arity.inputs
            body_out = yield (a_index, inputs)
            definitions = yield (b_index, body_out[:feedback_inputs])
            group = self._signals.make(SignalKind.REC_GROUP, (name,), definitions)
            logger.debug("Built rec group %s with %d definition(s)", name, len(definitions))
            return self._close_over(name, group, body_out[feedback_inputs:])

        raise MalformedGraphError(f"box #{index} ({kind}) must be resolved before flattening")

    def _route(self, node: BoxNode, inputs: Signals) -> Signals:
        _, outputs, pairs = node.payload
        routed: list[list[Signal]] = [[] for _ in range(outputs)]
        for source, destination in pairs:
            if not (1 <= source <= len(inputs) and 1 <= destination <= outputs):
                raise MalformedGraphError(f"route pair ({source}, {destination}) is outside {len(inputs)}x{outputs}")
            routed[destination - 1].append(inputs[source - 1])
        return tuple(self._signals.sum_of(terms) for terms in routed)

    def _close_over(self, name: str, group: Signal, signals: Signals) -> Signals:
        """Replace the group's own references by projections of the finished group.

        References are lexically scoped: nested groups with the same name keep
        their references untouched.
        """
        make = self._signals.make
        rewritten: dict[Signal, Signal] = {}

        for output in signals:
            stack: list[tuple[Signal, bool]] = [(output, False)]
            while stack:
                signal, expanded = stack.pop()
                if signal in rewritten:
                    continue
                if signal.kind == SignalKind.REC_REF and signal.payload[0] == name:
                    rewritten[signal] = make(SignalKind.PROJ, (signal.payload[1],), (group,))
                    continue
                if not signal.children or (signal.kind == SignalKind.REC_GROUP and signal.payload[0] == name):
                    rewritten[signal] = signal
                    continue
                if not expanded:
                    stack.append((signal, True))
                    stack.extend((child, False) for child in signal.children if child not in rewritten)
                    continue
                children = tuple(rewritten[child] for child in signal.children)
                if all(new is old for new, old in zip(children, signal.children)):
                    rewritten[signal] = signal
                else:
                    rewritten[signal] = make(signal.kind, signal.payload, children)

        return tuple(rewritten[signal] for signal in signals)


def flatten(root: Box) -> list[Signal]:
    """Flatten a closed box under the active context; raises BoxError subclasses."""
    return Flattener(get_active_context()).flatten(root)


def boxes_to_signals(box: Box) -> tuple[list[Signal], str]:
    """Flatten without raising: (signals, "") on success, ([], message) on failure."""
    try:
        return flatten(box), ""
    except BoxError as error:
        logger.debug("boxes_to_signals failed: %s", error)
        return [], str(error)
