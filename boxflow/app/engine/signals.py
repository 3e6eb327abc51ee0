from __future__ import annotations

from boxflow.app.engine.store import payload_key
from boxflow.app.models.box import BinaryOperator
from boxflow.app.models.signal import Signal, SignalKind, SignalPayload


class SignalTable:
    """Hash-consing table for the signals of one context."""

    def __init__(self) -> None:
        self._signals: dict[tuple[object, ...], Signal] = {}

    def __len__(self) -> int:
        return len(self._signals)

    def make(
        self,
        kind: SignalKind,
        payload: SignalPayload = (),
        children: tuple[Signal, ...] = (),
    ) -> Signal:
        # Children are interned already, so identity stands in for structure.
        key = (kind, payload_key(payload), children)
        signal = self._signals.get(key)
        if signal is None:
            signal = Signal(kind=kind, payload=payload, children=children)
            self._signals[key] = signal
        return signal

    def int_const(self, value: int) -> Signal:
        return self.make(SignalKind.INT, (value,))

    def real_const(self, value: float) -> Signal:
        return self.make(SignalKind.REAL, (value,))

    def add(self, left: Signal, right: Signal) -> Signal:
        return self.make(SignalKind.BINARY_OP, (BinaryOperator.ADD,), (left, right))

    def sum_of(self, terms: list[Signal]) -> Signal:
        if not terms:
            return self.int_const(0)
        total = terms[0]
        for term in terms[1:]:
            total = self.add(total, term)
        return total

    def clear(self) -> None:
        self._signals.clear()
