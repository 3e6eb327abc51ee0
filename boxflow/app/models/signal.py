from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class SignalKind(StrEnum):
    INT = "int"
    REAL = "real"
    BINARY_OP = "binary_op"
    UNARY_OP = "unary_op"
    DELAY = "delay"
    DELAY1 = "delay1"
    INT_CAST = "int_cast"
    FLOAT_CAST = "float_cast"
    SELECT = "select"
    UI = "ui"
    BARGRAPH = "bargraph"
    WAVEFORM = "waveform"
    TABLE = "table"
    SOUNDFILE_LENGTH = "soundfile_length"
    SOUNDFILE_RATE = "soundfile_rate"
    SOUNDFILE_BUFFER = "soundfile_buffer"
    FCONST = "fconst"
    FVAR = "fvar"
    ATTACH = "attach"
    REC_REF = "rec_ref"
    REC_GROUP = "rec_group"
    PROJ = "proj"


SignalPayload = tuple[object, ...]


@dataclass(frozen=True, slots=True, eq=False)
class Signal:
    """A per-sample expression node.

    Signals are interned by their context's signal table, so identity and
    structural equality coincide for signals built in the same context.
    """

    kind: SignalKind
    payload: SignalPayload
    children: tuple[Signal, ...]

    def __str__(self) -> str:
        return render_signal(self)

    def __repr__(self) -> str:
        return f"Signal({render_signal(self)})"


def _label(value: object) -> str:
    return '"' + str(value).replace("\\", "\\\\").replace('"', '\\"') + '"'


def render_signal(signal: Signal) -> str:
    rendered: dict[Signal, str] = {}
    stack: list[tuple[Signal, bool]] = [(signal, False)]
    while stack:
        current, expanded = stack.pop()
        if current in rendered:
            continue
        if not expanded and current.children:
            stack.append((current, True))
            stack.extend((child, False) for child in current.children if child not in rendered)
            continue
        rendered[current] = _render_node(current, [rendered[child] for child in current.children])
    return rendered[signal]


def _render_node(signal: Signal, args: list[str]) -> str:
    kind = signal.kind

    if kind == SignalKind.INT:
        return str(signal.payload[0])
    if kind == SignalKind.REAL:
        return repr(float(signal.payload[0]))
    if kind in (SignalKind.BINARY_OP, SignalKind.UNARY_OP):
        return f"{signal.payload[0]}({', '.join(args)})"
    if kind == SignalKind.INT_CAST:
        return f"int({args[0]})"
    if kind == SignalKind.FLOAT_CAST:
        return f"float({args[0]})"
    if kind == SignalKind.SELECT:
        return f"select{len(args) - 1}({', '.join(args)})"
    if kind in (SignalKind.UI, SignalKind.BARGRAPH):
        control, label = signal.payload
        return f"{control}({', '.join([_label(label), *args])})"
    if kind == SignalKind.WAVEFORM:
        return "waveform{" + ", ".join(args) + "}"
    if kind == SignalKind.TABLE:
        return f"{signal.payload[0]}({', '.join(args)})"
    if kind in (SignalKind.SOUNDFILE_LENGTH, SignalKind.SOUNDFILE_RATE):
        return f"{kind}({', '.join([_label(signal.payload[0]), *args])})"
    if kind == SignalKind.SOUNDFILE_BUFFER:
        label, channel = signal.payload
        return f"{kind}({', '.join([_label(label), str(channel), *args])})"
    if kind in (SignalKind.FCONST, SignalKind.FVAR):
        foreign_type, name, file = signal.payload
        return f"{kind}({foreign_type}, {name}, <{file}>)"
    if kind == SignalKind.REC_REF:
        name, index = signal.payload
        return f"{name}[{index}]"
    if kind == SignalKind.REC_GROUP:
        return f"rec {signal.payload[0]} = ({', '.join(args)})"
    if kind == SignalKind.PROJ:
        return f"proj{signal.payload[0]}({args[0]})"
    # delay, delay1 and attach render as plain applications.
    return f"{kind}({', '.join(args)})"
