from __future__ import annotations

from typing import Callable, Sequence

from boxflow.app.engine.algebra import compose, par_all
from boxflow.app.engine.context import BoxContext, get_active_context
from boxflow.app.engine.errors import ArityMismatch
from boxflow.app.engine.store import Box
from boxflow.app.models.box import (
    BARGRAPH_KINDS,
    UI_CONTROL_KINDS,
    Arity,
    BinaryOperator,
    BoxKind,
    BoxNode,
    BoxPayload,
    ForeignType,
    UnaryOperator,
)

FIXED_LEAF_ARITIES: dict[BoxKind, Arity] = {
    BoxKind.INT: Arity(0, 1),
    BoxKind.REAL: Arity(0, 1),
    BoxKind.WIRE: Arity(1, 1),
    BoxKind.CUT: Arity(1, 0),
    BoxKind.BINARY_OP: Arity(2, 1),
    BoxKind.UNARY_OP: Arity(1, 1),
    BoxKind.DELAY: Arity(2, 1),
    BoxKind.INT_CAST: Arity(1, 1),
    BoxKind.FLOAT_CAST: Arity(1, 1),
    BoxKind.READ_ONLY_TABLE: Arity(2, 1),
    BoxKind.WRITE_READ_TABLE: Arity(3, 1),
    BoxKind.WAVEFORM: Arity(0, 2),
    BoxKind.FCONST: Arity(0, 1),
    BoxKind.FVAR: Arity(0, 1),
    BoxKind.BUTTON: Arity(0, 1),
    BoxKind.CHECKBOX: Arity(0, 1),
    BoxKind.VSLIDER: Arity(0, 1),
    BoxKind.HSLIDER: Arity(0, 1),
    BoxKind.NUM_ENTRY: Arity(0, 1),
    BoxKind.VBARGRAPH: Arity(1, 1),
    BoxKind.HBARGRAPH: Arity(1, 1),
    BoxKind.FEEDBACK_TAP: Arity(0, 1),
}

UI_PARAMETER_NAMES = ("init", "min", "max", "step")
BARGRAPH_PARAMETER_NAMES = ("min", "max")
CONSTANT_KINDS = frozenset({BoxKind.INT, BoxKind.REAL})


def leaf_arity(kind: BoxKind, payload: BoxPayload) -> Arity:
    fixed = FIXED_LEAF_ARITIES.get(kind)
    if fixed is not None:
        return fixed
    if kind == BoxKind.SELECT:
        choices = payload[0]
        if isinstance(choices, bool) or not isinstance(choices, int) or choices < 1:
            raise ValueError(f"select needs a positive int number of choices, got {choices!r}")
        return Arity(choices + 1, 1)
    if kind == BoxKind.SOUNDFILE:
        channels = payload[1]
        if isinstance(channels, bool) or not isinstance(channels, int) or channels < 1:
            raise ValueError(f"soundfile needs at least one channel, got {channels!r}")
        return Arity(2, channels + 2)
    raise ValueError(f"'{kind}' is not a leaf box kind")


def check_leaf_operands(kind: BoxKind, operands: Sequence[BoxNode]) -> None:
    """Raise ArityMismatch when a parameterized leaf gets unusable parameter boxes."""
    if kind in UI_CONTROL_KINDS or kind in BARGRAPH_KINDS:
        names = UI_PARAMETER_NAMES if kind in UI_CONTROL_KINDS else BARGRAPH_PARAMETER_NAMES
        if len(operands) != len(names):
            raise ArityMismatch(
                kind.value, Arity(0, len(operands)), Arity(0, len(names)), f"expected {len(names)} parameter boxes"
            )
        for name, operand in zip(names, operands):
            if operand.arity != (0, 1):
                raise ArityMismatch(
                    kind.value, operand.arity, Arity(0, 1), f"{name} must be a constant expression (0->1 box)"
                )
        return

    if kind == BoxKind.WAVEFORM:
        for position, operand in enumerate(operands):
            if operand.kind not in CONSTANT_KINDS:
                raise ArityMismatch(
                    "waveform", operand.arity, Arity(0, 1), f"value {position} must be an int or real box"
                )
        return

    if operands:
        raise ArityMismatch(kind.value, Arity(0, len(operands)), Arity(0, 0), "primitive takes no parameter boxes")


def make_leaf(
    context: BoxContext,
    kind: BoxKind,
    payload: BoxPayload = (),
    operands: Sequence[Box] = (),
) -> Box:
    context.check(*operands)
    check_leaf_operands(kind, [operand.node for operand in operands])
    return context.store.intern(
        kind,
        payload,
        tuple(operand.index for operand in operands),
        leaf_arity(kind, payload),
    )


def _leaf(kind: BoxKind, payload: BoxPayload = (), operands: Sequence[Box] = ()) -> Box:
    return make_leaf(get_active_context(), kind, payload, operands)


def _apply(primitive: Box, args: tuple[Box | None, ...]) -> Box:
    """Either the bare primitive, or the primitive fed by all of its input boxes."""
    given = [arg for arg in args if arg is not None]
    if not given:
        return primitive
    if len(given) != len(args):
        raise TypeError(f"Expected either no input boxes or all {len(args)} of them, got {len(given)}")
    context = get_active_context()
    return compose(context, BoxKind.SEQ, par_all(context, given), primitive)


def _label(label: str) -> str:
    if not isinstance(label, str):
        raise TypeError(f"Labels must be strings, got {type(label).__name__}")
    return label


def box_int(n: int) -> Box:
    """Constant integer: for all t, x(t) = n."""
    if isinstance(n, bool) or not isinstance(n, int):
        raise TypeError(f"box_int() expects an int, got {type(n).__name__}")
    return _leaf(BoxKind.INT, (n,))


def box_real(n: float) -> Box:
    """Constant real: for all t, x(t) = n."""
    if isinstance(n, bool) or not isinstance(n, (int, float)):
        raise TypeError(f"box_real() expects a number, got {type(n).__name__}")
    return _leaf(BoxKind.REAL, (float(n),))


def box_wire() -> Box:
    return _leaf(BoxKind.WIRE)


def box_cut() -> Box:
    return _leaf(BoxKind.CUT)


def box_delay(x: Box | None = None, amount: Box | None = None) -> Box:
    return _apply(_leaf(BoxKind.DELAY), (x, amount))


def box_int_cast(x: Box | None = None) -> Box:
    return _apply(_leaf(BoxKind.INT_CAST), (x,))


def box_float_cast(x: Box | None = None) -> Box:
    return _apply(_leaf(BoxKind.FLOAT_CAST), (x,))


def box_read_only_table(init: Box | None = None, read_index: Box | None = None) -> Box:
    return _apply(_leaf(BoxKind.READ_ONLY_TABLE), (init, read_index))


def box_write_read_table(
    write_index: Box | None = None,
    write_signal: Box | None = None,
    read_index: Box | None = None,
) -> Box:
    return _apply(_leaf(BoxKind.WRITE_READ_TABLE), (write_index, write_signal, read_index))


def box_waveform(values: Sequence[Box]) -> Box:
    """A constant waveform; outputs its size and its content."""
    return _leaf(BoxKind.WAVEFORM, (), tuple(values))


def box_soundfile(label: str, chan: Box, part: Box | None = None, read_index: Box | None = None) -> Box:
    """Soundfile reader with chan channels.

    Inputs are (part, read index); outputs are length, rate and one buffer per
    channel. The label may carry a url list and is kept verbatim.
    """
    context = get_active_context()
    context.check(chan)
    channels = chan.payload[0] if chan.kind == BoxKind.INT else None
    if channels is None or channels < 1:
        raise ArityMismatch("soundfile", chan.arity, Arity(0, 1), "chan must be an int box >= 1")
    primitive = make_leaf(context, BoxKind.SOUNDFILE, (_label(label), channels))
    return _apply(primitive, (part, read_index))


def box_select(n: int, *inputs: Box | None) -> Box:
    """n-way selector: the first input picks which of the other n inputs is output."""
    if isinstance(n, bool) or not isinstance(n, int) or n < 1:
        raise ValueError(f"box_select() needs a positive int number of choices, got {n!r}")
    primitive = _leaf(BoxKind.SELECT, (n,))
    return _apply(primitive, inputs) if inputs else primitive


def box_select2(selector: Box | None = None, x: Box | None = None, y: Box | None = None) -> Box:
    return _apply(box_select(2), (selector, x, y))


def box_select3(
    selector: Box | None = None,
    x: Box | None = None,
    y: Box | None = None,
    z: Box | None = None,
) -> Box:
    return _apply(box_select(3), (selector, x, y, z))


def box_fconst(type: ForeignType, name: str, file: str) -> Box:
    """Foreign constant `name`, declared in include file `file`."""
    return _leaf(BoxKind.FCONST, (ForeignType(type), name, file))


def box_fvar(type: ForeignType, name: str, file: str) -> Box:
    """Foreign variable `name`, declared in include file `file`."""
    return _leaf(BoxKind.FVAR, (ForeignType(type), name, file))


def box_bin_op(op: BinaryOperator, x: Box | None = None, y: Box | None = None) -> Box:
    return _apply(_leaf(BoxKind.BINARY_OP, (BinaryOperator(op),)), (x, y))


def box_unary_op(op: UnaryOperator, x: Box | None = None) -> Box:
    return _apply(_leaf(BoxKind.UNARY_OP, (UnaryOperator(op),)), (x,))


def _binary(op: BinaryOperator) -> Callable[..., Box]:
    def constructor(x: Box | None = None, y: Box | None = None) -> Box:
        return box_bin_op(op, x, y)

    constructor.__doc__ = f"The {op.value} operator (2->1), applied to x and y when both are given."
    return constructor


def _unary(op: UnaryOperator) -> Callable[..., Box]:
    def constructor(x: Box | None = None) -> Box:
        return box_unary_op(op, x)

    constructor.__doc__ = f"The {op.value} function (1->1), applied to x when given."
    return constructor


box_add = _binary(BinaryOperator.ADD)
box_sub = _binary(BinaryOperator.SUB)
box_mul = _binary(BinaryOperator.MUL)
box_div = _binary(BinaryOperator.DIV)
box_rem = _binary(BinaryOperator.REM)
box_left_shift = _binary(BinaryOperator.LSH)
box_lright_shift = _binary(BinaryOperator.LRSH)
box_aright_shift = _binary(BinaryOperator.ARSH)
box_gt = _binary(BinaryOperator.GT)
box_lt = _binary(BinaryOperator.LT)
box_ge = _binary(BinaryOperator.GE)
box_le = _binary(BinaryOperator.LE)
box_eq = _binary(BinaryOperator.EQ)
box_ne = _binary(BinaryOperator.NE)
box_and = _binary(BinaryOperator.AND)
box_or = _binary(BinaryOperator.OR)
box_xor = _binary(BinaryOperator.XOR)

box_remainder = _binary(BinaryOperator.REMAINDER)
box_pow = _binary(BinaryOperator.POW)
box_min = _binary(BinaryOperator.MIN)
box_max = _binary(BinaryOperator.MAX)
box_fmod = _binary(BinaryOperator.FMOD)
box_atan2 = _binary(BinaryOperator.ATAN2)

box_abs = _unary(UnaryOperator.ABS)
box_acos = _unary(UnaryOperator.ACOS)
box_tan = _unary(UnaryOperator.TAN)
box_sqrt = _unary(UnaryOperator.SQRT)
box_sin = _unary(UnaryOperator.SIN)
box_rint = _unary(UnaryOperator.RINT)
box_log = _unary(UnaryOperator.LOG)
box_log10 = _unary(UnaryOperator.LOG10)
box_floor = _unary(UnaryOperator.FLOOR)
box_exp = _unary(UnaryOperator.EXP)
box_exp10 = _unary(UnaryOperator.EXP10)
box_cos = _unary(UnaryOperator.COS)
box_ceil = _unary(UnaryOperator.CEIL)
box_atan = _unary(UnaryOperator.ATAN)
box_asin = _unary(UnaryOperator.ASIN)


def box_button(label: str) -> Box:
    return _leaf(BoxKind.BUTTON, (_label(label),))


def box_checkbox(label: str) -> Box:
    return _leaf(BoxKind.CHECKBOX, (_label(label),))


def box_vslider(label: str, init: Box, min: Box, max: Box, step: Box) -> Box:
    return _leaf(BoxKind.VSLIDER, (_label(label),), (init, min, max, step))


def box_hslider(label: str, init: Box, min: Box, max: Box, step: Box) -> Box:
    return _leaf(BoxKind.HSLIDER, (_label(label),), (init, min, max, step))


def box_num_entry(label: str, init: Box, min: Box, max: Box, step: Box) -> Box:
    return _leaf(BoxKind.NUM_ENTRY, (_label(label),), (init, min, max, step))


def box_vbargraph(label: str, min: Box, max: Box, x: Box | None = None) -> Box:
    return _apply(_leaf(BoxKind.VBARGRAPH, (_label(label),), (min, max)), (x,))


def box_hbargraph(label: str, min: Box, max: Box, x: Box | None = None) -> Box:
    return _apply(_leaf(BoxKind.HBARGRAPH, (_label(label),), (min, max)), (x,))
