from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import NamedTuple


class BoxKind(StrEnum):
    INT = "int"
    REAL = "real"
    WIRE = "wire"
    CUT = "cut"
    BINARY_OP = "binary_op"
    UNARY_OP = "unary_op"
    DELAY = "delay"
    INT_CAST = "int_cast"
    FLOAT_CAST = "float_cast"
    SELECT = "select"
    READ_ONLY_TABLE = "read_only_table"
    WRITE_READ_TABLE = "write_read_table"
    WAVEFORM = "waveform"
    SOUNDFILE = "soundfile"
    FCONST = "fconst"
    FVAR = "fvar"
    BUTTON = "button"
    CHECKBOX = "checkbox"
    VSLIDER = "vslider"
    HSLIDER = "hslider"
    NUM_ENTRY = "num_entry"
    VBARGRAPH = "vbargraph"
    HBARGRAPH = "hbargraph"

    SEQ = "seq"
    PAR = "par"
    SPLIT = "split"
    MERGE = "merge"
    REC = "rec"
    ROUTE = "route"
    ATTACH = "attach"

    # Produced by the cycle resolver only.
    FEEDBACK_TAP = "feedback_tap"
    FEEDBACK_LOOP = "feedback_loop"

    @property
    def is_composite(self) -> bool:
        return self in COMPOSITE_KINDS

    @property
    def is_internal(self) -> bool:
        return self in (BoxKind.FEEDBACK_TAP, BoxKind.FEEDBACK_LOOP)


COMPOSITE_KINDS = frozenset(
    {
        BoxKind.SEQ,
        BoxKind.PAR,
        BoxKind.SPLIT,
        BoxKind.MERGE,
        BoxKind.REC,
        BoxKind.ROUTE,
        BoxKind.ATTACH,
        BoxKind.FEEDBACK_LOOP,
    }
)

UI_CONTROL_KINDS = frozenset({BoxKind.VSLIDER, BoxKind.HSLIDER, BoxKind.NUM_ENTRY})
BARGRAPH_KINDS = frozenset({BoxKind.VBARGRAPH, BoxKind.HBARGRAPH})


class BinaryOperator(StrEnum):
    ADD = "add"
    SUB = "sub"
    MUL = "mul"
    DIV = "div"
    REM = "rem"
    LSH = "lsh"
    ARSH = "arsh"
    LRSH = "lrsh"
    GT = "gt"
    LT = "lt"
    GE = "ge"
    LE = "le"
    EQ = "eq"
    NE = "ne"
    AND = "and"
    OR = "or"
    XOR = "xor"

    REMAINDER = "remainder"
    POW = "pow"
    MIN = "min"
    MAX = "max"
    FMOD = "fmod"
    ATAN2 = "atan2"


class UnaryOperator(StrEnum):
    ABS = "abs"
    ACOS = "acos"
    TAN = "tan"
    SQRT = "sqrt"
    SIN = "sin"
    RINT = "rint"
    LOG = "log"
    LOG10 = "log10"
    FLOOR = "floor"
    EXP = "exp"
    EXP10 = "exp10"
    COS = "cos"
    CEIL = "ceil"
    ATAN = "atan"
    ASIN = "asin"


class ForeignType(StrEnum):
    INT = "int"
    REAL = "real"


class Arity(NamedTuple):
    inputs: int
    outputs: int

    def __str__(self) -> str:
        return f"{self.inputs}->{self.outputs}"


BoxPayload = tuple[object, ...]


@dataclass(frozen=True, slots=True)
class BoxNode:
    """One arena record. Operands are indices into the owning node store."""

    kind: BoxKind
    payload: BoxPayload
    operands: tuple[int, ...]
    arity: Arity
