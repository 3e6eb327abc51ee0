from __future__ import annotations

import pytest

from boxflow.app.engine.algebra import box_par, box_seq
from boxflow.app.engine.errors import ArityMismatch
from boxflow.app.engine.primitives import (
    box_abs,
    box_add,
    box_atan2,
    box_button,
    box_checkbox,
    box_cut,
    box_delay,
    box_fconst,
    box_float_cast,
    box_fvar,
    box_hbargraph,
    box_hslider,
    box_int,
    box_int_cast,
    box_num_entry,
    box_read_only_table,
    box_real,
    box_select,
    box_select2,
    box_select3,
    box_soundfile,
    box_vslider,
    box_waveform,
    box_wire,
    box_write_read_table,
    box_xor,
)
from boxflow.app.models.box import BinaryOperator, BoxKind, ForeignType


@pytest.mark.parametrize(
    ("factory", "expected"),
    [
        (box_wire, (1, 1)),
        (box_cut, (1, 0)),
        (lambda: box_int(4), (0, 1)),
        (lambda: box_real(0.25), (0, 1)),
        (box_add, (2, 1)),
        (box_xor, (2, 1)),
        (box_atan2, (2, 1)),
        (box_abs, (1, 1)),
        (box_delay, (2, 1)),
        (box_int_cast, (1, 1)),
        (box_float_cast, (1, 1)),
        (box_select2, (3, 1)),
        (box_select3, (4, 1)),
        (lambda: box_select(5), (6, 1)),
        (box_read_only_table, (2, 1)),
        (box_write_read_table, (3, 1)),
        (lambda: box_button("play"), (0, 1)),
        (lambda: box_checkbox("mute"), (0, 1)),
        (lambda: box_fconst(ForeignType.INT, "fSamplingFreq", "<math.h>"), (0, 1)),
        (lambda: box_fvar(ForeignType.REAL, "count", "counter.h"), (0, 1)),
    ],
)
def test_leaf_arity_is_fixed(context, factory, expected) -> None:
    first = factory()
    second = factory()

    assert first.arity == expected
    assert second.arity == first.arity


def test_identical_leaves_are_shared(context) -> None:
    assert box_int(3) is box_int(3)
    assert box_int(3) != box_int(4)
    assert box_real(0.0) != box_real(-0.0)
    assert box_add() is box_add()
    assert box_add().payload == (BinaryOperator.ADD,)


def test_sliders_keep_label_verbatim(context) -> None:
    label = "gain [unit:dB] [midi:ctrl 7] [style:knob"
    slider = box_hslider(label, box_real(0.5), box_real(0.0), box_real(1.0), box_real(0.01))

    assert slider.kind == BoxKind.HSLIDER
    assert slider.arity == (0, 1)
    assert slider.payload == (label,)
    assert [operand.payload[0] for operand in slider.operands] == [0.5, 0.0, 1.0, 0.01]


def test_slider_parameters_must_be_constant_expressions(context) -> None:
    with pytest.raises(ArityMismatch) as info:
        box_vslider("freq", box_wire(), box_int(20), box_int(20000), box_int(1))

    assert info.value.operator == "vslider"
    assert info.value.left == (1, 1)

    entry = box_num_entry("voices", box_add(box_int(1), box_int(1)), box_int(1), box_int(8), box_int(1))
    assert entry.arity == (0, 1)


def test_soundfile_outputs_follow_channel_count(context) -> None:
    sound = box_soundfile("piano[url:{'a.wav';'b.wav'}]", box_int(2))

    assert sound.arity == (2, 4)
    assert sound.payload == ("piano[url:{'a.wav';'b.wav'}]", 2)

    with pytest.raises(ArityMismatch):
        box_soundfile("bad", box_real(2.0))
    with pytest.raises(ArityMismatch):
        box_soundfile("bad", box_int(0))


def test_waveform_takes_numeric_constants_only(context) -> None:
    wave = box_waveform([box_int(0), box_real(0.5), box_int(1)])

    assert wave.arity == (0, 2)
    assert len(wave.operands) == 3

    with pytest.raises(ArityMismatch):
        box_waveform([box_int(0), box_add(box_int(1), box_int(2))])


def test_applied_operator_is_sugar_for_seq_of_par(context) -> None:
    one = box_int(1)
    half = box_real(0.5)

    applied = box_add(one, half)

    assert applied is box_seq(box_par(one, half), box_add())
    assert applied.arity == (0, 1)
    assert box_abs(applied).arity == (0, 1)
    assert box_hbargraph("level", box_int(0), box_int(1), applied).arity == (0, 1)


def test_applied_operator_needs_every_input(context) -> None:
    with pytest.raises(TypeError):
        box_add(box_int(1))


def test_constructors_reject_wrong_parameter_types(context) -> None:
    with pytest.raises(TypeError):
        box_int(True)
    with pytest.raises(TypeError):
        box_int(1.5)
    with pytest.raises(ValueError):
        box_select(0)
