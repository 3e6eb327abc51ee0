from __future__ import annotations

import re

import pytest
from pydantic import ValidationError

from boxflow.app.core.config import Settings
from boxflow.app.engine.algebra import box_par, box_rec, box_route, box_seq, box_split
from boxflow.app.engine.context import lib_context
from boxflow.app.engine.errors import MalformedGraphError
from boxflow.app.engine.flattener import boxes_to_signals, flatten
from boxflow.app.engine.primitives import (
    box_add,
    box_hslider,
    box_int,
    box_mul,
    box_real,
    box_soundfile,
    box_wire,
)
from boxflow.app.engine.resolver import CycleResolver
from boxflow.app.models.box import BoxKind
from boxflow.app.models.document import BoxGraphDocument
from boxflow.app.services.document_service import DocumentService

def _sample_graph():
    counter = box_rec(box_split(box_add(), box_par(box_wire(), box_wire())), box_wire())
    slider = box_hslider("gain", box_real(0.5), box_real(0.0), box_real(1.0), box_real(0.01))
    two = box_int(2)
    swap = box_route(two, two, box_par(box_par(box_int(1), two), box_par(two, box_int(1))))
    voices = box_seq(box_par(box_seq(box_int(1), counter), slider), swap)
    return box_seq(voices, box_mul())

def _without_group_names(signals) -> list[str]:
    # Group names carry box indices, which differ between stores.
    return [re.sub(r"W\d+", "W", str(signal)) for signal in signals]

def test_exported_graph_imports_to_the_same_signals() -> None:
    service = DocumentService()
    with lib_context(Settings()):
        root = _sample_graph()
        arity = root.arity
        expected = _without_group_names(flatten(root))
        document = service.export_graph(root)

    restored = BoxGraphDocument.model_validate(document.model_dump(mode="json"))
    with lib_context(Settings()) as context:
        imported = service.import_graph(context, restored)

        assert imported.arity == arity
        assert _without_group_names(flatten(imported)) == expected

def test_export_lists_operands_before_their_users(context) -> None:
    document = DocumentService().export_graph(_sample_graph())

    seen: set[str] = set()
    for node in document.nodes:
        assert all(operand in seen for operand in node.operands)
        seen.add(node.id)
    assert document.nodes[-1].id == document.root

def test_soundfile_payload_survives_export(context) -> None:
    root = box_soundfile("voice.wav", box_int(1), box_int(0), box_int(0))
    document = DocumentService().export_graph(root)

    soundfiles = [node for node in document.nodes if node.kind == BoxKind.SOUNDFILE]
    assert [node.payload for node in soundfiles] == [["voice.wav", 1]]

def test_internal_kinds_cannot_be_imported() -> None:
    with pytest.raises(ValidationError, match="cycle resolver"):
        BoxGraphDocument.model_validate(
            {
                "nodes": [{"id": "tap", "kind": "feedback_tap", "payload": ["W", 0], "inputs": 0, "outputs": 1}],
                "root": "tap",
            }
        )

@pytest.mark.parametrize(
    ("document", "message"),
    [
        ({"nodes": [], "root": "x"}, "at least one node"),
        (
            {
                "nodes": [
                    {"id": "a", "kind": "wire", "inputs": 1, "outputs": 1},
                    {"id": "a", "kind": "wire", "inputs": 1, "outputs": 1},
                ],
                "root": "a",
            },
            "unique",
        ),
        ({"nodes": [{"id": "a", "kind": "wire", "inputs": 1, "outputs": 1}], "root": "b"}, "not a node"),
        (
            {
                "nodes": [{"id": "a", "kind": "seq", "operands": ["b", "c"], "inputs": 0, "outputs": 0}],
                "root": "a",
            },
            "unknown operand",
        ),
    ],
)
def test_document_structure_is_validated(document: dict, message: str) -> None:
    with pytest.raises(ValidationError, match=message):
        BoxGraphDocument.model_validate(document)

@pytest.mark.parametrize(
    "node",
    [
        {"id": "n", "kind": "int", "payload": [1.5], "inputs": 0, "outputs": 1},
        {"id": "n", "kind": "int", "payload": [True], "inputs": 0, "outputs": 1},
        {"id": "n", "kind": "binary_op", "payload": ["plus"], "inputs": 2, "outputs": 1},
        {"id": "n", "kind": "wire", "payload": [1], "inputs": 1, "outputs": 1},
        {"id": "n", "kind": "button", "payload": [], "inputs": 0, "outputs": 1},
    ],
)
def test_invalid_payloads_are_malformed(context, node: dict) -> None:
    document = BoxGraphDocument.model_validate({"nodes": [node], "root": "n"})

    with pytest.raises(MalformedGraphError, match="invalid"):
        DocumentService().import_graph(context, document)

def test_signal_export_shares_common_subexpressions(context) -> None:
    one = box_int(1)
    root = box_split(box_add(one, box_int(2)), box_par(box_wire(), box_wire()))
    signals = flatten(root)

    exported = DocumentService().export_signals(signals)

    assert len(exported.outputs) == 2
    assert exported.outputs[0] == exported.outputs[1]
    assert [node.kind for node in exported.nodes] == ["int", "int", "binary_op"]
    add = exported.nodes[-1]
    assert add.payload == ["add"]
    assert add.children == [exported.nodes[0].id, exported.nodes[1].id]

@pytest.mark.parametrize(
    "node",
    [
        {"id": "n", "kind": "select", "payload": [-1], "inputs": 0, "outputs": 1},
        {"id": "n", "kind": "select", "payload": [0], "inputs": 1, "outputs": 1},
        {"id": "n", "kind": "soundfile", "payload": ["voice.wav", 0], "inputs": 2, "outputs": 2},
    ],
)
def test_out_of_range_leaf_payloads_are_malformed(context, node: dict) -> None:
    document = BoxGraphDocument.model_validate({"nodes": [node], "root": "n"})
    root = DocumentService().import_graph(context, document)

    with pytest.raises(MalformedGraphError, match="unusable payload"):
        CycleResolver(context).resolve(root)

def test_closed_select_without_choices_reports_an_error(context) -> None:
    document = BoxGraphDocument.model_validate(
        {"nodes": [{"id": "n", "kind": "select", "payload": [-1], "inputs": 0, "outputs": 1}], "root": "n"}
    )
    root = DocumentService().import_graph(context, document)

    signals, error = boxes_to_signals(root)

    assert signals == []
    assert error.startswith("MalformedGraphError")
    assert "positive int number of choices" in error
