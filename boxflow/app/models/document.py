from __future__ import annotations

from pydantic import BaseModel, Field, JsonValue, field_validator, model_validator

from boxflow.app.models.box import BoxKind
from boxflow.app.models.signal import SignalKind

MAX_DOCUMENT_NODES = 10_000


class BoxNodeDocument(BaseModel):
    id: str = Field(min_length=1)
    kind: BoxKind
    payload: list[JsonValue] = Field(default_factory=list)
    operands: list[str] = Field(default_factory=list)
    inputs: int = Field(ge=0)
    outputs: int = Field(ge=0)

    @field_validator("kind")
    @classmethod
    def reject_internal_kinds(cls, value: BoxKind) -> BoxKind:
        if value.is_internal:
            raise ValueError(f"Box kind '{value}' is produced by the cycle resolver and cannot be imported")
        return value


class BoxGraphDocument(BaseModel):
    schema_version: int = 1
    nodes: list[BoxNodeDocument] = Field(default_factory=list)
    root: str = Field(min_length=1)

    @field_validator("nodes")
    @classmethod
    def validate_node_count(cls, nodes: list[BoxNodeDocument]) -> list[BoxNodeDocument]:
        if not nodes:
            raise ValueError("Box graph must contain at least one node")
        if len(nodes) > MAX_DOCUMENT_NODES:
            raise ValueError(f"Box graph exceeds maximum node count ({MAX_DOCUMENT_NODES})")
        return nodes

    @model_validator(mode="after")
    def validate_references(self) -> "BoxGraphDocument":
        ids = [node.id for node in self.nodes]
        known = set(ids)
        if len(ids) != len(known):
            raise ValueError("Box node IDs must be unique")
        if self.root not in known:
            raise ValueError(f"Root '{self.root}' is not a node of the graph")
        for node in self.nodes:
            missing = [operand for operand in node.operands if operand not in known]
            if missing:
                raise ValueError(f"Node '{node.id}' references unknown operand(s): {', '.join(missing)}")
        return self


class SignalNodeDocument(BaseModel):
    id: str
    kind: SignalKind
    payload: list[JsonValue] = Field(default_factory=list)
    children: list[str] = Field(default_factory=list)


class SignalGraphDocument(BaseModel):
    nodes: list[SignalNodeDocument] = Field(default_factory=list)
    outputs: list[str] = Field(default_factory=list)


class ArityResponse(BaseModel):
    inputs: int
    outputs: int


class CompileResponse(BaseModel):
    inputs: int
    outputs: int
    signals: SignalGraphDocument
    diagnostics: list[str] = Field(default_factory=list)
