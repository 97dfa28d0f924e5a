"""Message contract between the interactive side and the background worker.

Wire shapes (camelCase keys, exactly)::

    {"type": "batch", "payload": {"cells": {...}, "cellsToEvaluate": ["A3"]}}
    {"type": "all",   "payload": {"cells": {...}}}
    {"type": "result", "payload": {"cells": {"A3": {"rawValue": "=...", "value": "3", "calculatedValue": 3}}}}
    {"type": "error",  "payload": {"message": "..."}}
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """Serialise to the exact wire shape."""
        return self.model_dump(by_alias=True, exclude_none=True)


class RequestPayload(_WireModel):
    cells: dict[str, dict[str, Any]] = Field(default_factory=dict)
    cells_to_evaluate: list[str] | None = Field(default=None, alias="cellsToEvaluate")


class RecalcRequest(_WireModel):
    type: Literal["batch", "all"]
    payload: RequestPayload

    @classmethod
    def batch(cls, cells: dict[str, dict[str, Any]], cells_to_evaluate: list[str]) -> RecalcRequest:
        return cls(type="batch", payload=RequestPayload(cells=cells, cells_to_evaluate=list(cells_to_evaluate)))

    @classmethod
    def all(cls, cells: dict[str, dict[str, Any]]) -> RecalcRequest:
        return cls(type="all", payload=RequestPayload(cells=cells))


class ComputedCell(_WireModel):
    """One evaluated cell: the raw text it was computed from plus its results."""

    raw_value: str = Field(alias="rawValue")
    value: str
    calculated_value: Any = Field(default=None, alias="calculatedValue")

    def to_wire(self) -> dict[str, Any]:
        # calculatedValue of a blank result is a real null, not an absent key
        return self.model_dump(by_alias=True)


class ResultPayload(_WireModel):
    cells: dict[str, ComputedCell] = Field(default_factory=dict)

    def to_wire(self) -> dict[str, Any]:
        return {"cells": {cid: cell.to_wire() for cid, cell in self.cells.items()}}


class ErrorPayload(_WireModel):
    message: str


class RecalcResponse(_WireModel):
    type: Literal["result", "error"]
    payload: ResultPayload | ErrorPayload

    @classmethod
    def result(cls, cells: dict[str, ComputedCell]) -> RecalcResponse:
        return cls(type="result", payload=ResultPayload(cells=cells))

    @classmethod
    def error(cls, message: str) -> RecalcResponse:
        return cls(type="error", payload=ErrorPayload(message=message))

    @classmethod
    def from_wire(cls, message: dict[str, Any]) -> RecalcResponse:
        """Parse a wire dict, choosing the payload model from ``type``."""
        kind = message.get("type")
        payload = message.get("payload") or {}
        if kind == "result":
            return cls(type="result", payload=ResultPayload.model_validate(payload))
        if kind == "error":
            return cls(type="error", payload=ErrorPayload.model_validate(payload))
        raise ValueError(f"Unknown response type: {kind!r}")

    @property
    def is_error(self) -> bool:
        return self.type == "error"

    def to_wire(self) -> dict[str, Any]:
        return {"type": self.type, "payload": self.payload.to_wire()}
