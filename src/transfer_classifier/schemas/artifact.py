"""Model artifact schemas: manifest document and weight specifications.

The manifest links the head topology to a single binary weight blob.  Each
:class:`WeightSpec` records where its bytes live in the blob, so a reader can
rebuild tensors without re-deriving shapes from the topology.
"""

from __future__ import annotations

import math
from typing import Any, Literal

from pydantic import BaseModel, Field

ARTIFACT_FORMAT = "transfer-classifier/head"
ARTIFACT_FORMAT_VERSION = 1

WeightDType = Literal["float32", "float16", "int32", "int64"]

DTYPE_ITEMSIZE: dict[str, int] = {
    "float32": 4,
    "float16": 2,
    "int32": 4,
    "int64": 8,
}


class WeightSpec(BaseModel, frozen=True):
    """Name, shape, dtype and byte range of one weight tensor in the blob."""

    name: str
    shape: list[int]
    dtype: WeightDType
    offset: int = Field(ge=0)
    byte_length: int = Field(ge=0)

    @property
    def num_elements(self) -> int:
        return math.prod(self.shape)


class WeightsGroup(BaseModel, frozen=True):
    """Weight blob file(s) and the specs they contain."""

    paths: list[str]
    weights: list[WeightSpec]


class ModelManifest(BaseModel, frozen=True):
    """Contents of ``model.json``."""

    format: str
    format_version: int
    generated_by: str
    topology: dict[str, Any]
    weights_manifest: list[WeightsGroup]


class ModelArtifact(BaseModel, frozen=True):
    """A fully loaded artifact: topology, raw weights and class names."""

    topology: dict[str, Any]
    weight_blob: bytes
    weight_specs: list[WeightSpec]
    class_names: list[str] | None = None
