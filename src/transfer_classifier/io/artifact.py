"""Backend-neutral persistence for the trained classifier head.

A saved model directory contains::

    model.json    manifest: format tags, topology, weight specifications
    weights.bin   raw little-endian weight bytes, state_dict order
    labels.json   ordered class names, index == output channel

Readers check ``format`` and ``format_version`` first so an incompatible file
is rejected instead of misread.
"""

from __future__ import annotations

from pathlib import Path

import numpy as np
import orjson
import torch
from loguru import logger
from pydantic import ValidationError

import transfer_classifier
from transfer_classifier.errors import ArtifactFormatError, ArtifactNotFoundError
from transfer_classifier.models.head import ClassifierHead
from transfer_classifier.schemas.artifact import (
    ARTIFACT_FORMAT,
    ARTIFACT_FORMAT_VERSION,
    DTYPE_ITEMSIZE,
    ModelArtifact,
    ModelManifest,
    WeightsGroup,
    WeightSpec,
)

MANIFEST_FILENAME = "model.json"
WEIGHTS_FILENAME = "weights.bin"
LABELS_FILENAME = "labels.json"

_TORCH_DTYPE_NAMES: dict[torch.dtype, str] = {
    torch.float32: "float32",
    torch.float16: "float16",
    torch.int32: "int32",
    torch.int64: "int64",
}


def _weight_bytes(tensor: torch.Tensor) -> tuple[str, bytes]:
    dtype_name = _TORCH_DTYPE_NAMES.get(tensor.dtype)
    if dtype_name is None:
        raise TypeError(f"Unsupported weight dtype: {tensor.dtype}")
    array = tensor.detach().cpu().contiguous().numpy()
    little = np.ascontiguousarray(array, dtype=array.dtype.newbyteorder("<"))
    return dtype_name, little.tobytes()


def save_artifact(
    head: ClassifierHead,
    class_names: list[str],
    directory: str | Path,
) -> Path:
    """Write the manifest, weight blob and class-name list into ``directory``.

    Returns the manifest path.
    """
    if len(class_names) != head.num_classes:
        raise ValueError(
            f"{len(class_names)} class names for a head with "
            f"{head.num_classes} outputs"
        )
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    specs: list[WeightSpec] = []
    chunks: list[bytes] = []
    offset = 0
    for name, tensor in head.state_dict().items():
        dtype_name, data = _weight_bytes(tensor)
        specs.append(
            WeightSpec(
                name=name,
                shape=list(tensor.shape),
                dtype=dtype_name,  # type: ignore[arg-type]
                offset=offset,
                byte_length=len(data),
            )
        )
        chunks.append(data)
        offset += len(data)
    blob = b"".join(chunks)

    manifest = ModelManifest(
        format=ARTIFACT_FORMAT,
        format_version=ARTIFACT_FORMAT_VERSION,
        generated_by=f"transfer_classifier {transfer_classifier.__version__}",
        topology=head.topology(),
        weights_manifest=[
            WeightsGroup(paths=[f"./{WEIGHTS_FILENAME}"], weights=specs)
        ],
    )

    (directory / WEIGHTS_FILENAME).write_bytes(blob)
    manifest_path = directory / MANIFEST_FILENAME
    manifest_path.write_bytes(
        orjson.dumps(manifest.model_dump(), option=orjson.OPT_INDENT_2)
    )
    (directory / LABELS_FILENAME).write_bytes(orjson.dumps(list(class_names)))

    logger.info(
        f"Saved head to {directory} ({len(specs)} weight tensor(s), "
        f"{len(blob) / 1024:.1f} KB)"
    )
    return manifest_path


def _check_layout(specs: list[WeightSpec], blob_size: int) -> None:
    """Specs must tile the blob exactly: in order, no gaps, no overlaps."""
    cursor = 0
    for spec in specs:
        expected_length = spec.num_elements * DTYPE_ITEMSIZE[spec.dtype]
        if spec.byte_length != expected_length:
            raise ArtifactFormatError(
                f"Weight {spec.name!r}: byte_length {spec.byte_length} does not "
                f"match shape {spec.shape} of {spec.dtype} ({expected_length})"
            )
        if spec.offset != cursor:
            kind = "gap" if spec.offset > cursor else "overlap"
            raise ArtifactFormatError(
                f"Weight {spec.name!r}: {kind} at offset {spec.offset}, "
                f"expected {cursor}"
            )
        cursor += spec.byte_length
    if cursor != blob_size:
        raise ArtifactFormatError(
            f"Weight specs cover {cursor} bytes but blob has {blob_size}"
        )


def load_artifact(directory: str | Path) -> ModelArtifact:
    """Read and validate a saved model directory.

    ``labels.json`` is optional; every other file is required.

    Raises:
        ArtifactNotFoundError: manifest or weight blob is missing.
        ArtifactFormatError: the files exist but are not a readable artifact.
    """
    directory = Path(directory)
    manifest_path = directory / MANIFEST_FILENAME
    if not manifest_path.is_file():
        raise ArtifactNotFoundError(f"Model manifest not found: {manifest_path}")

    try:
        manifest = ModelManifest.model_validate(orjson.loads(manifest_path.read_bytes()))
    except (orjson.JSONDecodeError, ValidationError) as e:
        raise ArtifactFormatError(f"Invalid manifest {manifest_path}: {e}") from e

    if manifest.format != ARTIFACT_FORMAT:
        raise ArtifactFormatError(
            f"Unsupported artifact format {manifest.format!r} "
            f"(expected {ARTIFACT_FORMAT!r})"
        )
    if manifest.format_version != ARTIFACT_FORMAT_VERSION:
        raise ArtifactFormatError(
            f"Unsupported format_version {manifest.format_version} "
            f"(this reader supports {ARTIFACT_FORMAT_VERSION})"
        )
    if len(manifest.weights_manifest) != 1 or len(manifest.weights_manifest[0].paths) != 1:
        raise ArtifactFormatError("Expected exactly one weight blob in weights_manifest")

    group = manifest.weights_manifest[0]
    blob_path = directory / group.paths[0]
    if not blob_path.is_file():
        raise ArtifactNotFoundError(f"Weight blob not found: {blob_path}")
    blob = blob_path.read_bytes()
    _check_layout(group.weights, len(blob))

    class_names: list[str] | None = None
    labels_path = directory / LABELS_FILENAME
    if labels_path.is_file():
        try:
            class_names = [str(name) for name in orjson.loads(labels_path.read_bytes())]
        except orjson.JSONDecodeError as e:
            raise ArtifactFormatError(f"Invalid class-name list {labels_path}: {e}") from e
        num_classes = manifest.topology.get("config", {}).get("num_classes")
        if num_classes is not None and len(class_names) != num_classes:
            raise ArtifactFormatError(
                f"{len(class_names)} class names but topology has "
                f"{num_classes} outputs"
            )
    else:
        logger.warning(f"No {LABELS_FILENAME} in {directory}; labels unavailable")

    return ModelArtifact(
        topology=manifest.topology,
        weight_blob=blob,
        weight_specs=group.weights,
        class_names=class_names,
    )


def build_head(artifact: ModelArtifact) -> ClassifierHead:
    """Instantiate a :class:`ClassifierHead` and load the artifact's weights."""
    try:
        head = ClassifierHead.from_topology(artifact.topology)
    except (KeyError, TypeError, ValueError) as e:
        raise ArtifactFormatError(f"Invalid topology: {e}") from e

    state_dict: dict[str, torch.Tensor] = {}
    for spec in artifact.weight_specs:
        array = np.frombuffer(
            artifact.weight_blob,
            dtype=np.dtype(spec.dtype).newbyteorder("<"),
            count=spec.num_elements,
            offset=spec.offset,
        ).reshape(spec.shape)
        state_dict[spec.name] = torch.from_numpy(array.astype(spec.dtype))

    try:
        head.load_state_dict(state_dict, strict=True)
    except RuntimeError as e:
        raise ArtifactFormatError(f"Weights do not match topology: {e}") from e
    head.eval()
    return head


def load_head(directory: str | Path) -> tuple[ClassifierHead, list[str] | None]:
    """Convenience: :func:`load_artifact` then :func:`build_head`."""
    artifact = load_artifact(directory)
    return build_head(artifact), artifact.class_names
