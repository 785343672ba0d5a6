"""Single-image inference mirroring the training preprocessing."""

from __future__ import annotations

from pathlib import Path

import torch

from transfer_classifier.data.decoder import Decoder, decode_image
from transfer_classifier.inference.context import InferenceContext
from transfer_classifier.schemas.prediction import ClassScore, PredictionResult
from transfer_classifier.tensors import tensor_scope
from transfer_classifier.transforms.normalization import normalize_rgba


def predict_image(
    context: InferenceContext,
    image_path: str | Path,
    decoder: Decoder = decode_image,
) -> PredictionResult:
    """Classify one image synchronously.

    decode -> normalize -> extract (batch of one) -> head -> softmax.  Every
    intermediate tensor lives in a tensor scope and is released before this
    returns, whether or not a step raises.
    """
    buffer = decoder(str(image_path), context.image_size)
    with tensor_scope("predict") as scope:
        image = scope.track(normalize_rgba(buffer, context.image_size))
        batch = scope.track(image.unsqueeze(0))
        features = scope.track(context.extractor(batch))
        probs = scope.track(context.head.predict_proba(features)[0])
        class_id = int(torch.argmax(probs).item())
        scores = probs.tolist()

    return PredictionResult(
        class_id=class_id,
        label=context.label_for(class_id),
        confidence=scores[class_id],
        scores=[
            ClassScore(label=context.label_for(i), score=score)
            for i, score in enumerate(scores)
        ],
    )
