"""Immutable bundle of everything a prediction needs."""

from __future__ import annotations

from pathlib import Path

from loguru import logger
from pydantic import BaseModel, ConfigDict

from transfer_classifier.config import BackboneConfig
from transfer_classifier.io.artifact import load_head
from transfer_classifier.models.backbone import FeatureExtractor
from transfer_classifier.models.head import ClassifierHead


class InferenceContext(BaseModel):
    """Loaded backbone, head and class names.

    Built once by :meth:`load` and passed explicitly into every prediction.
    Nothing in it is mutated after construction; both modules are in eval
    mode and only ever run forward passes.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    extractor: FeatureExtractor
    head: ClassifierHead
    class_names: tuple[str, ...] | None = None
    image_size: int = 224

    @classmethod
    def load(
        cls,
        model_dir: str | Path,
        backbone: BackboneConfig | None = None,
        image_size: int = 224,
    ) -> InferenceContext:
        """Load the backbone and the saved head.

        Raises:
            ArtifactNotFoundError: required artifact files are missing.
            ArtifactFormatError: the artifact cannot be read.
        """
        backbone = backbone or BackboneConfig()
        logger.info(f"Loading {backbone.name} backbone...")
        extractor = FeatureExtractor.from_config(backbone, image_size)

        logger.info(f"Loading classifier head from {model_dir}...")
        head, class_names = load_head(model_dir)
        if head.hparams["feature_dim"] != extractor.feature_dim:
            raise ValueError(
                f"Head expects feature_dim={head.hparams['feature_dim']} but "
                f"{backbone.name} at {image_size}px produces {extractor.feature_dim}"
            )
        logger.info(
            f"Inference context ready: {head.num_classes} classes"
            + (f" ({', '.join(class_names)})" if class_names else "")
        )
        return cls(
            extractor=extractor,
            head=head,
            class_names=tuple(class_names) if class_names is not None else None,
            image_size=image_size,
        )

    @property
    def num_classes(self) -> int:
        return self.head.num_classes

    def label_for(self, class_id: int) -> str:
        if self.class_names is None:
            return f"Class {class_id}"
        return self.class_names[class_id]
