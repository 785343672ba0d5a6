"""Frozen torchvision backbones used as feature extractors."""

from __future__ import annotations

import torch
import torchvision.models as tv_models
from loguru import logger
from torch import nn

from transfer_classifier.config import BackboneConfig, BackboneName


def _build_trunk(name: BackboneName, pretrained: bool) -> nn.Module:
    """Convolutional trunk of ``name`` with the classifier removed."""
    if name == "mobilenet_v3_small":
        weights = tv_models.MobileNet_V3_Small_Weights.DEFAULT if pretrained else None
        return tv_models.mobilenet_v3_small(weights=weights).features
    if name == "mobilenet_v2":
        weights = tv_models.MobileNet_V2_Weights.DEFAULT if pretrained else None
        return tv_models.mobilenet_v2(weights=weights).features
    if name == "resnet18":
        weights = tv_models.ResNet18_Weights.DEFAULT if pretrained else None
        resnet = tv_models.resnet18(weights=weights)
        # everything except avgpool and fc
        return nn.Sequential(*list(resnet.children())[:-2])
    raise ValueError(f"Unknown backbone: {name}")


class FeatureExtractor(nn.Module):
    """Frozen backbone mapping normalized images to flat feature vectors.

    Accepts channels-last batches ``(B, H, W, 3)`` as produced by
    :func:`~transfer_classifier.transforms.normalize_rgba` and returns
    ``(B, feature_dim)``.  Parameters never require grad and the module is
    pinned to eval mode.

    Pass ``pretrained=False`` in tests to skip the weight download.
    """

    def __init__(
        self,
        name: BackboneName = "mobilenet_v3_small",
        pretrained: bool = True,
        pooling: bool = False,
        image_size: int = 224,
    ) -> None:
        super().__init__()
        self.name = name
        self.pooling = pooling
        self.image_size = image_size
        self.trunk = _build_trunk(name, pretrained)
        self.trunk.requires_grad_(False)
        self.eval()

        with torch.no_grad():
            probe = torch.zeros(1, image_size, image_size, 3)
            self.feature_dim = int(self(probe).shape[1])
        logger.info(
            f"FeatureExtractor: {name} (pretrained={pretrained}, "
            f"pooling={pooling}) -> feature_dim={self.feature_dim}"
        )

    @classmethod
    def from_config(cls, config: BackboneConfig, image_size: int) -> FeatureExtractor:
        return cls(
            name=config.name,
            pretrained=config.pretrained,
            pooling=config.pooling,
            image_size=image_size,
        )

    def train(self, mode: bool = True) -> FeatureExtractor:
        # Frozen: BatchNorm statistics must never update.
        return super().train(False)

    def forward(self, images: torch.Tensor) -> torch.Tensor:
        if images.dim() != 4 or images.shape[-1] != 3:
            raise ValueError(
                f"Expected channels-last batch (B, H, W, 3), got {tuple(images.shape)}"
            )
        fmap = self.trunk(images.permute(0, 3, 1, 2).contiguous())
        if self.pooling:
            fmap = torch.nn.functional.adaptive_avg_pool2d(fmap, 1)
        return fmap.flatten(1)
