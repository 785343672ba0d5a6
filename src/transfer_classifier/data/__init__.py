"""Data pipeline for transfer_classifier."""

from transfer_classifier.data.assembler import BatchAssembler
from transfer_classifier.data.decoder import decode_image
from transfer_classifier.data.features import (
    FeatureExtractionResult,
    extract_feature_batches,
)
from transfer_classifier.data.pool import TaskExecutorPool, partition_tasks
from transfer_classifier.data.scanner import DatasetLayout, scan_dataset
from transfer_classifier.data.store import BatchStore

__all__ = [
    "BatchAssembler",
    "BatchStore",
    "DatasetLayout",
    "FeatureExtractionResult",
    "TaskExecutorPool",
    "decode_image",
    "extract_feature_batches",
    "partition_tasks",
    "scan_dataset",
]
