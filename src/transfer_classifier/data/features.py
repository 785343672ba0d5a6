"""Dataset-to-features pipeline: scan results -> decode pool -> feature batches."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from torch import nn
from tqdm import tqdm

from transfer_classifier.config import PipelineConfig
from transfer_classifier.data.assembler import BatchAssembler
from transfer_classifier.data.decoder import Decoder, decode_image
from transfer_classifier.data.pool import TaskExecutorPool
from transfer_classifier.data.scanner import DatasetLayout
from transfer_classifier.data.store import BatchStore
from transfer_classifier.schemas.task import PoolSummary


class FeatureExtractionResult(BaseModel):
    """Stored feature batches plus the accounting for how they were built."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    store: BatchStore
    pool: PoolSummary
    processed: int
    failed: int
    flush_sizes: list[int]


def extract_feature_batches(
    layout: DatasetLayout,
    extractor: nn.Module,
    config: PipelineConfig,
    decoder: Decoder = decode_image,
    poll_interval: float = 0.5,
) -> FeatureExtractionResult:
    """Decode every task in parallel and flush features batch by batch.

    The coordinator runs in the calling thread: it consumes pool results as
    they arrive, normalizes them and invokes ``extractor`` once per batch.
    """
    assembler = BatchAssembler(
        extractor=extractor,
        num_classes=layout.num_classes,
        batch_size=config.batch_size,
        image_size=config.image_size,
        store=BatchStore(),
    )
    with TaskExecutorPool(
        decoder=decoder,
        num_workers=config.num_workers,
        image_size=config.image_size,
        queue_size=config.queue_size,
        start_method=config.start_method,
        poll_interval=poll_interval,
    ) as pool:
        pool.dispatch(layout.tasks)
        for result in tqdm(
            pool.results(), total=len(layout.tasks), desc="Decoding", unit="img"
        ):
            assembler.add(result)
        summary = pool.join()

    store = assembler.finalize()
    return FeatureExtractionResult(
        store=store,
        pool=summary,
        processed=assembler.processed,
        failed=assembler.failed,
        flush_sizes=list(assembler.flush_sizes),
    )
