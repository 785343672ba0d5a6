"""Training callbacks for transfer_classifier."""

from transfer_classifier.callbacks.epoch_report import EpochReportCallback
from transfer_classifier.callbacks.model_info import ModelInfoCallback
from transfer_classifier.callbacks.plotting import TrainingHistoryCallback

__all__ = [
    "EpochReportCallback",
    "ModelInfoCallback",
    "TrainingHistoryCallback",
]
