"""Training history callback — saves head loss and accuracy curve PNGs."""

from __future__ import annotations

from pathlib import Path

import lightning as L
import matplotlib
import matplotlib.pyplot as plt
from loguru import logger


class TrainingHistoryCallback(L.Callback):
    """Plot and save the head's training loss and accuracy curves.

    After each training epoch, overwrites two PNG files:
    - ``loss_history.png``: train/loss per epoch
    - ``accuracy_history.png``: train/acc per epoch

    Args:
        output_dir: Root directory for saved plots.
    """

    def __init__(self, output_dir: str = "outputs") -> None:
        super().__init__()
        self.output_dir = Path(output_dir) / "training_history"
        self.history: dict[str, list[float | None]] = {
            "loss": [],
            "accuracy": [],
        }
        self.epochs: list[int] = []

    def on_train_epoch_end(
        self, trainer: L.Trainer, pl_module: L.LightningModule
    ) -> None:
        """Collect epoch metrics and redraw the plots."""
        self.epochs.append(trainer.current_epoch + 1)
        metrics = trainer.callback_metrics
        for key, metric_name in [("loss", "train/loss"), ("accuracy", "train/acc")]:
            val = metrics.get(metric_name)
            self.history[key].append(val.item() if val is not None else None)

        try:
            self._plot_metrics()
        except Exception as e:
            logger.error(f"Failed to plot training history: {e}")

    def _plot_metrics(self) -> None:
        matplotlib.use("Agg")
        self.output_dir.mkdir(parents=True, exist_ok=True)

        for key, title, filename in [
            ("loss", "Training Loss", "loss_history.png"),
            ("accuracy", "Training Accuracy", "accuracy_history.png"),
        ]:
            values = self.history[key]
            fig, ax = plt.subplots(figsize=(10, 6))
            if any(v is not None for v in values):
                ax.plot(self.epochs, values, marker="o")  # type: ignore[arg-type]
            ax.set_title(title)
            ax.set_xlabel("Epoch")
            ax.set_ylabel(key.capitalize())
            ax.grid(True, linestyle="--", alpha=0.7)
            fig.tight_layout()
            fig.savefig(self.output_dir / filename, dpi=150)
            plt.close(fig)

        logger.debug(f"Training history plots updated in {self.output_dir}")
