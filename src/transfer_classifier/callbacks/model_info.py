"""Model info callback — reports head parameter counts and the class list."""

from __future__ import annotations

import lightning as L
from loguru import logger
from rich import box
from rich.console import Console
from rich.table import Table


class ModelInfoCallback(L.Callback):
    """Compute and display model statistics at training start.

    Reports total parameters, trainable parameters, and model size in MB.
    Persisting ``labels.json`` is left to
    :func:`~transfer_classifier.io.artifact.save_artifact`.

    Args:
        class_names: Ordered class names, index == output channel.
    """

    def __init__(self, class_names: list[str] | None = None) -> None:
        super().__init__()
        self.class_names = class_names

    def on_fit_start(
        self, trainer: L.Trainer, pl_module: L.LightningModule
    ) -> None:
        """Compute model stats and print the table."""
        total_params = sum(p.numel() for p in pl_module.parameters())
        trainable_params = sum(
            p.numel() for p in pl_module.parameters() if p.requires_grad
        )
        param_size = sum(
            p.numel() * p.element_size() for p in pl_module.parameters()
        )
        buffer_size = sum(
            b.numel() * b.element_size() for b in pl_module.buffers()
        )
        model_size_mb = (param_size + buffer_size) / (1024 * 1024)

        console = Console()
        table = Table(
            title="Classifier Head",
            header_style="bold magenta",
            box=box.SQUARE,
            show_lines=True,
        )
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green")

        table.add_row("Model Class", type(pl_module).__name__)
        table.add_row("Total Parameters", f"{total_params:,}")
        table.add_row("Trainable Parameters", f"{trainable_params:,}")
        table.add_row("Model Size", f"{model_size_mb:.2f} MB")
        if self.class_names is not None:
            table.add_row("Classes", ", ".join(self.class_names))

        console.print(table)

        logger.info(
            f"Model: {type(pl_module).__name__} | "
            f"Params: {total_params:,} ({trainable_params:,} trainable) | "
            f"Size: {model_size_mb:.2f} MB"
        )
