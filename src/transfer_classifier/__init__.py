"""Transfer-learning image classification: frozen backbone + trainable head."""

__version__ = "0.0.1"
