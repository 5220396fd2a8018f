"""scalargrad: A scalar-value reverse-mode autograd engine."""

from .engine import Operator, Value, backward, topological_sort, draw_graph
from .nn import Module, Neuron, Layer, MLP, mse_loss, SGD, train
from .logger import setup_logger

__version__ = "0.1.0"

__all__ = [
    "Operator",
    "Value",
    "backward",
    "topological_sort",
    "draw_graph",
    "Module",
    "Neuron",
    "Layer",
    "MLP",
    "mse_loss",
    "SGD",
    "train",
    "setup_logger",
]
