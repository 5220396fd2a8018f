"""
Neural Network Module
=====================

PyTorch-like neural network building blocks using our autograd engine.

This module provides:
- Module: Base class for all neural network components
- Neuron: A single neuron with weights, bias, and activation
- Layer: A collection of neurons (fully connected layer)
- MLP: Multi-layer perceptron (stack of layers)
- mse_loss, SGD and train: a manual gradient-descent loop

Nothing here extends the engine. Every computation is built from Value
operators, and training only uses backward(), set_data() and zero_grad().
"""

from __future__ import annotations
import logging
import numpy as np
from typing import Callable, Dict, List, Optional, Sequence, Union
from .engine import Value

logger = logging.getLogger(__name__)

ActivationFn = Callable[[Value], Value]
Activation = Union[str, ActivationFn]

ACTIVATIONS: Dict[str, ActivationFn] = {
    'tanh': Value.tanh,
    'sigmoid': Value.sigmoid,
    'exp': Value.exp,
    'linear': lambda v: v,
}


def get_activation(activation: Activation) -> ActivationFn:
    """
    Resolve an activation name or callable to a ``Value -> Value`` function.

    Raises:
        ValueError: If the name is not in ACTIVATIONS.
    """
    if callable(activation):
        return activation
    try:
        return ACTIVATIONS[activation]
    except KeyError:
        raise ValueError(
            f"Unknown activation {activation!r}, "
            f"expected one of {sorted(ACTIVATIONS)} or a callable"
        ) from None


def _activation_name(activation: Activation) -> str:
    if isinstance(activation, str):
        return activation
    return getattr(activation, '__name__', repr(activation))


class Module:
    """
    Base class for all neural network modules.

    Provides:
    - parameters(): collect all trainable Value objects
    - zero_grad(): reset gradients before backward pass
    """

    def parameters(self) -> List[Value]:
        """
        Return all trainable parameters in this module.

        Override this in subclasses to return the module's parameters.
        """
        return []

    def zero_grad(self) -> None:
        """
        Reset gradients of all parameters to zero.

        Call this between backward passes to prevent gradient accumulation.
        """
        for p in self.parameters():
            p.zero_grad()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class Neuron(Module):
    """
    A single artificial neuron.

    Computes: output = activation(b + sum(w_i * x_i))

    Attributes:
        w: List of weight Values
        b: Bias Value
        activation: Activation name or callable

    Example:
        >>> n = Neuron(3, activation='sigmoid')
        >>> out = n([1.0, 2.0, 2.0])
    """

    def __init__(
        self,
        nin: int,
        activation: Activation = 'tanh',
        rng: Optional[np.random.Generator] = None
    ) -> None:
        """
        Initialize a neuron.

        Args:
            nin: Number of inputs to this neuron.
            activation: Activation name ('tanh', 'sigmoid', 'exp', 'linear')
                or a callable taking and returning a Value.
            rng: Random generator used for the weights. A fresh unseeded
                generator is used if omitted.
        """
        rng = rng if rng is not None else np.random.default_rng()
        self._act: ActivationFn = get_activation(activation)
        self.activation: Activation = activation

        # Xavier/Glorot initialization: helps with training stability
        scale = (2.0 / nin) ** 0.5
        self.w: List[Value] = [
            Value(rng.uniform(-1, 1) * scale, label=f'w{i}')
            for i in range(nin)
        ]
        self.b: Value = Value(0.0, label='b')

    def __call__(self, x: Sequence[Union[Value, float]]) -> Value:
        """
        Forward pass: compute neuron output.

        Raises:
            ValueError: If input length doesn't match weight count.
        """
        if len(x) != len(self.w):
            raise ValueError(
                f"Expected {len(self.w)} inputs, got {len(x)}"
            )

        act = sum(
            (wi * xi for wi, xi in zip(self.w, x)),
            start=self.b
        )
        return self._act(act)

    def parameters(self) -> List[Value]:
        """Return weights and bias."""
        return self.w + [self.b]

    def __repr__(self) -> str:
        return f"Neuron({len(self.w)}, {_activation_name(self.activation)})"


class Layer(Module):
    """
    A fully connected layer of neurons.

    Every neuron receives the same input, so a layer with `nout` neurons
    maps `nin` inputs to `nout` outputs.

    Example:
        >>> layer = Layer(3, 4, activation='sigmoid')
        >>> out = layer([1.0, 2.0, 3.0])  # Returns list of 4 Values
    """

    def __init__(
        self,
        nin: int,
        nout: int,
        activation: Activation = 'tanh',
        rng: Optional[np.random.Generator] = None
    ) -> None:
        rng = rng if rng is not None else np.random.default_rng()
        self.neurons: List[Neuron] = [
            Neuron(nin, activation=activation, rng=rng)
            for _ in range(nout)
        ]

    def __call__(self, x: Sequence[Union[Value, float]]) -> List[Value]:
        return [n(x) for n in self.neurons]

    def parameters(self) -> List[Value]:
        """Return all parameters from all neurons."""
        return [p for n in self.neurons for p in n.parameters()]

    @property
    def nin(self) -> int:
        return len(self.neurons[0].w)

    @property
    def nout(self) -> int:
        return len(self.neurons)

    def __repr__(self) -> str:
        act = _activation_name(self.neurons[0].activation)
        return f"Layer({self.nin} -> {self.nout}, {act})"


class MLP(Module):
    """
    Multi-Layer Perceptron: a stack of fully connected layers.

    ``activations`` is either one activation, used by every layer, or a
    list with one activation per layer. Pass ``'linear'`` as the last
    entry for an unbounded regression output.

    Example:
        >>> # 3 inputs -> 4 sigmoid -> 4 tanh -> 1 sigmoid
        >>> model = MLP(3, [4, 4, 1], ['sigmoid', 'tanh', 'sigmoid'])
        >>> out = model([1.0, 2.0, 2.0])  # Single output Value
    """

    def __init__(
        self,
        nin: int,
        nouts: Sequence[int] = (),
        activations: Union[Activation, Sequence[Activation]] = 'tanh',
        rng: Optional[np.random.Generator] = None
    ) -> None:
        """
        Initialize an MLP.

        Args:
            nin: Number of input features.
            nouts: Layer sizes. Last element is output size. May be empty
                and filled in later with add_layer().
            activations: One activation for every layer, or one per layer.
            rng: Random generator shared by every layer.

        Raises:
            ValueError: If a per-layer list does not match ``nouts``.
        """
        self.nin = nin
        self.rng = rng if rng is not None else np.random.default_rng()
        self.layers: List[Layer] = []

        if isinstance(activations, (list, tuple)):
            if len(activations) != len(nouts):
                raise ValueError(
                    f"Got {len(activations)} activations for {len(nouts)} layers"
                )
            per_layer = list(activations)
        else:
            per_layer = [activations] * len(nouts)

        for nout, activation in zip(nouts, per_layer):
            self.add_layer(nout, activation)

    def add_layer(self, nout: int, activation: Activation = 'tanh') -> Layer:
        """Append a layer fed by the previous layer's outputs."""
        nin = self.layers[-1].nout if self.layers else self.nin
        layer = Layer(nin, nout, activation=activation, rng=self.rng)
        self.layers.append(layer)
        return layer

    def __call__(
        self, x: Sequence[Union[Value, float]]
    ) -> Union[Value, List[Value]]:
        """
        Forward pass through all layers.

        Returns:
            A single Value if the output size is 1, otherwise a list.

        Raises:
            ValueError: If the network has no layers.
        """
        if not self.layers:
            raise ValueError("MLP has no layers")

        for layer in self.layers:
            x = layer(x)

        # Unwrap single-element output
        return x[0] if len(x) == 1 else x

    def parameters(self) -> List[Value]:
        """Return all parameters from all layers."""
        return [p for layer in self.layers for p in layer.parameters()]

    def __repr__(self) -> str:
        layer_strs = [str(layer) for layer in self.layers]
        return f"MLP([{', '.join(layer_strs)}])"


# =============================================================================
# Loss Functions
# =============================================================================

def mse_loss(predictions: Sequence[Value], targets: Sequence[float]) -> Value:
    """
    Mean Squared Error loss.

    MSE = (1/n) * sum((pred_i - target_i)^2)

    Raises:
        ValueError: If the two sequences differ in length or are empty.
    """
    if len(predictions) != len(targets):
        raise ValueError(
            f"Got {len(predictions)} predictions for {len(targets)} targets"
        )
    if not predictions:
        raise ValueError("mse_loss needs at least one prediction")

    n = len(predictions)
    return sum(
        (pred - target) ** 2
        for pred, target in zip(predictions, targets)
    ) / n


# =============================================================================
# Optimizers
# =============================================================================

class SGD:
    """
    Gradient descent optimizer.

    Updates parameters: p = p - lr * p.grad
    """

    def __init__(self, params: List[Value], lr: float = 0.01) -> None:
        self.params = params
        self.lr = lr

    def step(self) -> None:
        """
        Perform one optimization step.

        Call this after backward().
        """
        for p in self.params:
            p.set_data(p.data - self.lr * p.grad)

    def zero_grad(self) -> None:
        """Reset all gradients to zero."""
        for p in self.params:
            p.zero_grad()


def train(
    model: Module,
    inputs: Sequence[Union[Value, float]],
    targets: Sequence[float],
    steps: int = 100,
    lr: float = 0.01,
    loss_fn: Callable[[Sequence[Value], Sequence[float]], Value] = mse_loss,
    strategy: str = 'push'
) -> List[float]:
    """
    Fit ``model`` to a single sample with plain gradient descent.

    Each step runs forward -> loss -> backward -> parameter update -> zero
    gradients.

    Args:
        model: Network to train; called as ``model(inputs)``.
        inputs: Input features.
        targets: Expected outputs, one per model output.
        steps: Number of update iterations.
        lr: Learning rate.
        loss_fn: Maps (predictions, targets) to a scalar loss Value.
        strategy: Backward strategy, see ``scalargrad.engine.backward``.

    Returns:
        The loss measured before each update.
    """
    optimizer = SGD(model.parameters(), lr=lr)
    losses: List[float] = []

    for step in range(steps):
        out = model(inputs)
        predictions = out if isinstance(out, list) else [out]
        loss = loss_fn(predictions, targets)

        loss.backward(strategy)
        optimizer.step()
        optimizer.zero_grad()

        losses.append(loss.data)
        logger.debug("step %d/%d loss=%.6f", step + 1, steps, loss.data)

    if losses:
        logger.info(
            "trained %d steps: loss %.6f -> %.6f",
            steps, losses[0], losses[-1]
        )
    return losses
