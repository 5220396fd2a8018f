#!/usr/bin/env python3
"""
scalargrad Demo
===============

1. Differentiate a few expressions and compare with the analytic result
2. Print the operator tree and the computation graph of a small expression
3. Train a 3 -> 4 -> 4 -> 1 network towards a fixed target and plot the loss

Run: python examples/demo.py [--seed N] [--strategy push|topo]
"""

import argparse
import logging
import matplotlib.pyplot as plt
import numpy as np
from typing import List

from scalargrad import MLP, Value, draw_graph, setup_logger, train


logger = setup_logger("scalargrad")


def demo_gradient_computation() -> None:
    print("=" * 60)
    print("DEMO 1: Automatic Gradient Computation")
    print("=" * 60)
    print()

    # f(x) = x^2 + 2x + 1
    x = Value(3.0, label='x')
    f = x ** 2 + 2 * x + 1
    f.backward()

    print("f(x) = x² + 2x + 1 at x = 3")
    print(f"f(3) = {f.data}")
    print(f"df/dx at x=3 = {x.grad}")
    print("(Analytical: df/dx = 2x + 2 = 8)")
    print()

    # Shared parameter used on several paths
    a = Value(2.0, label='a')
    b = Value(3.0, label='b')
    g = (a * b + a ** 2).tanh() + a.sigmoid()
    g.backward()

    print("g(a, b) = tanh(a*b + a²) + sigmoid(a)")
    print(f"g(2, 3) = {g.data:.6f}")
    print(f"dg/da = {a.grad:.6f}")
    print(f"dg/db = {b.grad:.6f}")
    print()


def demo_backprop_visualization() -> None:
    print("=" * 60)
    print("DEMO 2: Computation Graph")
    print("=" * 60)
    print()

    x = Value(2.0, label='x')
    y = Value(3.0, label='y')
    z = x * y
    z.label = 'z=x*y'
    w = z + x
    w.label = 'w=z+x'
    out = w.tanh()
    out.label = 'out'

    out.backward()

    print(f"Expression: {out.expression()}")
    print()
    print(draw_graph(out))
    print()


def plot_loss_curve(losses: List[float], path: str = './loss_curve.png') -> None:
    plt.figure(figsize=(10, 6))
    plt.plot(losses, 'b-', linewidth=2)
    plt.xlabel('Step')
    plt.ylabel('Loss')
    plt.title('Training Loss Curve')
    plt.grid(True, alpha=0.3)
    plt.tight_layout()
    plt.savefig(path, dpi=150)
    plt.close()
    logger.info("saved loss curve to %s", path)


def demo_neural_network(seed: int, strategy: str) -> None:
    print("=" * 60)
    print("DEMO 3: Training a Neural Network")
    print("=" * 60)
    print()

    model = MLP(
        3, [4, 4, 1], ['sigmoid', 'tanh', 'sigmoid'],
        rng=np.random.default_rng(seed)
    )
    print(f"Model: {model}")
    print(f"Total parameters: {len(model.parameters())}")
    print()

    inputs = [1.0, 2.0, 2.0]
    losses = train(model, inputs, [1.0], steps=30, lr=0.2, strategy=strategy)
    final = model(inputs)
    print(f"Output after training: {final.data:.4f} (target 1.0)")
    print()

    plot_loss_curve(losses)


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument('--seed', type=int, default=42)
    parser.add_argument('--strategy', choices=['push', 'topo'], default='push')
    parser.add_argument('--verbose', action='store_true')
    args = parser.parse_args()

    if args.verbose:
        logger.setLevel(logging.DEBUG)

    demo_gradient_computation()
    demo_backprop_visualization()
    demo_neural_network(args.seed, args.strategy)


if __name__ == "__main__":
    main()
