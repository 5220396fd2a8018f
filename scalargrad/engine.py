"""
scalargrad: A Scalar-Value Autograd Engine
==========================================

Reverse-mode automatic differentiation over individual real numbers.

Every arithmetic operation on a Value records a new node holding the
operator that produced it and references to its operands. The result is a
directed acyclic graph built eagerly during the forward computation. Calling
backward() on any node walks that graph from the node towards the leaves and
adds d(root)/d(node) into every node's ``grad``.

The operator set is closed: ADD, SUB, MUL, POW, TANH and EXP are primitive,
and negation, division and sigmoid are composed from them. Numeric domain
errors (division by zero, fractional powers of negative numbers, overflow)
are not raised; they surface as inf/nan and keep propagating.
"""

from __future__ import annotations
import enum
import numpy as np
from typing import Dict, List, Set, Tuple, Union


# Type alias for numeric inputs
Numeric = Union[int, float, np.floating]


class Operator(enum.Enum):
    """The closed set of operations a node can be produced by."""

    NONE = ''
    ADD = '+'
    SUB = '-'
    MUL = '*'
    POW = '^'
    TANH = 'tanh'
    EXP = 'exp'

    @property
    def arity(self) -> int:
        """Number of operands a node of this operator holds."""
        return _ARITY[self]


_ARITY: Dict[Operator, int] = {
    Operator.NONE: 0,
    Operator.ADD: 2,
    Operator.SUB: 2,
    Operator.MUL: 2,
    Operator.POW: 2,
    Operator.TANH: 1,
    Operator.EXP: 1,
}


def _forward(op: Operator, operands: Tuple[Value, ...]) -> float:
    """Evaluate ``op`` on the operands' current data."""
    a = np.float64(operands[0].data)
    b = np.float64(operands[1].data) if len(operands) == 2 else None

    with np.errstate(all='ignore'):
        if op is Operator.ADD:
            result = a + b
        elif op is Operator.SUB:
            result = a - b
        elif op is Operator.MUL:
            result = a * b
        elif op is Operator.POW:
            result = np.power(a, b)
        elif op is Operator.TANH:
            result = np.tanh(a)
        elif op is Operator.EXP:
            result = np.exp(a)
        else:
            raise ValueError(f"cannot evaluate operator {op.name}")

    return float(result)


def _local_grads(node: Value) -> List[Tuple[Value, float]]:
    """
    Pair each differentiable operand of ``node`` with d(node)/d(operand).

    Derivatives are evaluated at the operands' current data. The exponent
    operand of POW is a constant and is left out.
    """
    op = node._op
    if op is Operator.NONE:
        return []

    a = node._prev[0]

    with np.errstate(all='ignore'):
        if op is Operator.ADD:
            return [(a, 1.0), (node._prev[1], 1.0)]
        if op is Operator.SUB:
            return [(a, 1.0), (node._prev[1], -1.0)]
        if op is Operator.MUL:
            b = node._prev[1]
            return [(a, b.data), (b, a.data)]
        if op is Operator.POW:
            k = np.float64(node._prev[1].data)
            return [(a, float(k * np.power(np.float64(a.data), k - 1)))]
        if op is Operator.TANH:
            t = np.tanh(np.float64(a.data))
            return [(a, float(1.0 - t * t))]
        if op is Operator.EXP:
            return [(a, float(np.exp(np.float64(a.data))))]

    raise ValueError(f"cannot differentiate operator {op.name}")


class Value:
    """
    A scalar node in a computation graph.

    A Value is either a leaf (an input or a trainable parameter) or the
    result of an operation on one or two earlier Values. It holds:

    1. ``data``: the forward value, computed when the node is built
    2. ``grad``: the accumulated derivative of some root with respect to it
    3. ``_op``: the Operator that produced it (``Operator.NONE`` for leaves)
    4. ``_prev``: its operands, in order

    The same Value may be an operand of many later nodes. Gradients from
    every path are summed into ``grad``.

    Attributes:
        data: The scalar value stored in this node.
        grad: The gradient of the differentiated root with respect to this value.
        label: Optional name for debugging and visualization.

    Example:
        >>> a = Value(2.0, label='a')
        >>> b = Value(3.0, label='b')
        >>> c = a * b + a
        >>> c.backward()
        >>> a.grad  # dc/da = b + 1
        4.0
        >>> b.grad  # dc/db = a
        2.0
    """

    __slots__ = ('data', 'grad', '_prev', '_op', 'label')

    def __init__(
        self,
        data: Numeric,
        _children: Tuple[Value, ...] = (),
        _op: Operator = Operator.NONE,
        label: str = ''
    ) -> None:
        """
        Initialize a Value node.

        Args:
            data: The scalar value to store.
            _children: Operand nodes (internal use, see ``from_op``).
            _op: The operator that produced this node (internal use).
            label: Optional name for debugging.

        Raises:
            TypeError: If data is not a numeric type.
        """
        if not isinstance(data, (int, float, np.floating)):
            raise TypeError(
                f"Value data must be numeric, got {type(data).__name__}"
            )

        self.data: float = float(data)
        self.grad: float = 0.0
        self._prev: Tuple[Value, ...] = tuple(_children)
        self._op: Operator = _op
        self.label: str = label

    @classmethod
    def from_op(cls, op: Operator, operands: Tuple[Value, ...]) -> Value:
        """
        Build the node for ``op`` applied to ``operands``.

        The forward value is computed immediately from the operands' current
        data. The operands themselves are not modified.

        Raises:
            ValueError: If ``op`` is ``Operator.NONE`` or the number of
                operands does not match the operator's arity.
        """
        operands = tuple(operands)
        if op is Operator.NONE:
            raise ValueError("leaves are built with Value(x), not from_op")
        if len(operands) != op.arity:
            raise ValueError(
                f"{op.name} takes {op.arity} operand(s), got {len(operands)}"
            )
        return cls(_forward(op, operands), operands, op)

    def __repr__(self) -> str:
        """String representation showing data and gradient."""
        if self.label:
            return f"Value({self.label}={self.data:.4f}, grad={self.grad:.4f})"
        return f"Value(data={self.data:.4f}, grad={self.grad:.4f})"

    @property
    def operator(self) -> Operator:
        """The operator that produced this node."""
        return self._op

    @property
    def operands(self) -> Tuple[Value, ...]:
        """The nodes this one was computed from, in order."""
        return self._prev

    def is_leaf(self) -> bool:
        """True for inputs and parameters, False for operation results."""
        return self._op is Operator.NONE

    # =========================================================================
    # Arithmetic Operations
    # =========================================================================

    def __add__(self, other: Union[Value, Numeric]) -> Value:
        """
        Addition: out = self + other

        Local derivatives:
            d(out)/d(self) = 1
            d(out)/d(other) = 1
        """
        other = other if isinstance(other, Value) else Value(other)
        return Value.from_op(Operator.ADD, (self, other))

    def __radd__(self, other: Numeric) -> Value:
        """Handle numeric + Value."""
        return self + other

    def __neg__(self) -> Value:
        """Negation: self * -1."""
        return self * -1

    def __sub__(self, other: Union[Value, Numeric]) -> Value:
        """Subtraction: self + (-other)."""
        return self + (-other)

    def __rsub__(self, other: Numeric) -> Value:
        """Handle numeric - Value."""
        return other + (-self)

    def __mul__(self, other: Union[Value, Numeric]) -> Value:
        """
        Multiplication: out = self * other

        Local derivatives:
            d(out)/d(self) = other.data
            d(out)/d(other) = self.data
        """
        other = other if isinstance(other, Value) else Value(other)
        return Value.from_op(Operator.MUL, (self, other))

    def __rmul__(self, other: Numeric) -> Value:
        """Handle numeric * Value."""
        return self * other

    def __truediv__(self, other: Union[Value, Numeric]) -> Value:
        """Division: self / other = self * other^(-1)."""
        other = other if isinstance(other, Value) else Value(other)
        return self * other.pow(-1)

    def __rtruediv__(self, other: Numeric) -> Value:
        """Handle numeric / Value."""
        return Value(other) * self.pow(-1)

    def __pow__(self, n: Union[int, float]) -> Value:
        """
        Power: out = self^n (where n is a constant, not a Value)

        The exponent is stored as a hidden leaf operand. It never receives
        a gradient.

        Local derivative:
            d(out)/d(self) = n * self^(n-1)

        Raises:
            TypeError: If n is a Value (not supported).
        """
        if isinstance(n, Value):
            raise TypeError(
                "Power with Value exponent not supported. "
                "Use exp(n * log(self)) instead."
            )
        return Value.from_op(Operator.POW, (self, Value(n)))

    def pow(self, n: Union[int, float]) -> Value:
        """Same as ``self ** n``."""
        return self ** n

    # =========================================================================
    # Activation Functions
    # =========================================================================

    def tanh(self) -> Value:
        """
        Hyperbolic tangent: out = tanh(self)

        Local derivative:
            d(tanh(x))/dx = 1 - tanh(x)^2
        """
        return Value.from_op(Operator.TANH, (self,))

    def exp(self) -> Value:
        """
        Exponential: out = e^self

        Local derivative:
            d(e^x)/dx = e^x
        """
        return Value.from_op(Operator.EXP, (self,))

    def sigmoid(self) -> Value:
        """
        Sigmoid: out = 1 / (1 + e^(-self))

        Not a primitive. The graph is built from EXP, ADD, MUL and POW nodes,
        so its gradient comes out of their rules.
        """
        return 1 / (1 + (-self).exp())

    # =========================================================================
    # Backpropagation
    # =========================================================================

    def backward(self, strategy: str = 'push') -> None:
        """
        Add d(self)/d(node) into ``grad`` for every node reachable from self.

        See the module-level ``backward`` for the available strategies.

        Note: Calling backward() multiple times will ACCUMULATE gradients.
        Call zero_grad() on the graph's nodes first if you want fresh
        gradients.

        Example:
            >>> x = Value(2.0)
            >>> y = x ** 2 + 3 * x
            >>> y.backward()
            >>> x.grad  # dy/dx = 2x + 3
            7.0
        """
        backward(self, strategy)

    def set_data(self, data: Numeric) -> None:
        """
        Overwrite the forward value in place.

        Used to update a leaf parameter during training. Nodes already built
        from this one keep their old data.
        """
        if not isinstance(data, (int, float, np.floating)):
            raise TypeError(
                f"Value data must be numeric, got {type(data).__name__}"
            )
        self.data = float(data)

    def zero_grad(self) -> None:
        """Reset gradient to zero. Only this node is touched."""
        self.grad = 0.0

    # =========================================================================
    # Utility Methods
    # =========================================================================

    def item(self) -> float:
        """Return the scalar value (PyTorch compatibility)."""
        return self.data

    def expression(self) -> str:
        """
        Render the graph below this node as a fully parenthesized string.

        Example:
            >>> (Value(2.0) * Value(3.0) + 1).expression()
            '((2*3)+1)'
        """
        # Operands come before their consumers, so each is rendered first
        rendered: Dict[Value, str] = {}
        for node in topological_sort(self):
            op = node._op
            if op is Operator.NONE:
                rendered[node] = format(node.data, 'g')
            elif op.arity == 1:
                rendered[node] = f"({op.value}({rendered[node._prev[0]]}))"
            else:
                left, right = (rendered[p] for p in node._prev)
                rendered[node] = f"({left}{op.value}{right})"
        return rendered[self]

    @staticmethod
    def zero_grad_all(values: List[Value]) -> None:
        """
        Zero gradients for a list of Values.

        Args:
            values: List of Value objects to zero.
        """
        for v in values:
            v.zero_grad()


# =============================================================================
# Gradient Propagation
# =============================================================================

BACKWARD_STRATEGIES = ('push', 'topo')


def backward(root: Value, strategy: str = 'push') -> None:
    """
    Reverse-mode differentiation of ``root`` over its graph.

    Strategies:
        'push': For each edge reached, push the incoming gradient times the
            local derivative into the operand and descend into it. A node
            with several consumers is descended once per consumer, so the
            cost can grow exponentially with the number of reconverging
            paths, but the summed result equals the sum over all paths.
        'topo': Order the graph once (``topological_sort``), then visit each
            node exactly once in reverse order, after all of its consumers
            have contributed. Same gradients, linear cost.

    Both add 1.0 to ``root.grad`` and accumulate into every other node.

    Raises:
        ValueError: If ``strategy`` is not one of BACKWARD_STRATEGIES.
    """
    if strategy == 'push':
        _propagate(root, 1.0)
    elif strategy == 'topo':
        _propagate_topological(root)
    else:
        raise ValueError(
            f"Unknown backward strategy {strategy!r}, "
            f"expected one of {BACKWARD_STRATEGIES}"
        )


def _propagate(root: Value, seed: float) -> None:
    # One stack entry per edge reached: a shared node is descended again
    # for every consumer that pushes into it.
    stack: List[Tuple[Value, float]] = [(root, seed)]

    while stack:
        node, incoming = stack.pop()
        node.grad += incoming
        for operand, local in reversed(_local_grads(node)):
            stack.append((operand, incoming * local))


def _propagate_topological(root: Value) -> None:
    pending: Dict[Value, float] = {root: 1.0}

    for node in reversed(topological_sort(root)):
        g = pending.pop(node, 0.0)
        node.grad += g
        for operand, local in _local_grads(node):
            pending[operand] = pending.get(operand, 0.0) + g * local


def topological_sort(root: Value) -> List[Value]:
    """
    Compute topological ordering of computation graph rooted at `root`.

    Nodes are ordered so that every node appears after all of its operands.
    Shared nodes appear once.

    Args:
        root: The root node of the computation graph.

    Returns:
        List of Values in topological order (root is last).

    Example:
        >>> a = Value(1.0)
        >>> b = Value(2.0)
        >>> c = a + b
        >>> d = c * a
        >>> topo = topological_sort(d)
        >>> # topo will be [a, b, c, d]
    """
    topo: List[Value] = []
    visited: Set[Value] = set()
    # (node, expanded): a node is appended once all its operands are
    stack: List[Tuple[Value, bool]] = [(root, False)]

    while stack:
        v, expanded = stack.pop()
        if expanded:
            topo.append(v)
            continue
        if v in visited:
            continue
        visited.add(v)
        stack.append((v, True))
        for child in reversed(v._prev):
            if child not in visited:
                stack.append((child, False))

    return topo


def draw_graph(root: Value) -> str:
    """
    Render the computation graph as a text table, root first.

    Each line shows a node's label (or ``v<index>``), data, grad and, for
    operation nodes, the operator applied to its operands' labels.
    """
    nodes = topological_sort(root)
    node_ids = {n: i for i, n in enumerate(nodes)}

    def name(node: Value) -> str:
        return node.label or f'v{node_ids[node]}'

    lines = ['Computation Graph:', '=' * 50]
    for node in reversed(nodes):
        op_str = ''
        if node._op is not Operator.NONE:
            op_str = f' = {node._op.name.lower()}('
            op_str += ', '.join(name(p) for p in node._prev) + ')'
        lines.append(
            f'{name(node):>10}: data={node.data:>10.4f}, '
            f'grad={node.grad:>10.4f}{op_str}'
        )
    return '\n'.join(lines)
