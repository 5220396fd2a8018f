"""
Unit Tests: Autograd Engine
===========================

Forward values, local derivative rules, gradient accumulation over shared
nodes, both backward strategies and the diagnostics helpers. When PyTorch is
installed, gradients are also compared against it.

Run with: pytest tests/test_engine.py -v
"""

import math
import pytest
import numpy as np

from scalargrad import Operator, Value, backward, topological_sort, draw_graph


# Try to import PyTorch for comparison tests
try:
    import torch
    TORCH_AVAILABLE = True
except ImportError:
    TORCH_AVAILABLE = False


# =============================================================================
# Test Configuration
# =============================================================================

TOLERANCE = 1e-9


def assert_close(actual: float, expected: float, tol: float = TOLERANCE) -> None:
    """Assert two values are approximately equal."""
    diff = abs(actual - expected)
    assert diff < tol, f"Values differ: {actual} vs {expected} (diff={diff})"


def grads(root: Value) -> list:
    return [n.grad for n in topological_sort(root)]


# =============================================================================
# Forward Values
# =============================================================================

class TestValueBasics:
    """Test node construction and forward evaluation."""

    def test_value_creation(self) -> None:
        v = Value(3.14)
        assert v.data == 3.14
        assert v.grad == 0.0
        assert v.operator is Operator.NONE
        assert v.operands == ()
        assert v.is_leaf()

    def test_value_with_label(self) -> None:
        v = Value(2.0, label='x')
        assert v.label == 'x'
        assert 'x' in repr(v)

    def test_numpy_scalar_accepted(self) -> None:
        v = Value(np.float64(1.5))
        assert v.data == 1.5
        assert type(v.data) is float

    def test_addition(self) -> None:
        c = Value(2.0) + Value(3.0)
        assert c.data == 5.0
        assert c.operator is Operator.ADD

    def test_multiplication(self) -> None:
        c = Value(2.0) * Value(3.0)
        assert c.data == 6.0
        assert c.operator is Operator.MUL

    def test_subtraction_is_add_of_negation(self) -> None:
        a = Value(5.0)
        b = Value(3.0)
        c = a - b
        assert c.data == 2.0
        assert c.operator is Operator.ADD
        neg = c.operands[1]
        assert neg.operator is Operator.MUL
        assert neg.operands[0] is b
        assert neg.operands[1].data == -1.0

    def test_division(self) -> None:
        c = Value(6.0) / Value(2.0)
        assert c.data == 3.0
        assert c.operator is Operator.MUL
        assert c.operands[1].operator is Operator.POW

    def test_power(self) -> None:
        a = Value(2.0)
        c = a ** 3
        assert c.data == 8.0
        assert c.operator is Operator.POW
        assert c.operands[0] is a
        assert c.operands[1].data == 3.0
        assert a.pow(3).data == 8.0

    def test_negation(self) -> None:
        b = -Value(5.0)
        assert b.data == -5.0

    def test_tanh(self) -> None:
        b = Value(0.5).tanh()
        assert_close(b.data, math.tanh(0.5))
        assert b.operator is Operator.TANH

    def test_exp(self) -> None:
        b = Value(2.0).exp()
        assert_close(b.data, math.exp(2.0))
        assert b.operator is Operator.EXP

    def test_sigmoid(self) -> None:
        b = Value(0.5).sigmoid()
        assert_close(b.data, 1 / (1 + math.exp(-0.5)))

    def test_reflected_operators(self) -> None:
        a = Value(2.0)
        assert (3 + a).data == 5.0
        assert (3 * a).data == 6.0
        assert (3 - a).data == 1.0
        assert (3 / a).data == 1.5

    def test_operands_are_not_mutated(self) -> None:
        a = Value(2.0)
        b = Value(3.0)
        _ = (a * b + a).tanh()
        assert a.data == 2.0
        assert b.data == 3.0

    def test_type_error_on_invalid_data(self) -> None:
        with pytest.raises(TypeError):
            Value("not a number")

    def test_type_error_on_value_exponent(self) -> None:
        with pytest.raises(TypeError):
            Value(2.0) ** Value(2.0)

    def test_type_error_on_invalid_operand(self) -> None:
        with pytest.raises(TypeError):
            Value(2.0) + "x"


class TestFromOp:
    """Test the generic operation constructor."""

    def test_sub_node(self) -> None:
        a = Value(5.0)
        b = Value(3.0)
        c = Value.from_op(Operator.SUB, (a, b))
        assert c.data == 2.0
        assert c.operands == (a, b)

        c.backward()
        assert a.grad == 1.0
        assert b.grad == -1.0

    def test_unary_node(self) -> None:
        a = Value(0.0)
        assert Value.from_op(Operator.EXP, (a,)).data == 1.0

    def test_arity_mismatch(self) -> None:
        with pytest.raises(ValueError):
            Value.from_op(Operator.TANH, (Value(1.0), Value(2.0)))
        with pytest.raises(ValueError):
            Value.from_op(Operator.MUL, (Value(1.0),))

    def test_none_operator_rejected(self) -> None:
        with pytest.raises(ValueError):
            Value.from_op(Operator.NONE, ())


# =============================================================================
# Backward Pass
# =============================================================================

@pytest.mark.parametrize("strategy", ["push", "topo"])
class TestBackward:
    """Gradient rules, checked under both propagation strategies."""

    def test_root_seed(self, strategy: str) -> None:
        a = Value(2.0)
        c = a * 3
        c.backward(strategy)
        assert c.grad == 1.0

    def test_reused_node_add(self, strategy: str) -> None:
        a = Value(1.0)
        c = a + a
        c.backward(strategy)
        assert a.grad == 2.0

    def test_reused_node_mul(self, strategy: str) -> None:
        a = Value(3.0)
        c = a * a
        c.backward(strategy)
        assert a.grad == 6.0

    def test_product_rule(self, strategy: str) -> None:
        a = Value(1.0)
        b = Value(0.5)
        c = Value(3.0)
        d = Value(4.0)
        e = d * b
        f = a * c
        g = e - f
        g.backward(strategy)

        assert a.grad == -3.0
        assert b.grad == 4.0
        assert c.grad == -1.0
        assert d.grad == 0.5

    def test_power_rule(self, strategy: str) -> None:
        a = Value(2.0)
        b = Value(3.0)
        g = a.pow(2) - b.pow(3)
        g.backward(strategy)

        assert a.grad == 4.0
        assert b.grad == -27.0

    def test_exponent_gets_no_gradient(self, strategy: str) -> None:
        a = Value(2.0)
        p = a ** 3
        p.backward(strategy)
        assert a.grad == 12.0
        assert p.operands[1].grad == 0.0

    def test_tanh_derivative(self, strategy: str) -> None:
        x1 = Value(2.0)
        x2 = Value(0.0)
        w1 = Value(-3.0)
        w2 = Value(1.0)
        b = Value(6.881373587)
        y = x1 * w1 + x2 * w2 + b
        o = y.tanh()
        o.backward(strategy)

        assert_close(y.grad, 1 - math.tanh(y.data) ** 2)
        assert_close(y.grad, 0.5, tol=1e-6)

    def test_exp_derivative(self, strategy: str) -> None:
        a = Value(1.5)
        a.exp().backward(strategy)
        assert_close(a.grad, math.exp(1.5))

    def test_division_derivative(self, strategy: str) -> None:
        a = Value(6.0)
        b = Value(2.0)
        (a / b).backward(strategy)
        assert_close(a.grad, 0.5)
        assert_close(b.grad, -1.5)

    def test_sigmoid_derivative(self, strategy: str) -> None:
        a = Value(0.5)
        a.sigmoid().backward(strategy)
        s = 1 / (1 + math.exp(-0.5))
        assert_close(a.grad, s * (1 - s))

    def test_chain_rule(self, strategy: str) -> None:
        x = Value(2.0)
        y = x * x
        z = y * y
        z.backward(strategy)
        assert x.grad == 32.0

    def test_gradients_accumulate_across_calls(self, strategy: str) -> None:
        a = Value(2.0)
        b = Value(5.0)
        c = a * b
        c.backward(strategy)
        c.backward(strategy)
        assert a.grad == 10.0
        assert c.grad == 2.0

    def test_reset_then_repeat_is_identical(self, strategy: str) -> None:
        a = Value(0.3)
        b = Value(-1.2)
        h = (a * b + a).tanh()
        out = (h * h + b.exp()).sigmoid() / (a + 2)

        out.backward(strategy)
        first = grads(out)

        Value.zero_grad_all(topological_sort(out))
        assert all(g == 0.0 for g in grads(out))

        out.backward(strategy)
        assert grads(out) == first

    def test_derivative_uses_current_data(self, strategy: str) -> None:
        a = Value(2.0)
        b = Value(3.0)
        c = a * b
        b.set_data(10.0)
        c.backward(strategy)
        # c.data is stale but the local derivative reads b's new value
        assert c.data == 6.0
        assert a.grad == 10.0


class TestStrategies:
    """The two propagation strategies must agree."""

    def test_reconverging_paths_agree(self) -> None:
        x = Value(0.7)
        h = x
        for _ in range(12):
            h = (h * 0.5 + h * 0.3).tanh()

        h.backward('push')
        pushed = x.grad
        x.zero_grad()

        h.backward('topo')
        assert_close(x.grad, pushed)

    def test_all_nodes_agree(self) -> None:
        a = Value(1.1)
        b = Value(-0.4)
        c = a * b
        out = (c + a).tanh() * (c - b).exp() + a ** 2

        out.backward('push')
        pushed = grads(out)
        Value.zero_grad_all(topological_sort(out))

        backward(out, 'topo')
        for p, t in zip(pushed, grads(out)):
            assert_close(p, t)

    @pytest.mark.parametrize("strategy", ["push", "topo"])
    def test_deep_chain(self, strategy: str) -> None:
        x = Value(0.5)
        h = x
        for _ in range(3000):
            h = h + 1.0
        h = h * 2.0

        h.backward(strategy)
        assert h.data == 6001.0
        assert x.grad == 2.0
        assert len(topological_sort(h)) == 6003
        assert h.expression().startswith("(" * 3001 + "0.5+1)")

    def test_unknown_strategy(self) -> None:
        with pytest.raises(ValueError):
            Value(1.0).backward('sideways')


# =============================================================================
# Numeric Domain Errors
# =============================================================================

class TestNumericEdgeCases:
    """Domain errors surface as inf/nan instead of exceptions."""

    def test_division_by_zero(self) -> None:
        a = Value(1.0)
        b = Value(0.0)
        c = a / b
        assert math.isinf(c.data)

        c.backward()
        assert math.isinf(a.grad)
        assert math.isinf(b.grad) and b.grad < 0

    def test_fractional_power_of_negative(self) -> None:
        c = Value(-8.0) ** 0.5
        assert math.isnan(c.data)

    def test_exp_overflow(self) -> None:
        a = Value(1000.0)
        c = a.exp()
        assert math.isinf(c.data)
        c.backward()
        assert math.isinf(a.grad)

    def test_nan_propagates(self) -> None:
        c = (Value(-1.0) ** 0.5) + 1
        assert math.isnan(c.data)

    def test_negative_power(self) -> None:
        assert (Value(2.0) ** -1).data == 0.5

    def test_fractional_power(self) -> None:
        assert (Value(4.0) ** 0.5).data == 2.0


# =============================================================================
# Mutators and Diagnostics
# =============================================================================

class TestMutators:

    def test_set_data(self) -> None:
        a = Value(1.0)
        b = a * 2
        a.set_data(4.0)
        assert a.data == 4.0
        assert b.data == 2.0

    def test_set_data_rejects_non_numeric(self) -> None:
        with pytest.raises(TypeError):
            Value(1.0).set_data("four")

    def test_zero_grad_is_local(self) -> None:
        a = Value(2.0)
        c = a * a
        c.backward()
        c.zero_grad()
        assert c.grad == 0.0
        assert a.grad == 4.0


class TestDiagnostics:

    def test_expression_binary(self) -> None:
        assert (Value(2.0) + Value(3.0)).expression() == "(2+3)"
        assert (Value(2.0) * Value(3.0) + 1).expression() == "((2*3)+1)"
        assert (Value(2.0) ** 2).expression() == "(2^2)"

    def test_expression_derived(self) -> None:
        assert (Value(2.0) - Value(3.0)).expression() == "(2+(3*-1))"

    def test_expression_unary(self) -> None:
        assert Value(0.5).tanh().expression() == "(tanh(0.5))"
        assert Value(1.0).exp().expression() == "(exp(1))"

    def test_topological_sort_order(self) -> None:
        a = Value(1.0)
        b = Value(2.0)
        c = a + b
        d = c * a
        topo = topological_sort(d)
        assert topo[-1] is d
        assert len(topo) == 4
        assert topo.index(c) > topo.index(a)
        assert topo.index(c) > topo.index(b)

    def test_draw_graph(self) -> None:
        x = Value(2.0, label='x')
        y = Value(3.0, label='y')
        z = x * y
        z.label = 'z'
        z.backward()

        text = draw_graph(z)
        assert text.startswith('Computation Graph:')
        assert 'z' in text
        assert 'mul(x, y)' in text


# =============================================================================
# PyTorch Comparison Tests
# =============================================================================

@pytest.mark.skipif(not TORCH_AVAILABLE, reason="PyTorch not installed")
class TestPyTorchComparison:
    """Compare our gradients against PyTorch's gradients."""

    def test_complex_expression(self) -> None:
        """Compare gradients for: tanh(a * b + a^2) / (b - exp(a))."""
        a = Value(1.0)
        b = Value(2.0)
        c = (a * b + a ** 2).tanh() / (b - a.exp())
        c.backward()

        a_t = torch.tensor(1.0, dtype=torch.float64, requires_grad=True)
        b_t = torch.tensor(2.0, dtype=torch.float64, requires_grad=True)
        c_t = torch.tanh(a_t * b_t + a_t ** 2) / (b_t - torch.exp(a_t))
        c_t.backward()

        assert_close(c.data, c_t.item())
        assert_close(a.grad, a_t.grad.item())
        assert_close(b.grad, b_t.grad.item())

    def test_sigmoid_grad(self) -> None:
        a = Value(0.5)
        c = a.sigmoid()
        c.backward()

        a_t = torch.tensor(0.5, dtype=torch.float64, requires_grad=True)
        c_t = torch.sigmoid(a_t)
        c_t.backward()

        assert_close(c.data, c_t.item())
        assert_close(a.grad, a_t.grad.item())

    def test_long_chain(self) -> None:
        a = Value(0.5)
        b = a
        for _ in range(10):
            b = b * a + a
        b.backward()

        a_t = torch.tensor(0.5, dtype=torch.float64, requires_grad=True)
        b_t = a_t
        for _ in range(10):
            b_t = b_t * a_t + a_t
        b_t.backward()

        assert_close(b.data, b_t.item())
        assert_close(a.grad, a_t.grad.item(), tol=1e-6)


if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
