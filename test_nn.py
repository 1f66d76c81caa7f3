import numpy as np
import pytest
import torch
import torch.nn.functional as F
from scipy.optimize import approx_fprime

from errors import ShapeMismatch, NumericInstability
from nn import Affine, LeakyReLU, Softmax, CrossEntropyLoss, LEAKY_SLOPE, EPS
from utils import one_hot

torch.set_default_dtype(torch.float64)


@pytest.mark.parametrize('batch', [1, 4, 32])
@pytest.mark.parametrize('in_size', [3, 16])
@pytest.mark.parametrize('out_size', [2, 10])
def test_affine(batch, in_size, out_size):
    x = np.random.randn(batch, in_size)
    w = np.random.randn(in_size, out_size)
    b = np.random.randn(1, out_size)

    x1 = torch.tensor(x, requires_grad=True)
    w1 = torch.tensor(w, requires_grad=True)
    b1 = torch.tensor(b[0], requires_grad=True)

    y1 = F.linear(x1, w1.T, b1)
    y2 = Affine()(x, w, b)

    assert y1.shape == y2.shape
    assert np.allclose(y1.detach().numpy(), y2)

    y_grad = np.random.randn(*y2.shape)
    y1.backward(torch.tensor(y_grad))
    x_grad, w_grad, b_grad = Affine().backward(y_grad, x, w, b)

    assert np.allclose(x1.grad.numpy(), x_grad)
    assert np.allclose(w1.grad.numpy(), w_grad)
    assert np.allclose(b1.grad.numpy(), b_grad[0])
    assert b_grad.shape == b.shape


@pytest.mark.parametrize('seed', range(5))
def test_affine_finite_difference(seed):
    rng = np.random.default_rng(seed)
    x = rng.standard_normal((3, 4))
    w = rng.standard_normal((4, 2))
    b = rng.standard_normal((1, 2))
    g = rng.standard_normal((3, 2))
    layer = Affine()

    x_grad, w_grad, b_grad = layer.backward(g, x, w, b)

    num_x = approx_fprime(x.ravel(), lambda v: (layer(v.reshape(x.shape), w, b) * g).sum(), 1e-6)
    num_w = approx_fprime(w.ravel(), lambda v: (layer(x, v.reshape(w.shape), b) * g).sum(), 1e-6)
    num_b = approx_fprime(b.ravel(), lambda v: (layer(x, w, v.reshape(b.shape)) * g).sum(), 1e-6)

    assert np.allclose(num_x.reshape(x.shape), x_grad, atol=1e-5)
    assert np.allclose(num_w.reshape(w.shape), w_grad, atol=1e-5)
    assert np.allclose(num_b.reshape(b.shape), b_grad, atol=1e-5)


def test_affine_shape_mismatch():
    layer = Affine()
    with pytest.raises(ShapeMismatch):
        layer(np.ones((2, 3)), np.ones((4, 2)), np.ones((1, 2)))
    with pytest.raises(ShapeMismatch):
        layer(np.ones((2, 3)), np.ones((3, 2)), np.ones((1, 3)))
    with pytest.raises(ShapeMismatch):
        layer.backward(np.ones((2, 5)), np.ones((2, 3)), np.ones((3, 2)), np.ones((1, 2)))


def test_leaky_relu():
    x = np.random.randn(16, 8)
    x1 = torch.tensor(x, requires_grad=True)

    y1 = F.leaky_relu(x1, LEAKY_SLOPE)
    y2 = LeakyReLU()(x)
    assert np.allclose(y1.detach().numpy(), y2)

    y_grad = np.random.randn(*x.shape)
    y1.backward(torch.tensor(y_grad))
    assert np.allclose(x1.grad.numpy(), LeakyReLU().backward(y_grad, x))


def test_leaky_relu_mask_from_pre_activation():
    slope = 0.2
    layer = LeakyReLU(slope)
    x = np.array([[1000., -1000., 0.5, -0.5]])
    y_grad = np.array([[3., 3., 2., 2.]])

    x_grad = layer.backward(y_grad, x)

    assert x_grad[0, 0] == 3.
    assert x_grad[0, 1] == pytest.approx(slope * 3.)
    assert x_grad[0, 2] == 2.
    assert x_grad[0, 3] == pytest.approx(slope * 2.)
    # zero is not positive
    assert layer.backward(np.ones((1, 1)), np.zeros((1, 1)))[0, 0] == pytest.approx(slope)


@pytest.mark.parametrize('scale', [1, 100, 1e4])
def test_softmax(scale):
    x = np.random.randn(32, 10) * scale
    probs = Softmax()(x)

    assert np.allclose(probs, torch.softmax(torch.tensor(x), 1).numpy())
    assert np.allclose(probs.sum(1), 1, atol=1e-6)
    assert np.all(probs <= 1)
    assert np.all(probs >= 0)


def test_softmax_rows_strictly_positive():
    probs = Softmax()(np.random.randn(8, 5))
    assert np.all(probs > 0)


def test_softmax_non_finite_input():
    x = np.zeros((2, 3))
    x[1, 1] = np.nan
    with pytest.raises(NumericInstability):
        Softmax()(x)


@pytest.mark.parametrize('seed', range(20))
def test_loss(seed):
    rng = np.random.default_rng(seed)
    x = rng.standard_normal((64, 10)) * 5
    target = one_hot(rng.integers(0, 10, 64), 10)

    x1 = torch.tensor(x, requires_grad=True)
    loss1 = F.cross_entropy(x1, torch.tensor(target))

    softmax = Softmax()
    criterion = CrossEntropyLoss()
    probs = softmax(x)
    loss2 = criterion(probs, target)

    assert np.allclose(loss1.detach().numpy(), loss2)

    loss1.backward()
    x_grad = softmax.backward(criterion.backward(probs, target), x)
    assert np.allclose(x1.grad.numpy(), x_grad)


@pytest.mark.parametrize('seed', range(5))
def test_fused_gradient_finite_difference(seed):
    rng = np.random.default_rng(seed)
    x = rng.standard_normal((4, 3))
    target = one_hot(rng.integers(0, 3, 4), 3)
    softmax = Softmax()
    criterion = CrossEntropyLoss()

    probs = softmax(x)
    x_grad = softmax.backward(criterion.backward(probs, target), x)
    assert np.allclose(x_grad, (probs - target) / 4)

    numeric = approx_fprime(x.ravel(), lambda v: criterion(softmax(v.reshape(x.shape)), target), 1e-6)
    assert np.allclose(numeric.reshape(x.shape), x_grad, atol=1e-5)


def test_loss_non_negative():
    probs = Softmax()(np.random.randn(10, 4))
    target = one_hot(np.random.randint(0, 4, 10), 4)
    assert CrossEntropyLoss()(probs, target) >= 0


def test_loss_zero_probability():
    probs = np.array([[1., 0.], [0.5, 0.5]])
    target = np.array([[0., 1.], [1., 0.]])
    loss = CrossEntropyLoss()(probs, target)
    assert np.isfinite(loss)
    assert loss == pytest.approx((-np.log(EPS) - np.log(0.5)) / 2)


def test_loss_non_finite_probabilities():
    probs = np.array([[np.nan, 0.5], [0.5, 0.5]])
    with pytest.raises(NumericInstability):
        CrossEntropyLoss()(probs, np.eye(2))


def test_loss_shape_mismatch():
    with pytest.raises(ShapeMismatch):
        CrossEntropyLoss()(np.full((2, 3), 1 / 3), np.eye(2))
