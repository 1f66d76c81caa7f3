import numpy as np

from errors import ShapeMismatch, check_shape, check_finite

LEAKY_SLOPE = 0.01
EPS = 1e-10


class _module(object):
    # layers keep no state between calls, everything backward needs is passed in
    def __call__(self, *args):
        return self.forward(*args)

    def forward(self, *args):
        raise NotImplementedError

    def backward(self, *args):
        raise NotImplementedError


class Affine(_module):
    def forward(self, x: np.ndarray, weight: np.ndarray, bias: np.ndarray):
        _check_affine(x, weight, bias)
        return x @ weight + bias

    def backward(self, y_grad: np.ndarray, x: np.ndarray, weight: np.ndarray, bias: np.ndarray):
        _check_affine(x, weight, bias)
        check_shape('affine output grad', y_grad.shape, (x.shape[0], weight.shape[1]))
        x_grad = y_grad @ weight.T
        w_grad = x.T @ y_grad
        b_grad = y_grad.sum(0, keepdims=True)
        return x_grad, w_grad, b_grad


def _check_affine(x, weight, bias):
    if x.ndim != 2 or weight.ndim != 2:
        raise ShapeMismatch('affine expects 2-D input and weight, got %s and %s' % (x.shape, weight.shape))
    if x.shape[1] != weight.shape[0]:
        raise ShapeMismatch('input has %d features but weight expects %d' % (x.shape[1], weight.shape[0]))
    check_shape('affine bias', bias.shape, (1, weight.shape[1]))


class LeakyReLU(_module):
    def __init__(self, slope=LEAKY_SLOPE):
        self.slope = slope

    def forward(self, x: np.ndarray):
        return np.where(x > 0, x, self.slope * x)

    def backward(self, y_grad: np.ndarray, x: np.ndarray):
        # mask comes from the pre-activation input
        check_shape('leaky relu grad', y_grad.shape, x.shape)
        return np.where(x > 0, y_grad, self.slope * y_grad)


class Softmax(_module):
    def forward(self, x: np.ndarray):
        x = x - x.max(1, keepdims=True)
        e = np.exp(x)
        probs = e / e.sum(1, keepdims=True)
        check_finite('softmax output', probs)
        return probs

    def backward(self, probs_grad: np.ndarray, x: np.ndarray):
        """Pass the fused softmax/cross-entropy delta through.

        ``probs_grad`` is expected to come from ``CrossEntropyLoss.backward``,
        which already returns ``(P - Y) / N`` with respect to the scores ``x``,
        so no Jacobian is applied here.
        """
        check_shape('softmax grad', probs_grad.shape, x.shape)
        return probs_grad


class CrossEntropyLoss(object):
    def __call__(self, probs, target):
        return self.forward(probs, target)

    def forward(self, probs: np.ndarray, target: np.ndarray):
        check_shape('cross entropy target', target.shape, probs.shape)
        check_finite('probabilities', probs)
        # zero probabilities are floored at EPS
        loss = -(target * np.log(np.maximum(probs, EPS))).sum() / probs.shape[0]
        check_finite('loss', loss)
        return float(loss)

    def backward(self, probs: np.ndarray, target: np.ndarray):
        # gradient w.r.t. the pre-softmax scores, softmax and loss fused
        check_shape('cross entropy target', target.shape, probs.shape)
        return (probs - target) / probs.shape[0]
