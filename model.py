import numpy as np

from errors import ShapeMismatch, check_shape
from nn import Affine, LeakyReLU, Softmax, CrossEntropyLoss, LEAKY_SLOPE


class MLP(object):
    def __init__(self, in_features, hidden1, hidden2, out_features, slope=LEAKY_SLOPE, seed=None):
        rng = np.random.default_rng(seed)
        self.sizes = (in_features, hidden1, hidden2, out_features)
        self.layers = [
            Affine(),
            LeakyReLU(slope),
            Affine(),
            LeakyReLU(slope),
            Affine(),
            Softmax()
        ]
        self.criterion = CrossEntropyLoss()

        self.params = []
        for fan_in, fan_out in zip(self.sizes[:-1], self.sizes[1:]):
            bound = 1 / np.sqrt(fan_in)
            self.params.append(rng.standard_normal((fan_in, fan_out)) / np.sqrt(fan_in * 0.5))
            self.params.append(rng.uniform(-bound, bound, (1, fan_out)))
        _check_chain(self.params)

    def __call__(self, x: np.ndarray):
        return self.forward(x)

    def _forward(self, x):
        # returns every layer input, the last entry being the probabilities
        inputs = [x]
        params = iter(self.params)
        for layer in self.layers:
            if isinstance(layer, Affine):
                x = layer(x, next(params), next(params))
            else:
                x = layer(x)
            inputs.append(x)
        return inputs

    def forward(self, x: np.ndarray):
        return self._forward(x)[-1]

    def loss_and_grads(self, x: np.ndarray, target: np.ndarray):
        inputs = self._forward(x)
        probs = inputs[-1]
        loss = self.criterion(probs, target)

        grad = self.criterion.backward(probs, target)
        grads = []
        p = len(self.params)
        for layer, layer_in in zip(reversed(self.layers), reversed(inputs[:-1])):
            if isinstance(layer, Affine):
                weight, bias = self.params[p - 2], self.params[p - 1]
                grad, w_grad, b_grad = layer.backward(grad, layer_in, weight, bias)
                grads[:0] = [w_grad, b_grad]
                p -= 2
            else:
                grad = layer.backward(grad, layer_in)
        return loss, probs, grads

    def parameters(self):
        return self.params

    def load(self, params):
        if len(params) != len(self.params):
            raise ShapeMismatch('expected %d parameter arrays, got %d' % (len(self.params), len(params)))
        for old, new in zip(self.params, params):
            check_shape('parameter', np.shape(new), old.shape)
        self.params[:] = [np.asarray(p, dtype=float) for p in params]


def _check_chain(params):
    weights = params[::2]
    for w, w_next in zip(weights[:-1], weights[1:]):
        if w.shape[1] != w_next.shape[0]:
            raise ShapeMismatch('layer with %d outputs feeds layer with %d inputs' % (w.shape[1], w_next.shape[0]))


def from_params(params, slope=LEAKY_SLOPE):
    if len(params) != 6:
        raise ShapeMismatch('expected 6 parameter arrays, got %d' % len(params))
    weights = params[::2]
    _check_chain(params)
    net = MLP(weights[0].shape[0], weights[1].shape[0], weights[2].shape[0], weights[2].shape[1], slope)
    net.load(params)
    return net
