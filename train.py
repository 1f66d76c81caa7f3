import logging

import numpy as np
from sklearn.metrics import accuracy_score

from errors import ConfigurationError, ShapeMismatch, check_finite
from metrics import evaluate
from model import MLP, from_params
from optim import NesterovSGD

logger = logging.getLogger(__name__)

INITIALIZED = 'initialized'
TRAINING = 'training'
EPOCH_BOUNDARY = 'epoch_boundary'
DONE = 'done'


def batch_bounds(i, batch_size, n):
    """1-indexed, inclusive row range of the ``i``-th batch of an epoch.

    The origin wraps modulo ``n`` and the end is clipped at ``n``; rows are
    never reshuffled and a batch never wraps around the end of the data.
    """
    beg = ((i - 1) * batch_size) % n + 1
    end = min(n, beg + batch_size - 1)
    return beg, end


class Schedule(object):
    def __init__(self, lr, momentum, momentum_target, decay, epochs):
        self.lr = lr
        self.momentum = momentum
        self.momentum_target = momentum_target
        self.decay = decay
        self.epochs = epochs

    def step(self, epoch):
        # called once after ``epoch`` (1-indexed) has finished
        remaining = self.epochs - epoch
        self.momentum += (self.momentum_target - self.momentum) / (1 + remaining)
        self.lr *= self.decay


class Trainer(object):
    def __init__(self, network: MLP, epochs: int, lr: float, momentum: float, batch_size: int, iterations: int,
                 momentum_target=None, decay=1.0, report=None):
        for name, value in (('epochs', epochs), ('batch_size', batch_size), ('iterations', iterations)):
            if not isinstance(value, (int, np.integer)) or value <= 0:
                raise ConfigurationError('%s must be a positive integer, got %r' % (name, value))
        if lr <= 0:
            raise ConfigurationError('lr must be positive, got %r' % lr)
        if not 0 <= momentum < 1:
            raise ConfigurationError('momentum must lie in [0, 1), got %r' % momentum)
        if momentum_target is None:
            momentum_target = momentum
        if not 0 <= momentum_target < 1:
            raise ConfigurationError('momentum_target must lie in [0, 1), got %r' % momentum_target)
        if decay <= 0:
            raise ConfigurationError('decay must be positive, got %r' % decay)

        self.network = network
        self.epochs = epochs
        self.batch_size = batch_size
        self.iterations = iterations
        self.schedule = Schedule(lr, momentum, momentum_target, decay, epochs)
        self.optimizer = NesterovSGD(network.parameters())
        self.report = report
        self.history = []
        self.state = INITIALIZED

    def fit(self, x, y, x_val, y_val):
        if x.shape[0] != y.shape[0]:
            raise ShapeMismatch('%d training examples but %d targets' % (x.shape[0], y.shape[0]))
        if x_val.shape[0] != y_val.shape[0]:
            raise ShapeMismatch('%d validation examples but %d targets' % (x_val.shape[0], y_val.shape[0]))
        if x.shape[0] == 0:
            raise ConfigurationError('empty training set')
        n = x.shape[0]

        for e in range(1, self.epochs + 1):
            self.state = TRAINING
            for i in range(1, self.iterations + 1):
                beg, end = batch_bounds(i, self.batch_size, n)
                x_batch, y_batch = x[beg - 1:end], y[beg - 1:end]

                loss, probs, grads = self.network.loss_and_grads(x_batch, y_batch)
                for g in grads:
                    check_finite('gradient', g)
                acc = float(accuracy_score(y_batch.argmax(1), probs.argmax(1)))
                self.optimizer.step(grads, self.schedule.lr, self.schedule.momentum)

                val_loss, val_acc = evaluate(self.network(x_val), y_val)
                record = {
                    'epoch': e,
                    'iteration': i,
                    'train_loss': loss,
                    'train_accuracy': acc,
                    'val_loss': val_loss,
                    'val_accuracy': val_acc
                }
                self.history.append(record)
                if self.report is not None:
                    self.report(record)

            self.state = EPOCH_BOUNDARY
            self.schedule.step(e)
            logger.debug('epoch %d done: lr=%.6g momentum=%.6g', e, self.schedule.lr, self.schedule.momentum)

        self.state = DONE
        return self.network.parameters()


def train(x, y, x_val, y_val, hidden=(100, 100), epochs=10, lr=0.1, momentum=0.5, momentum_target=0.9,
          decay=0.95, batch_size=128, iterations=100, seed=None, report=None):
    net = MLP(x.shape[1], hidden[0], hidden[1], y.shape[1], seed=seed)
    trainer = Trainer(net, epochs, lr, momentum, batch_size, iterations, momentum_target=momentum_target,
                      decay=decay, report=report)
    return list(trainer.fit(x, y, x_val, y_val))


def predict(x, params):
    return from_params(params)(x)
