import numpy as np

from errors import check_shape


class NesterovSGD(object):
    def __init__(self, params: list):
        # ``params`` is the network's list, rewritten after every step
        self.params = params
        self.state = [(p, np.zeros_like(p)) for p in params]

    @property
    def velocity(self):
        return [v for _, v in self.state]

    @staticmethod
    def update(param, grad, velocity, lr, momentum):
        velocity = momentum * velocity - lr * grad
        param = param + momentum * velocity - lr * grad
        return param, velocity

    def step(self, grads: list, lr: float, momentum: float):
        if len(grads) != len(self.state):
            raise ValueError('expected %d gradients, got %d' % (len(self.state), len(grads)))

        new_state = []
        for (p, v), g in zip(self.state, grads):
            check_shape('gradient', g.shape, p.shape)
            new_state.append(self.update(p, g, v, lr, momentum))

        # swap in only once every pair has been computed
        self.state = new_state
        self.params[:] = [p for p, _ in new_state]
        return self.params
