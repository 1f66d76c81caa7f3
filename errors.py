import numpy as np


class ShapeMismatch(ValueError):
    pass


class NumericInstability(FloatingPointError):
    pass


class ConfigurationError(ValueError):
    pass


def check_shape(name, got, expected):
    if tuple(got) != tuple(expected):
        raise ShapeMismatch('%s: expected shape %s, got %s' % (name, tuple(expected), tuple(got)))


def check_finite(name, x):
    if not np.all(np.isfinite(x)):
        raise NumericInstability('non-finite values in %s' % name)
