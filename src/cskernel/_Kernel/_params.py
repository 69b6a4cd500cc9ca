# cskernel/_Kernel/_params.py
#
# Copyright (c) 2024, the cskernel authors
#
# This file is part of cskernel.
#
# cskernel is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# cskernel is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with cskernel.  If not, see <http://www.gnu.org/licenses/>.

""" tagged variants for hyperparameters and length scale modes """

import collections

import numpy

from .. import _priors
from .. import _metric

class Hyperparameter:
    """
    Base class of `Active` and `Frozen`. A hyperparameter is a positive
    scalar or vector, log-transformed when packed.
    """

    __slots__ = ()

    prior = None

    @property
    def active(self):
        return self.prior is not None

    @staticmethod
    def make(value, prior):
        """ build `Active` or `Frozen` depending on `prior` being None """
        value = numpy.array(value, float)
        if value.ndim > 1 or value.size == 0:
            raise ValueError(f'hyperparameter must be a scalar or a vector, got shape {value.shape}')
        if not numpy.all(value > 0):
            raise ValueError(f'hyperparameter must be positive, got {value}')
        value.flags.writeable = False
        if prior is None:
            return Frozen(value)
        if not isinstance(prior, _priors.Prior):
            raise TypeError(f'prior must be a Prior or None, got {prior!r}')
        return Active(value, prior)

class Active(collections.namedtuple('Active', ['value', 'prior']), Hyperparameter):
    """ a hyperparameter with a prior, sampled or optimized """
    __slots__ = ()

class Frozen(collections.namedtuple('Frozen', ['value']), Hyperparameter):
    """ a hyperparameter without a prior, kept fixed """
    __slots__ = ()

class LengthMode:
    """ Base class of `Isotropic`, `ARD` and `ExternalMetric` """

    __slots__ = ()

    metric = None
    param = None

class Isotropic(collections.namedtuple('Isotropic', ['param']), LengthMode):
    """ a single length scale shared by all input dimensions """
    __slots__ = ()

class ARD(collections.namedtuple('ARD', ['param']), LengthMode):
    """ one length scale per input dimension """
    __slots__ = ()

class ExternalMetric(collections.namedtuple('ExternalMetric', ['metric']), LengthMode):
    """ distances computed by a `Metric` object, which owns its parameters """
    __slots__ = ()

def lengthmode(lengthscale, prior):
    """ build `Isotropic` or `ARD` from the shape of `lengthscale` """
    param = Hyperparameter.make(lengthscale, prior)
    if param.value.ndim == 0:
        return Isotropic(param)
    return ARD(param)

def metricmode(metric):
    if not isinstance(metric, _metric.Metric):
        raise TypeError(f'metric must be a Metric, got {metric!r}')
    return ExternalMetric(metric)
