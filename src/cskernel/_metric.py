# cskernel/_metric.py
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

""" define Metric and Euclidean """

import abc

import numpy

from . import _priors
from . import _trace

__all__ = [
    'Metric',
    'Euclidean',
]

class Metric(metaclass=abc.ABCMeta):
    """

    Abstract base class for distance metrics pluggable into covariance
    functions.

    A metric owns its parameters and their priors. Distances are already
    scaled, i.e., a compactly supported kernel vanishes where the distance
    is at least 1.

    Attributes
    ----------
    ngrad : int
        The number of arrays returned by `distance_gradient`.
    lengthscale, lengthscale_prior :
        If the metric is based on length scales, they are carried over to the
        covariance function when the metric is detached. None otherwise.

    """

    lengthscale = None
    lengthscale_prior = None

    @property
    @abc.abstractmethod
    def ngrad(self):
        pass

    @abc.abstractmethod
    def distance(self, x1, x2):
        """ ``(n1, m), (n2, m) -> (n1, n2)`` matrix of distances """
        pass

    @abc.abstractmethod
    def distance_gradient(self, x1, x2):
        """ list of `ngrad` ``(n1, n2)`` matrices, the derivatives of
        `distance` w.r.t. the transformed parameters, in `pak` order """
        pass

    @abc.abstractmethod
    def input_gradient(self, x1, x2):
        """ list of ``m`` ``(n1, n2)`` matrices, the derivatives of `distance`
        w.r.t. each column of `x1` """
        pass

    @abc.abstractmethod
    def pak(self):
        pass

    @abc.abstractmethod
    def unpak(self, w):
        pass

    @abc.abstractmethod
    def lp(self):
        pass

    @abc.abstractmethod
    def lpg(self):
        pass

    @abc.abstractmethod
    def recappend(self, trace=None, index=None):
        pass

class Euclidean(Metric):
    r"""

    Euclidean distance with one length scale per group of input columns.

    .. math::
        r^2 = \sum_c \sum_{d \in c} \frac {(x_d - y_d)^2} {\ell_c^2}

    Parameters
    ----------
    components : sequence
        Each element is a column index or a sequence of column indices forming
        a group that shares a length scale. Columns not in any group are
        ignored.
    lengthscale : scalar or 1d array, default 1
        A single length scale shared by all groups, or one per group.
    lengthscale_prior : Prior or None, default Uniform()
        The prior of the length scales, None to keep them fixed.

    """

    def __init__(self, components, lengthscale=1, lengthscale_prior=_priors.Uniform()):
        components = tuple(
            (int(c),) if numpy.ndim(c) == 0 else tuple(map(int, c))
            for c in components
        )
        if not components or not all(components):
            raise ValueError(f'components must be non-empty groups, got {components!r}')
        lengthscale = numpy.array(lengthscale, float)
        if lengthscale.ndim > 1 or lengthscale.size not in (1, len(components)):
            raise ValueError(f'{lengthscale.size} length scales for '
                f'{len(components)} components')
        if not numpy.all(lengthscale > 0):
            raise ValueError(f'length scales must be positive, got {lengthscale}')
        if lengthscale_prior is not None and not isinstance(lengthscale_prior, _priors.Prior):
            raise TypeError(f'lengthscale_prior must be a Prior, got {lengthscale_prior!r}')
        lengthscale.flags.writeable = False
        self._components = components
        self._lengthscale = lengthscale
        self._lengthscale_prior = lengthscale_prior

    @property
    def components(self):
        return self._components

    @property
    def lengthscale(self):
        return self._lengthscale

    @property
    def lengthscale_prior(self):
        return self._lengthscale_prior

    def __repr__(self):
        return (f'Euclidean({list(map(list, self._components))}, '
            f'lengthscale={self._lengthscale.tolist()}, '
            f'lengthscale_prior={self._lengthscale_prior!r})')

    def set(self, **kw):
        """ return a copy with some of the constructor arguments changed """
        args = dict(
            components=self._components,
            lengthscale=self._lengthscale,
            lengthscale_prior=self._lengthscale_prior,
        )
        for key, value in kw.items():
            if key not in args:
                raise KeyError(key)
            args[key] = value
        if 'components' in kw and 'lengthscale' not in kw:
            ncomp = len(kw['components'])
            if self._lengthscale.size not in (1, ncomp):
                args['lengthscale'] = numpy.full(ncomp, self._lengthscale[0])
        return self.__class__(**args)

    @property
    def ngrad(self):
        if self._lengthscale_prior is None:
            return 0
        return self._lengthscale.size

    def _s2(self):
        """ inverse squared length scale of each component """
        s2 = 1 / numpy.square(self._lengthscale)
        return numpy.broadcast_to(s2, (len(self._components),))

    def _terms(self, x1, x2):
        """ per-component scaled squared distance, (ncomp, n1, n2) """
        x1 = numpy.asarray(x1, float)
        x2 = numpy.asarray(x2, float)
        s2 = self._s2()
        terms = []
        for s2c, comp in zip(s2, self._components):
            delta = x1[:, None, list(comp)] - x2[None, :, list(comp)]
            terms.append(s2c * numpy.sum(numpy.square(delta), axis=-1))
        return numpy.stack(terms)

    def distance(self, x1, x2):
        return numpy.sqrt(numpy.sum(self._terms(x1, x2), axis=0))

    def distance_gradient(self, x1, x2):
        if self._lengthscale_prior is None:
            return []
        terms = self._terms(x1, x2)
        r = numpy.sqrt(numpy.sum(terms, axis=0))
        nz = r > 0
        if self._lengthscale.size == 1:
            terms = numpy.sum(terms, axis=0, keepdims=True)
        out = []
        for term in terms:
            # d r / d log l = -(scaled squared component distance) / r
            g = numpy.zeros_like(r)
            g[nz] = -term[nz] / r[nz]
            out.append(g)
        return out

    def input_gradient(self, x1, x2):
        x1 = numpy.asarray(x1, float)
        x2 = numpy.asarray(x2, float)
        r = self.distance(x1, x2)
        nz = r > 0
        out = [numpy.zeros_like(r) for _ in range(x1.shape[1])]
        for s2c, comp in zip(self._s2(), self._components):
            for d in comp:
                delta = x1[:, None, d] - x2[None, :, d]
                out[d][nz] = s2c * delta[nz] / r[nz]
        return out

    def pak(self):
        if self._lengthscale_prior is None:
            return numpy.empty(0), []
        w = numpy.log(self._lengthscale).reshape(-1)
        if w.size == 1:
            names = ['log(euclidean.lengthscale)']
        else:
            names = [f'log(euclidean.lengthscale[{i}])' for i in range(w.size)]
        wh, sh = self._lengthscale_prior.pak()
        return numpy.concatenate([w, wh]), names + sh

    def unpak(self, w):
        w = numpy.asarray(w, float)
        if self._lengthscale_prior is None:
            return self, w
        size = self._lengthscale.size
        if w.size < size:
            raise ValueError(f'parameter vector of length {w.size} too short for '
                f'{size} length scales')
        lengthscale = numpy.exp(w[:size]).reshape(self._lengthscale.shape)
        prior, w = self._lengthscale_prior.unpak(w[size:])
        new = self.set(lengthscale=lengthscale, lengthscale_prior=prior)
        return new, w

    def lp(self):
        if self._lengthscale_prior is None:
            return 0.
        ls = self._lengthscale
        return self._lengthscale_prior.lp(ls) + numpy.sum(numpy.log(ls))

    def lpg(self):
        if self._lengthscale_prior is None:
            return numpy.empty(0)
        ls = self._lengthscale
        g = self._lengthscale_prior.lpg(ls)
        return numpy.concatenate([g[:ls.size] * ls + 1, g[ls.size:]])

    def recappend(self, trace=None, index=None):
        prior = self._lengthscale_prior
        if trace is None:
            children = {} if prior is None else {'lengthscale': prior.recappend()}
            return _trace.Trace('euclidean', ['lengthscale'], children)
        trace.append(index, lengthscale=self._lengthscale)
        if prior is not None:
            prior.recappend(trace.children['lengthscale'], index)
        return trace
