# cskernel/_priors.py
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

""" define Prior and the concrete prior distributions """

import abc
import types

import numpy
import jax
from jax import numpy as jnp
from jax.scipy import special as jspecial
from jax.scipy import stats as jstats

from . import _patch_jax
from . import _trace

__all__ = [
    'Prior',
    'Uniform',
    'SqrtUniform',
    'Gaussian',
    'LogGaussian',
    'Gamma',
    'InvGamma',
]

class Prior(metaclass=abc.ABCMeta):
    r"""

    Abstract base class for the prior distribution of a hyperparameter.

    A prior is an immutable value. Its own parameters are fixed unless they
    are given a prior too, in which case they take part in `pak`, `unpak`,
    `lp`, `lpg` and `recappend` like the hyperparameters of a covariance
    function. Positive parameters are log-transformed.

    Parameters
    ----------
    **kw :
        The parameters of the distribution, see the subclass, and for each
        parameter ``<name>``, optionally ``<name>_prior``, a `Prior` for it.

    Attributes
    ----------
    params : mapping
        The values of the parameters.
    priors : mapping
        The priors of the parameters that are not fixed.

    Raises
    ------
    KeyError :
        Unknown parameter name.
    ValueError :
        A positive parameter is not positive.

    """

    _defaults = {}
    _positive = frozenset()

    def __init__(self, **kw):
        params = dict(self._defaults)
        priors = {}
        for key, value in kw.items():
            if key in params:
                params[key] = float(value)
            elif key.endswith('_prior') and key[:-len('_prior')] in params:
                if value is not None:
                    if not isinstance(value, Prior):
                        raise TypeError(f'{key} must be a Prior, got {value!r}')
                    priors[key[:-len('_prior')]] = value
            else:
                raise KeyError(key)
        for name in self._positive:
            if not params[name] > 0:
                raise ValueError(f'{self.kind} parameter {name}={params[name]} must be positive')
        self._params = params
        self._priors = priors

    @property
    def kind(self):
        return self.__class__.__name__.lower()

    @property
    def params(self):
        return types.MappingProxyType(self._params)

    @property
    def priors(self):
        return types.MappingProxyType(self._priors)

    def __repr__(self):
        args = [f'{k}={v!r}' for k, v in self._params.items()]
        args += [f'{k}_prior={v!r}' for k, v in self._priors.items()]
        return f'{self.__class__.__name__}({", ".join(args)})'

    def _replace(self, params, priors):
        new = object.__new__(self.__class__)
        new._params = params
        new._priors = priors
        return new

    @abc.abstractmethod
    def _logdensity(self, x, **params):
        """ elementwise log density, written with jax.numpy """
        pass

    def _sampled(self):
        """ iterate over the names of the parameters that have a prior, in
        definition order """
        for name in self._params:
            if name in self._priors:
                yield name

    def _total(self, x, params):
        return jnp.sum(self._logdensity(x, **params))

    def lp(self, x):
        """
        Log density.

        Parameters
        ----------
        x : scalar or 1d array
            Values of the variable, the density is i.i.d. over elements.

        Returns
        -------
        lp : float
            The log density summed over elements, plus the log densities of
            the non-fixed parameters of the prior in their transformed
            coordinates.
        """
        x = jnp.asarray(x, _patch_jax.float_type(x))
        out = float(self._total(x, self._params))
        for name in self._sampled():
            value = self._params[name]
            out += self._priors[name].lp(value)
            if name in self._positive:
                out += numpy.log(value)
        return out

    def lpg(self, x):
        """
        Gradient of `lp`.

        Parameters
        ----------
        x : scalar or 1d array

        Returns
        -------
        lpg : 1d array
            The derivatives w.r.t. the elements of `x`, followed, for each
            non-fixed parameter in `pak` order, by the derivative w.r.t. the
            transformed parameter and the gradient w.r.t. the parameters of
            its own prior.
        """
        x = jnp.asarray(x, _patch_jax.float_type(x))
        params = {k: jnp.asarray(v) for k, v in self._params.items()}
        gx, gparams = jax.grad(self._total, argnums=(0, 1))(x, params)
        out = [numpy.ravel(gx)]
        for name in self._sampled():
            value = self._params[name]
            g = self._priors[name].lpg(value)
            dvalue = float(gparams[name]) + g[0]
            if name in self._positive:
                dvalue = dvalue * value + 1
            out.append([dvalue])
            out.append(g[1:])
        return numpy.concatenate(out)

    def pak(self):
        """
        Flatten the non-fixed parameters.

        Returns
        -------
        w : 1d array
            For each parameter with a prior, the (log-transformed if
            positive) value followed by the `pak` of its prior.
        names : list of str
            A label for each element of `w`.
        """
        w = []
        names = []
        for name in self._sampled():
            value = self._params[name]
            if name in self._positive:
                w.append([numpy.log(value)])
                names.append(f'log({self.kind}.{name})')
            else:
                w.append([value])
                names.append(f'{self.kind}.{name}')
            wh, sh = self._priors[name].pak()
            w.append(wh)
            names += sh
        return numpy.concatenate(w) if w else numpy.empty(0), names

    def unpak(self, w):
        """
        Inverse of `pak`.

        Parameters
        ----------
        w : 1d array
            A vector starting with the output of `pak`.

        Returns
        -------
        prior : Prior
            A new prior with the values read from `w`.
        w : 1d array
            The unused tail of `w`.
        """
        w = numpy.asarray(w, float)
        params = dict(self._params)
        priors = dict(self._priors)
        for name in self._sampled():
            if w.size < 1:
                raise ValueError(f'parameter vector exhausted while reading {self.kind}.{name}')
            params[name] = float(numpy.exp(w[0]) if name in self._positive else w[0])
            priors[name], w = priors[name].unpak(w[1:])
        return self._replace(params, priors), w

    def recappend(self, trace=None, index=None):
        """
        Record the non-fixed parameters.

        Call without arguments to create an empty `Trace`, and with the trace
        and the row index to append the current values.
        """
        if trace is None:
            names = list(self._sampled())
            children = {name: self._priors[name].recappend() for name in names}
            return _trace.Trace(self.kind, names, children)
        trace.append(index, **{name: self._params[name] for name in self._sampled()})
        for name in self._sampled():
            self._priors[name].recappend(trace.children[name], index)
        return trace

class Uniform(Prior):
    """ Improper uniform prior, log density zero everywhere """

    def _logdensity(self, x):
        return jnp.zeros_like(x)

class SqrtUniform(Prior):
    """ Improper prior uniform on the square root of the variable, i.e.,
    density 1/(2 sqrt(x)) """

    def _logdensity(self, x):
        return -jnp.log(2.) - jnp.log(x) / 2

class Gaussian(Prior):
    """ Normal prior with mean `mu` and variance `s2` """

    _defaults = dict(mu=0., s2=1.)
    _positive = frozenset(['s2'])

    def _logdensity(self, x, mu, s2):
        return jstats.norm.logpdf(x, mu, jnp.sqrt(s2))

class LogGaussian(Prior):
    """ Log-normal prior, the log of the variable has mean `mu` and variance
    `s2` """

    _defaults = dict(mu=0., s2=1.)
    _positive = frozenset(['s2'])

    def _logdensity(self, x, mu, s2):
        logx = jnp.log(x)
        return jstats.norm.logpdf(logx, mu, jnp.sqrt(s2)) - logx

class Gamma(Prior):
    """ Gamma prior with shape `shape` and inverse scale `invscale` """

    _defaults = dict(shape=4., invscale=1.)
    _positive = frozenset(['shape', 'invscale'])

    def _logdensity(self, x, shape, invscale):
        return jstats.gamma.logpdf(x, shape, scale=1 / invscale)

class InvGamma(Prior):
    """ Inverse gamma prior with shape `shape` and scale `scale` """

    _defaults = dict(shape=4., scale=1.)
    _positive = frozenset(['shape', 'scale'])

    def _logdensity(self, x, shape, scale):
        return (shape * jnp.log(scale) - jspecial.gammaln(shape)
            - (shape + 1) * jnp.log(x) - scale / x)
