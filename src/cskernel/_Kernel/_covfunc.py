# cskernel/_Kernel/_covfunc.py
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

import abc

import numpy

from .. import _logger

class CovarianceFunction(_logger.Logger, metaclass=abc.ABCMeta):
    r"""

    Abstract base class of covariance functions with hyperparameters.

    This is the capability set an inference framework uses to treat kernel
    families interchangeably. Objects are immutable, except for their log;
    methods that change parameters return new objects.

    Methods
    -------
    pak, unpak :
        Convert the hyperparameters to and from a flat vector of transformed
        values.
    lp, lpg :
        Log prior of the hyperparameters and its gradient w.r.t. the
        transformed values.
    cov, trcov, trvar :
        Covariance matrix between two input sets, of one input set with itself,
        and its diagonal.
    cfg :
        Derivatives of the covariance matrix w.r.t. the transformed
        hyperparameters.
    ginput :
        Derivatives of the covariance matrix w.r.t. the inputs.
    recappend :
        Record the hyperparameters in a `Trace`.
    set :
        Copy with some options changed.

    Attributes
    ----------
    compact_support : bool
        Whether the kernel is zero beyond a finite distance, so that the
        covariance matrices are sparse.

    """

    compact_support = False

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
    def cov(self, x1, x2):
        pass

    @abc.abstractmethod
    def trcov(self, x):
        pass

    @abc.abstractmethod
    def trvar(self, x):
        pass

    @abc.abstractmethod
    def cfg(self, x, x2=None, *, diag=False):
        pass

    @abc.abstractmethod
    def ginput(self, x, x2=None):
        pass

    @abc.abstractmethod
    def recappend(self, trace=None, index=None):
        pass

    @abc.abstractmethod
    def set(self, **kw):
        pass

    @staticmethod
    def _asinput(x, name='x'):
        """ convert to a float matrix with one row per point """
        x = numpy.asarray(x, float)
        if x.ndim == 1:
            x = x[:, None]
        if x.ndim != 2:
            raise ValueError(f'{name} must be a 1d or 2d array, got shape {x.shape}')
        return x

    @classmethod
    def _asinputs(cls, x1, x2):
        x1 = cls._asinput(x1, 'x1')
        x2 = cls._asinput(x2, 'x2')
        if x1.shape[1] != x2.shape[1]:
            raise ValueError(f'the number of columns in x1 ({x1.shape[1]}) and '
                f'x2 ({x2.shape[1]}) has to be the same')
        return x1, x2
