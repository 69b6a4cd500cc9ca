# cskernel/__init__.py
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

"""
Compactly supported covariance functions for Gaussian processes
"""

__version__ = '0.1.0'

from . import _patch_jax

from ._Kernel import (
    CovarianceFunction,
    Active,
    Frozen,
    Isotropic,
    ARD,
    ExternalMetric,
)
from ._kernels import * # safe, _kernels/__init__.py only imports kernels
from ._priors import (
    Prior,
    Uniform,
    SqrtUniform,
    Gaussian,
    LogGaussian,
    Gamma,
    InvGamma,
)
from ._metric import (
    Metric,
    Euclidean,
)
from ._trace import Trace
