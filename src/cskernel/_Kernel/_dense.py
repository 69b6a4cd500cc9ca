# cskernel/_Kernel/_dense.py
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

""" dense evaluation of the training covariance matrix on small inputs """

import functools

import numpy
import jax
from jax import numpy as jnp

from .. import _patch_jax

@functools.partial(jax.jit, static_argnums=(0, 4))
def _trcov(core, x, s2, magnitude, order):
    delta = x[:, None, :] - x[None, :, :]
    r = jnp.sqrt(jnp.sum(s2 * jnp.square(delta), axis=-1))
    # clamping makes the polynomial exactly zero outside the support
    return core(jnp.minimum(r, 1), magnitude, order)

def trcov(core, x, s2, magnitude, order, maxbytes):
    """

    Compute the full covariance matrix of `x` with itself with a compiled
    jax function.

    Parameters
    ----------
    core : callable
        ``core(r, magnitude, order)``, the kernel as a function of the scaled
        distance, zero at ``r = 1``. Must be hashable.
    x : (n, m) array
        The input points, only the columns used by the distance.
    s2 : (m,) array
        Inverse squared length scales.
    magnitude : float
    order : int
    maxbytes : int
        Largest size of the intermediate arrays.

    Returns
    -------
    K : (n, n) array or None
        None if the computation would take more than `maxbytes`.

    """
    n, m = x.shape
    if n == 0 or n * n * max(m, 1) * 8 > maxbytes:
        return None
    K = _trcov(core, jnp.asarray(x), jnp.asarray(s2), magnitude, order)
    return numpy.array(K)
