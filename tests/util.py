# cskernel/tests/util.py
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

import numpy as np
from scipy import linalg
from scipy import sparse

def todense(x):
    """ convert sparse matrices to numpy arrays, leave the rest as is """
    if sparse.issparse(x):
        return x.toarray()
    return np.asarray(x)

def assert_equal(*args):
    """ version of numpy's assert_equal that accepts sparse matrices """
    np.testing.assert_equal(*map(todense, args))

def assert_close_matrices(actual, desired, *, rtol=0, atol=0, tozero=False):
    """
    Check if two matrices are similar.

    Scalars and vectors are intepreted as 1x1 and Nx1 matrices, but the two
    arrays must have the same shape beforehand. Sparse matrices are converted
    to dense.

    The closeness condition is:

        ||actual - desired|| <= atol + rtol * ||desired||,

    where the norm is the matrix 2-norm, i.e., the maximum (in absolute value)
    singular value. The tolerances are 0 by default.

    Parameters
    ----------
    actual, desired : array_like
        The two matrices to be compared. Must be scalars, vectors, or 2d arrays.
    rtol, atol : scalar
        Relative and absolute tolerances for the comparison.
    tozero : bool
        Default False. If True, use the following codition instead:

            ||actual|| <= atol + rtol * ||desired||

    Raises
    ------
    AssertionError :
        If the condition is not satisfied.
    """

    actual = todense(actual)
    desired = todense(desired)
    assert actual.shape == desired.shape
    if actual.size == 0:
        return
    actual = np.atleast_1d(actual)
    desired = np.atleast_1d(desired)

    if tozero:
        diff = actual
        expr = 'actual'
        ref = 'zero'
    else:
        diff = actual - desired
        expr = 'actual - desired'
        ref = 'desired'

    dnorm = linalg.norm(desired, 2)
    adnorm = linalg.norm(diff, 2)
    ratio = adnorm / dnorm if dnorm else np.nan

    msg = f"""\
matrices actual and {ref} are not close in 2-norm
norm(desired) = {dnorm:.2g}
norm({expr}) = {adnorm:.2g}  (atol = {atol:.2g})
ratio = {ratio:.2g}  (rtol = {rtol:.2g})"""

    assert adnorm <= atol + rtol * dnorm, msg

def assert_allclose(actual, desired, *, rtol=0, atol=0, equal_nan=False, **kw):
    """ change the default arguments of np.testing.assert_allclose, and accept
    sparse matrices """
    np.testing.assert_allclose(todense(actual), todense(desired), rtol=rtol, atol=atol, equal_nan=equal_nan, **kw)

def numdiff(fun, x, step=1e-6):
    """
    Central finite difference derivative of a matrix-valued function.

    Parameters
    ----------
    fun : callable
        ``fun(x)`` returns an array or a sparse matrix.
    x : array
        The point, derivatives are taken w.r.t. each element.
    step : float

    Returns
    -------
    grads : list of arrays
        The derivative w.r.t. each element of `x`, in flattened order.
    """
    x = np.array(x, float)
    out = []
    for i in range(x.size):
        xp = x.copy().reshape(-1)
        xm = x.copy().reshape(-1)
        xp[i] += step
        xm[i] -= step
        fp = todense(fun(xp.reshape(x.shape)))
        fm = todense(fun(xm.reshape(x.shape)))
        out.append((fp - fm) / (2 * step))
    return out
