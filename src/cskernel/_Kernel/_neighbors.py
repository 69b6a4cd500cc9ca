# cskernel/_Kernel/_neighbors.py
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

Find the pairs of points closer than 1 in scaled distance, without
computing the full distance matrix, and assemble sparse matrices from them.

"""

import collections
import itertools

import numpy
from scipy import spatial
from scipy import sparse

# the tree search uses a slightly larger radius, then the exact r < 1 test
# is done on the distances computed here
_SEARCH_RADIUS = 1 + 1e-8

class Pairs(collections.namedtuple('Pairs', ['i', 'j', 'r', 'delta', 'grad'])):
    """

    The pairs of points within the support of the kernel.

    Attributes
    ----------
    i, j : int arrays (nnz,)
        Row and column indices.
    r : float array (nnz,)
        Scaled distances, all < 1.
    delta : float array (nnz, m) or None
        Differences ``x1[i] - x2[j]`` of the columns used by the distance,
        only for the built-in scaled Euclidean distance.
    grad : list of float arrays (nnz,) or None
        Derivatives of the distance provided by the metric, if requested.

    """

    __slots__ = ()

    @property
    def nnz(self):
        return self.r.size

class TripletBuffer:
    """ append-only accumulator of (i, j, r, *extra) entries """

    def __init__(self, nextra=0):
        self._chunks = []
        self._nextra = nextra

    def extend(self, i, j, r, extra=()):
        assert len(extra) == self._nextra
        self._chunks.append((i, j, r, *extra))

    def arrays(self):
        """ the concatenated entries as a tuple of arrays """
        if not self._chunks:
            dtypes = [numpy.intp, numpy.intp] + [float] * (1 + self._nextra)
            return tuple(numpy.empty(0, dtype) for dtype in dtypes)
        return tuple(map(numpy.concatenate, zip(*self._chunks)))

def empty_pairs(m=0):
    idx = numpy.empty(0, numpy.intp)
    return Pairs(idx, idx, numpy.empty(0), numpy.empty((0, m)), None)

def euclidean_pairs(x1, x2, s2, *, lower=False):
    """

    Find pairs with scaled Euclidean distance < 1 using k-d trees.

    Parameters
    ----------
    x1, x2 : (n1, m), (n2, m) arrays
        The points. If `lower`, `x2` is ignored and the pairs are searched
        between `x1` and itself.
    s2 : (m,) array
        Inverse squared length scales.
    lower : bool
        If True, return only the pairs with i > j.

    Returns
    -------
    pairs : Pairs

    """
    s2 = numpy.asarray(s2, float)
    scale = numpy.sqrt(s2)
    m = x1.shape[1]
    if lower:
        x2 = x1
        if x1.shape[0] < 2:
            return empty_pairs(m)
        tree = spatial.KDTree(x1 * scale)
        found = tree.query_pairs(_SEARCH_RADIUS, output_type='ndarray')
        found = numpy.reshape(found, (-1, 2))
        # query_pairs returns i < j, flip to the lower triangle
        i = found[:, 1].astype(numpy.intp)
        j = found[:, 0].astype(numpy.intp)
    else:
        if x1.shape[0] == 0 or x2.shape[0] == 0:
            return empty_pairs(m)
        tree1 = spatial.KDTree(x1 * scale)
        tree2 = spatial.KDTree(x2 * scale)
        found = tree1.query_ball_tree(tree2, _SEARCH_RADIUS)
        counts = numpy.fromiter(map(len, found), numpy.intp, len(found))
        i = numpy.repeat(numpy.arange(len(found)), counts)
        j = numpy.fromiter(itertools.chain.from_iterable(found), numpy.intp, counts.sum())

    delta = x1[i] - x2[j]
    r2 = numpy.sum(s2 * numpy.square(delta), axis=1)
    keep = r2 < 1
    return Pairs(i[keep], j[keep], numpy.sqrt(r2[keep]), delta[keep], None)

def metric_pairs(metric, x1, x2, *, lower=False, grad=None, maxbytes=2 ** 24):
    """

    Find pairs with distance < 1 by scanning the distance matrix computed
    by a metric in blocks.

    Parameters
    ----------
    metric : Metric
    x1, x2 : (n1, m), (n2, m) arrays
        The points. If `lower`, `x2` is ignored.
    lower : bool
        If True, return only the pairs with i > j, scanning one row at a time.
    grad : {None, 'params', 'inputs'}
        Also collect, for each pair, the derivatives of the distance w.r.t.
        the metric parameters or w.r.t. the columns of `x1`.
    maxbytes : int
        Bound on the size of one block of distances.

    Returns
    -------
    pairs : Pairs

    """
    if grad == 'params':
        gradfunc = metric.distance_gradient
        ngrad = metric.ngrad
    elif grad == 'inputs':
        gradfunc = metric.input_gradient
        ngrad = x1.shape[1]
    elif grad is None:
        ngrad = 0
    else:
        raise KeyError(grad)

    buffer = TripletBuffer(ngrad)
    if lower:
        n = x1.shape[0]
        for jj in range(n - 1):
            col = x1[jj:jj + 1]
            below = x1[jj + 1:]
            d = metric.distance(below, col)[:, 0]
            inside, = numpy.nonzero(d < 1)
            extra = ()
            if ngrad:
                g = gradfunc(below[inside], col)
                extra = tuple(a[:, 0] for a in g)
            buffer.extend(jj + 1 + inside, numpy.full(inside.size, jj), d[inside], extra)
    else:
        n1, n2 = x1.shape[0], x2.shape[0]
        step = max(1, maxbytes // (8 * max(1, n1)))
        for start in range(0, n2, step):
            block = x2[start:start + step]
            d = metric.distance(x1, block)
            inside = d < 1
            i, j = numpy.nonzero(inside)
            extra = ()
            if ngrad:
                extra = tuple(a[inside] for a in gradfunc(x1, block))
            buffer.extend(i, start + j, d[inside], extra)

    i, j, r, *extra = buffer.arrays()
    return Pairs(i, j, r, None, list(extra) if grad else None)

def assemble(i, j, v, shape, *, symmetric=False, diag=None):
    """

    Build a sparse matrix from triplets, summing duplicate entries and
    dropping zeros.

    Parameters
    ----------
    i, j, v : arrays (nnz,)
        Row indices, column indices, values.
    shape : pair of int
    symmetric : bool
        If True, also add the transposed entries ``(j, i, v)``.
    diag : scalar or array, optional
        Added on the diagonal.

    Returns
    -------
    matrix : scipy.sparse.csc_matrix

    """
    rows = [i]
    cols = [j]
    vals = [v]
    if symmetric:
        rows.append(j)
        cols.append(i)
        vals.append(v)
    if diag is not None:
        n = min(shape)
        k = numpy.arange(n)
        rows.append(k)
        cols.append(k)
        vals.append(numpy.broadcast_to(diag, (n,)))
    data = numpy.concatenate(vals).astype(float)
    rows = numpy.concatenate(rows)
    cols = numpy.concatenate(cols)
    nz = data != 0
    return sparse.csc_matrix((data[nz], (rows[nz], cols[nz])), shape=shape)
