# cskernel/_kernels/_ppcs2.py
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

import operator

import numpy
from scipy import sparse

from .. import _priors
from .. import _metric
from .. import _trace
from .. import _logger
from .._Kernel import _covfunc
from .._Kernel import _params
from .._Kernel import _neighbors
from .._Kernel import _dense

def ppcs2(r, magnitude, order):
    """ the kernel as a function of the scaled distance, for 0 <= r <= 1 """
    l = order
    cs = 1 - r
    poly = (l ** 2 + 4 * l + 3) * r ** 2 + (3 * l + 6) * r + 3
    return magnitude * cs ** (l + 2) * (poly / 3)

def ppcs2_deriv(r, magnitude, order):
    """ derivative of `ppcs2` w.r.t. r """
    l = order
    cs = 1 - r
    a = l ** 2 + 4 * l + 3
    b = 3 * l + 6
    bracket = cs * (2 * a * r + b) - (l + 2) * (a * r ** 2 + b * r + 3)
    return magnitude / 3 * cs ** (l + 1) * bracket

class PPCS2(_covfunc.CovarianceFunction):
    r"""

    Piecewise polynomial compactly supported covariance function.

    .. math::
        k(r) = \sigma^2 (1 - r)_+^{l + 2}
        \frac {(l^2 + 4l + 3) r^2 + (3l + 6) r + 3} 3,

    where :math:`r` is the scaled distance between the inputs and :math:`l`
    is the order. The function is positive definite in up to `order`
    dimensions, twice differentiable, and exactly zero for :math:`r \ge 1`,
    so the covariance matrices are sparse.

    Call with keyword arguments only to build a new kernel, or with an
    existing `PPCS2` as first argument to copy it overriding some options.

    Parameters
    ----------
    kernel : PPCS2, optional
        A kernel to copy.
    nin : int
        The number of columns of the inputs. Required for a new kernel.
    magnitude : float, default 0.1
        The variance :math:`\sigma^2`.
    lengthscale : scalar or 1d array, default 1
        One length scale shared by all inputs (isotropic), or one per input
        (automatic relevance determination).
    order : int, default ``nin // 2 + 3``
        The order :math:`l`, at least `nin`.
    metric : Metric or None
        Compute distances with this metric instead of the length scale. The
        metric owns its parameters. Passing None on a kernel with a metric
        detaches it, and the length scale and its prior are taken back from
        the metric when it has them.
    magnitude_prior : Prior or None, default SqrtUniform()
    lengthscale_prior : Prior or None, default Uniform()
        The priors of the hyperparameters. None keeps the hyperparameter fixed,
        i.e., excluded from `pak`, `lp` and the gradients.
    selected_variables : sequence of int, optional
        Use only these columns of the inputs. With a `Euclidean` metric
        attached, the metric is rebuilt with one component per selected
        column; an empty selection detaches it.
    verbosity : int, default 0
        Threshold for the messages printed to the log.

    Attributes
    ----------
    DENSE_MAXBYTES : int
        Largest dense matrix `trcov` computes in one go with jax before
        falling back to the sparse neighbor search. Set to 0 to always use the
        neighbor search.
    SEARCH_MAXBYTES : int
        Memory bound of one block of distances when scanning with a metric.

    Raises
    ------
    ValueError :
        `nin` missing, `order` smaller than `nin`, invalid hyperparameters.
    TypeError :
        `kernel` is not a `PPCS2`, `metric` is not a `Metric`.
    KeyError :
        Unknown option.

    """

    compact_support = True

    DENSE_MAXBYTES = 2 ** 24
    SEARCH_MAXBYTES = 2 ** 24

    _options = frozenset([
        'nin',
        'magnitude',
        'lengthscale',
        'order',
        'metric',
        'magnitude_prior',
        'lengthscale_prior',
        'selected_variables',
        'verbosity',
    ])

    def __init__(self, kernel=None, **kw):

        for key in kw:
            if key not in self._options:
                raise KeyError(key)

        if kernel is None:
            if kw.get('nin') is None:
                raise ValueError('the number of inputs nin is required')
            fresh = True
            magnitude = _params.Hyperparameter.make(0.1, _priors.SqrtUniform())
            length = _params.lengthmode(1., _priors.Uniform())
            nin = None
            order = None
            selected = None
            verbosity = 0
        elif isinstance(kernel, PPCS2):
            fresh = False
            magnitude = kernel._magnitude
            length = kernel._length
            nin = kernel._nin
            order = kernel._order
            selected = kernel._selected
            verbosity = kernel.verbosity
        else:
            raise TypeError(f'first argument must be a PPCS2 kernel, got {kernel!r}')

        # dimensionality and order
        if 'nin' in kw:
            nin = operator.index(kw['nin'])
            if nin < 1:
                raise ValueError(f'nin={nin} must be positive')
        if kw.get('order') is not None:
            order = operator.index(kw['order'])
            if order < 1:
                raise ValueError(f'order={order} must be positive')
        elif fresh or 'order' in kw:
            order = nin // 2 + 3
        if order < nin:
            raise ValueError(f'order={order} must be greater than or equal to '
                f'the number of inputs nin={nin}')

        # magnitude
        if 'magnitude' in kw or 'magnitude_prior' in kw:
            magnitude = _params.Hyperparameter.make(
                kw.get('magnitude', magnitude.value),
                kw.get('magnitude_prior', magnitude.prior),
            )

        # length scale or metric
        lsopt = {k: kw[k] for k in ('lengthscale', 'lengthscale_prior') if k in kw}
        if 'metric' in kw:
            if kw['metric'] is not None:
                length = _params.metricmode(kw['metric'])
                selected = None
                lsopt = {}
            elif length.metric is not None:
                length = self._detach(length.metric, lsopt)
                lsopt = {}
        if 'selected_variables' in kw:
            sv = kw['selected_variables']
            sv = () if sv is None else tuple(map(operator.index, sv))
            if length.metric is not None:
                if sv:
                    if not isinstance(length.metric, _metric.Euclidean):
                        raise TypeError('selected_variables can be combined '
                            'only with a Euclidean metric')
                    components = [(d,) for d in sv]
                    metric = length.metric.set(components=components, **lsopt)
                    length = _params.ExternalMetric(metric)
                else:
                    length = self._detach(length.metric, lsopt)
                lsopt = {}
                selected = None
            else:
                selected = sv if sv else None
        if lsopt:
            if length.metric is not None:
                if not isinstance(length.metric, _metric.Euclidean):
                    raise TypeError(f'the length scale is owned by the metric '
                        f'{length.metric!r}')
                length = _params.ExternalMetric(length.metric.set(**lsopt))
            else:
                param = length.param
                length = _params.lengthmode(
                    lsopt.get('lengthscale', param.value),
                    lsopt.get('lengthscale_prior', param.prior),
                )

        # consistency of the input columns
        if selected is not None:
            if len(set(selected)) != len(selected) or not all(0 <= d < nin for d in selected):
                raise ValueError(f'selected_variables={list(selected)} must be '
                    f'distinct column indices in [0, {nin})')
        if isinstance(length, _params.ARD):
            nused = nin if selected is None else len(selected)
            if length.param.value.size != nused:
                raise ValueError(f'{length.param.value.size} length scales for '
                    f'{nused} inputs')

        if 'verbosity' in kw:
            verbosity = kw['verbosity']

        super().__init__(verbosity)
        self._nin = nin
        self._order = order
        self._magnitude = magnitude
        self._length = length
        self._selected = selected
        self.log(f'{self!r}', 1)

    @staticmethod
    def _detach(metric, lsopt):
        """ length mode after removing `metric` """
        if metric.lengthscale is not None:
            lengthscale = metric.lengthscale
            prior = metric.lengthscale_prior
        else:
            lengthscale = 1.
            prior = _priors.Uniform()
        return _params.lengthmode(
            lsopt.get('lengthscale', lengthscale),
            lsopt.get('lengthscale_prior', prior),
        )

    def _replace(self, magnitude, length):
        new = object.__new__(self.__class__)
        _logger.Logger.__init__(new, self.verbosity)
        new._nin = self._nin
        new._order = self._order
        new._magnitude = magnitude
        new._length = length
        new._selected = self._selected
        return new

    def set(self, **kw):
        """ return a copy with some options changed, see `PPCS2` """
        return PPCS2(self, **kw)

    def __repr__(self):
        args = [f'nin={self._nin}', f'order={self._order}']
        args.append(f'magnitude={self._magnitude.value.tolist()}')
        if self._length.metric is not None:
            args.append(f'metric={self._length.metric!r}')
        else:
            args.append(f'lengthscale={self._length.param.value.tolist()}')
        if self._selected is not None:
            args.append(f'selected_variables={list(self._selected)}')
        return f'PPCS2({", ".join(args)})'

    @property
    def nin(self):
        return self._nin

    @property
    def order(self):
        return self._order

    @property
    def magnitude(self):
        """ `Active` or `Frozen` """
        return self._magnitude

    @property
    def length(self):
        """ `Isotropic`, `ARD` or `ExternalMetric` """
        return self._length

    @property
    def metric(self):
        return self._length.metric

    @property
    def lengthscale(self):
        """ the length scale, None if there is a metric """
        param = self._length.param
        return None if param is None else param.value

    @property
    def selected_variables(self):
        return self._selected

    ######## parameter vector ########

    def pak(self):
        w = []
        names = []

        mag = self._magnitude
        if mag.active:
            w.append([numpy.log(mag.value)])
            names.append('log(ppcs2.magnitude)')
            wh, sh = mag.prior.pak()
            w.append(wh)
            names += sh

        length = self._length
        if length.metric is not None:
            wm, sm = length.metric.pak()
            w.append(wm)
            names += sm
        elif length.param.active:
            value = length.param.value
            w.append(numpy.log(value).reshape(-1))
            if isinstance(length, _params.Isotropic):
                names.append('log(ppcs2.lengthscale)')
            else:
                names += [f'log(ppcs2.lengthscale[{d}])' for d in range(value.size)]
            wh, sh = length.param.prior.pak()
            w.append(wh)
            names += sh

        w = numpy.concatenate(w) if w else numpy.empty(0)
        assert w.size == len(names)
        return w, names

    def unpak(self, w):
        w = numpy.asarray(w, float)

        mag = self._magnitude
        if mag.active:
            if w.size < 1:
                raise ValueError('parameter vector exhausted while reading the magnitude')
            prior, rest = mag.prior.unpak(w[1:])
            mag = _params.Active(self._readonly(numpy.exp(w[0])), prior)
            w = rest

        length = self._length
        if length.metric is not None:
            metric, w = length.metric.unpak(w)
            length = _params.ExternalMetric(metric)
        elif length.param.active:
            param = length.param
            size = param.value.size
            if w.size < size:
                raise ValueError(f'parameter vector of length {w.size} too short '
                    f'for {size} length scales')
            value = numpy.exp(w[:size]).reshape(param.value.shape)
            prior, w = param.prior.unpak(w[size:])
            length = length._replace(param=_params.Active(self._readonly(value), prior))

        return self._replace(mag, length), w

    @staticmethod
    def _readonly(value):
        value = numpy.array(value, float)
        value.flags.writeable = False
        return value

    ######## priors ########

    def lp(self):
        out = 0.

        mag = self._magnitude
        if mag.active:
            out += mag.prior.lp(mag.value) + numpy.log(mag.value)

        length = self._length
        if length.metric is not None:
            out += length.metric.lp()
        elif length.param.active:
            value = length.param.value
            out += length.param.prior.lp(value) + numpy.sum(numpy.log(value))

        return float(out)

    def lpg(self):
        out = []

        mag = self._magnitude
        if mag.active:
            g = mag.prior.lpg(mag.value)
            out += [g[:1] * mag.value + 1, g[1:]]

        length = self._length
        if length.metric is not None:
            out.append(length.metric.lpg())
        elif length.param.active:
            value = length.param.value.reshape(-1)
            g = length.param.prior.lpg(value)
            out += [g[:value.size] * value + 1, g[value.size:]]

        return numpy.concatenate(out) if out else numpy.empty(0)

    ######## covariance matrices ########

    def _checkinput(self, x, name='x'):
        x = self._asinput(x, name)
        if self._length.metric is None and x.shape[1] != self._nin:
            raise ValueError(f'{name} has {x.shape[1]} columns, expected nin={self._nin}')
        return x

    def _checkinputs(self, x1, x2):
        x1, x2 = self._asinputs(x1, x2)
        return self._checkinput(x1, 'x1'), self._checkinput(x2, 'x2')

    def _columns(self, x):
        """ the columns used by the built-in distance """
        if self._selected is None:
            return x
        return x[:, list(self._selected)]

    def _s2(self, m):
        """ inverse squared length scale of each used column """
        s2 = 1 / numpy.square(self._length.param.value)
        return numpy.broadcast_to(s2, (m,))

    def _pairs(self, x1, x2=None, *, grad=None):
        """ pairs within the support, lower triangle of x1 with itself if x2
        is None """
        lower = x2 is None
        metric = self._length.metric
        if metric is not None:
            pairs = _neighbors.metric_pairs(metric, x1, x1 if lower else x2,
                lower=lower, grad=grad, maxbytes=self.SEARCH_MAXBYTES)
        else:
            xs1 = self._columns(x1)
            xs2 = None if lower else self._columns(x2)
            pairs = _neighbors.euclidean_pairs(xs1, xs2, self._s2(xs1.shape[1]), lower=lower)
        self.log(f'{pairs.nnz} pairs within the support', 2)
        return pairs

    def cov(self, x1, x2):
        """
        Covariance matrix between two sets of points.

        Parameters
        ----------
        x1, x2 : (n1, m), (n2, m) arrays
            The points, one per row. A 1d array is a single column.

        Returns
        -------
        C : scipy.sparse.csc_matrix (n1, n2)
        """
        x1, x2 = self._checkinputs(x1, x2)
        shape = x1.shape[0], x2.shape[0]
        with self.loglevel:
            pairs = self._pairs(x1, x2)
        value = ppcs2(pairs.r, self._magnitude.value, self._order)
        return _neighbors.assemble(pairs.i, pairs.j, value, shape)

    def trcov(self, x):
        """
        Covariance matrix of a set of points with itself.

        Parameters
        ----------
        x : (n, m) array
            The points, one per row. A 1d array is a single column.

        Returns
        -------
        C : scipy.sparse.csc_matrix (n, n)
            Symmetric, with diagonal equal to the magnitude.
        """
        x = self._checkinput(x)
        n = x.shape[0]
        mag = self._magnitude.value
        with self.loglevel:
            if self._length.metric is None:
                xs = self._columns(x)
                C = _dense.trcov(ppcs2, xs, self._s2(xs.shape[1]), mag, self._order, self.DENSE_MAXBYTES)
                if C is not None:
                    self.log(f'trcov: dense computation for {n} points', 2)
                    numpy.fill_diagonal(C, mag)
                    return sparse.csc_matrix(C)
                self.log(f'trcov: dense computation not available for {n} '
                    'points, searching neighbors', 1)
            pairs = self._pairs(x)
        value = ppcs2(pairs.r, mag, self._order)
        return _neighbors.assemble(pairs.i, pairs.j, value, (n, n), symmetric=True, diag=mag)

    def trvar(self, x):
        """
        Variance of each point.

        Parameters
        ----------
        x : (n, m) array

        Returns
        -------
        C : (n,) array
            The magnitude repeated, or zero if it is below the machine
            epsilon.
        """
        x = self._checkinput(x)
        C = numpy.full(x.shape[0], float(self._magnitude.value))
        C[C < numpy.finfo(float).eps] = 0
        return C

    ######## gradients ########

    def cfg(self, x, x2=None, *, diag=False):
        """
        Derivatives of the covariance matrix w.r.t. the log of the
        hyperparameters.

        Parameters
        ----------
        x : (n, m) array
        x2 : (n2, m) array, optional
            If specified, differentiate ``cov(x, x2)``, else ``trcov(x)``.
        diag : bool, default False
            If True, differentiate ``trvar(x)``.

        Returns
        -------
        grads : list
            One sparse matrix (or 1d array if `diag`) for each non-fixed
            hyperparameter in `pak` order, excluding the parameters of the
            priors. Each length scale of an ARD kernel and each parameter of a
            metric counts separately.
        """
        if diag and x2 is not None:
            raise ValueError('diag=True is incompatible with x2')
        training = x2 is None
        if training:
            x = self._checkinput(x)
            shape = x.shape[0], x.shape[0]
        else:
            x, x2 = self._checkinputs(x, x2)
            shape = x.shape[0], x2.shape[0]

        out = []
        mag = self._magnitude
        length = self._length

        if diag:
            n = x.shape[0]
            if mag.active:
                out.append(self.trvar(x))
            if length.metric is not None:
                ngrad = length.metric.ngrad
            elif length.param.active:
                ngrad = length.param.value.size
            else:
                ngrad = 0
            out += [numpy.zeros(n) for _ in range(ngrad)]
            return out

        if mag.active:
            out.append(self.trcov(x) if training else self.cov(x, x2))

        if length.metric is not None:
            if not length.metric.ngrad:
                return out
            with self.loglevel:
                pairs = self._pairs(x, x2, grad='params')
            dk = ppcs2_deriv(pairs.r, mag.value, self._order)
            for dr in pairs.grad:
                out.append(_neighbors.assemble(pairs.i, pairs.j, dk * dr, shape, symmetric=training))

        elif length.param.active:
            with self.loglevel:
                pairs = self._pairs(x, x2)
            r = pairs.r
            dk = ppcs2_deriv(r, mag.value, self._order)
            if isinstance(length, _params.Isotropic):
                # d r / d log l = -r
                out.append(_neighbors.assemble(pairs.i, pairs.j, -r * dk, shape, symmetric=training))
            else:
                s2 = self._s2(pairs.delta.shape[1])
                nz = r > 0
                for d in range(s2.size):
                    g = numpy.zeros_like(r)
                    g[nz] = -dk[nz] * s2[d] * numpy.square(pairs.delta[nz, d]) / r[nz]
                    out.append(_neighbors.assemble(pairs.i, pairs.j, g, shape, symmetric=training))

        return out

    def ginput(self, x, x2=None):
        """
        Derivatives of the covariance matrix w.r.t. the inputs.

        Parameters
        ----------
        x : (n, m) array
        x2 : (n2, m) array, optional
            If specified, differentiate ``cov(x, x2)`` w.r.t. `x`, else
            ``trcov(x)``.

        Returns
        -------
        grads : list of m * n sparse matrices
            Element ``d * n + j`` is the derivative w.r.t. ``x[j, d]``. It is
            nonzero only in row `j`, and also in column `j` if `x2` is not
            specified.
        """
        training = x2 is None
        if training:
            x = self._checkinput(x)
            x2 = x
        else:
            x, x2 = self._checkinputs(x, x2)
        n, m = x.shape
        shape = n, x2.shape[0]

        metric = self._length.metric
        with self.loglevel:
            if metric is not None:
                pairs = _neighbors.metric_pairs(metric, x, x2, grad='inputs',
                    maxbytes=self.SEARCH_MAXBYTES)
                self.log(f'{pairs.nnz} pairs within the support', 2)
                dr = pairs.grad
            else:
                pairs = self._pairs(x, x2)
                r = pairs.r
                nz = r > 0
                columns = range(m) if self._selected is None else self._selected
                s2 = self._s2(len(columns))
                dr = [numpy.zeros_like(r) for _ in range(m)]
                for k, d in enumerate(columns):
                    dr[d][nz] = s2[k] * pairs.delta[nz, k] / r[nz]
        assert len(dr) == m

        dk = ppcs2_deriv(pairs.r, self._magnitude.value, self._order)

        # group the pairs by the row point
        perm = numpy.argsort(pairs.i, kind='stable')
        bounds = numpy.searchsorted(pairs.i[perm], numpy.arange(n + 1))

        out = []
        for d in range(m):
            value = dk * dr[d]
            for j in range(n):
                sel = perm[bounds[j]:bounds[j + 1]]
                rows = numpy.full(sel.size, j)
                out.append(_neighbors.assemble(rows, pairs.j[sel], value[sel], shape, symmetric=training))
        return out

    ######## history ########

    def recappend(self, trace=None, index=None):
        """
        Record the hyperparameters.

        Parameters
        ----------
        trace : Trace, optional
            If not specified, return a new empty trace for this kernel.
        index : int
            The index of the row to append, must be equal to the current
            length of the trace.

        Returns
        -------
        trace : Trace
        """
        mag = self._magnitude
        length = self._length

        if trace is None:
            fields = ['magnitude']
            children = {}
            if mag.active:
                children['magnitude'] = mag.prior.recappend()
            if length.metric is not None:
                children['metric'] = length.metric.recappend()
            else:
                fields.append('lengthscale')
                if length.param.active:
                    children['lengthscale'] = length.param.prior.recappend()
            return _trace.Trace('ppcs2', fields, children)

        values = dict(magnitude=mag.value)
        if length.metric is None:
            values['lengthscale'] = length.param.value
        trace.append(index, **values)
        if mag.active:
            mag.prior.recappend(trace.children['magnitude'], index)
        if length.metric is not None:
            length.metric.recappend(trace.children['metric'], index)
        elif length.param.active:
            length.param.prior.recappend(trace.children['lengthscale'], index)
        return trace
