# cskernel/_trace.py
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

import gvar
import numpy

__all__ = [
    'Trace',
]

class Trace:
    """

    Append-only record of the sampled values of a set of parameters.

    Each call to `append` adds one row to every field. A trace may contain
    sub-traces (`children`) for the parameters of nested objects, e.g., the
    priors of the recorded parameters; these are appended to by their owners.

    Parameters
    ----------
    kind : str
        A label for the object that owns the trace.
    fields : sequence of str
        The names of the recorded parameters.
    children : dict, optional
        Sub-traces by name.

    Attributes
    ----------
    kind : str
    fields : dict
        Map name -> list of recorded rows.
    children : dict
        Map name -> `Trace`.

    """

    def __init__(self, kind, fields, children=None):
        self.kind = kind
        self.fields = {name: [] for name in fields}
        self.children = dict(children or {})
        self._rows = 0

    def __len__(self):
        return self._rows

    def __repr__(self):
        fields = ', '.join(self.fields)
        children = ', '.join(self.children)
        return f'Trace({self.kind!r}, fields=[{fields}], children=[{children}], rows={len(self)})'

    def append(self, index, **values):
        """
        Append one row.

        Parameters
        ----------
        index : int
            The index of the row, must be the current number of rows.
        **values :
            One value (scalar or 1d array) for each field.

        Raises
        ------
        ValueError :
            `index` is not the next row or the fields do not match.
        """
        if index != len(self):
            raise ValueError(f'trace {self.kind!r} has {len(self)} rows, '
                f'can not append row {index}')
        if set(values) != set(self.fields):
            raise ValueError(f'trace {self.kind!r} records {sorted(self.fields)}, '
                f'got {sorted(values)}')
        for name, value in values.items():
            self.fields[name].append(numpy.array(value, float))
        self._rows += 1

    def array(self, name):
        """ the rows of field `name` stacked along the first axis """
        rows = self.fields[name]
        if not rows:
            return numpy.empty(0)
        return numpy.stack(rows)

    def summary(self):
        """
        Posterior summary of the recorded positive parameters.

        Returns
        -------
        summary : gvar.BufferDict
            Mean ± standard deviation of the recorded values of each field,
            under the key ``'log(<field>)'`` for the log of fields that are
            always positive and ``'<field>'`` otherwise. Sub-traces are
            summarized recursively under ``'<child>:<key>'``. Empty if there
            are less than two rows.
        """
        data = {}
        for name in self.fields:
            values = self.array(name)
            if numpy.all(values > 0):
                data[f'log({name})'] = numpy.log(values)
            else:
                data[name] = values
        out = gvar.BufferDict()
        if data and len(self) > 1:
            out.update(gvar.dataset.avg_data(data, spread=True))
        for childname, child in self.children.items():
            for key, value in child.summary().items():
                out[f'{childname}:{key}'] = value
        return out
