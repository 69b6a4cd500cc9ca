# cskernel/_logger.py
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

""" the log carried by every covariance function """

import collections
import textwrap

LogLine = collections.namedtuple('LogLine', ['message', 'verbosity', 'level'])

class Logger:
    """

    Superclass that gives an object a log. Each line has a verbosity level (an
    integer >= 0, or a set of them) and is printed when the threshold of the
    object reaches it. The last `LOG_MAXLINES` lines are kept, printed or not,
    and can be retrieved with `getlog`.

    Parameters
    ----------
    target_verbosity : int, default 0
        The threshold. 0 prints nothing with the default line verbosity.

    """

    LOG_MAXLINES = 1000

    def __init__(self, target_verbosity=0):
        self._verbosity = target_verbosity
        self._loggedlines = collections.deque(maxlen=self.LOG_MAXLINES)

    @property
    def verbosity(self):
        return self._verbosity

    @staticmethod
    def _shown(verbosity, threshold):
        if isinstance(verbosity, int):
            return threshold >= verbosity
        return threshold in verbosity

    @classmethod
    def _prefix(cls, level):
        return 4 * max(0, level) * ' '

    def log(self, message, verbosity=1, *, level=0):
        """
        Print and record a message.

        Parameters
        ----------
        message : str
            The message. A newline is added unconditionally when printing.
        verbosity : int or set, default 1
            If an integer, the message is printed at all thresholds >= that
            integer; if a set, at the thresholds in the set.
        level : int, default 0
            Indentation of the message, added to the level set with
            ``with self.loglevel:``.
        """
        line = LogLine(message, verbosity, level + self.loglevel._level)
        if self._shown(line.verbosity, self._verbosity):
            print(textwrap.indent(line.message, self._prefix(line.level)))
        self._loggedlines.append(line)

    def getlog(self, target_verbosity=None, *, base_level=0):
        """ the recorded lines joined with newlines, only those that would be
        printed at `target_verbosity` if specified, otherwise all """
        lines = self._loggedlines
        if target_verbosity is not None:
            lines = [l for l in lines if self._shown(l.verbosity, target_verbosity)]
        return '\n'.join(
            textwrap.indent(l.message, self._prefix(base_level + l.level))
            for l in lines
        )

    class _LogLevel:
        """ context manager shared by all loggers to indent nested messages """

        _level = 0

        @classmethod
        def __enter__(cls):
            cls._level += 1

        @classmethod
        def __exit__(cls, *_):
            cls._level -= 1

    loglevel = _LogLevel()
