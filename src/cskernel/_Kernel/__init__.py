# cskernel/_Kernel/__init__.py
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

from ._params import (
    Hyperparameter,
    Active,
    Frozen,
    LengthMode,
    Isotropic,
    ARD,
    ExternalMetric,
)
from ._covfunc import CovarianceFunction
