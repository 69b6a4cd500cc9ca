# cskernel/setup.py
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

import re

import setuptools

# read the version without importing the package, which needs jax
with open("src/cskernel/__init__.py", "r") as fh:
    version = re.search(r"^__version__ = '(.+)'$", fh.read(), re.M).group(1)

setuptools.setup(
    name="cskernel",
    version=version,
    author="the cskernel authors",
    description="Compactly supported piecewise polynomial covariance functions for Gaussian processes",
    package_dir={"": "src"},
    packages=setuptools.find_packages("src"),
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: GNU General Public License v3 (GPLv3)",
        "Development Status :: 4 - Beta",
        "Operating System :: OS Independent",
    ],
    python_requires='>=3.9',
    install_requires=[
        'numpy>=1.20',
        'scipy>=1.6', # first version with KDTree.query_pairs(output_type)
        'jax>=0.4.1', # jax.config.update without the jax.config module
        'jaxlib>=0.4.1',
        'gvar>=1.10',
    ],
    extras_require={
        'test': ['pytest'],
    },
)
