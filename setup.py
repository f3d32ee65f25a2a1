#!/usr/bin/env python
# Copyright (c) 2016-present, Gregory Szorc
# All rights reserved.
#
# This software may be modified and distributed under the terms
# of the BSD license. See the LICENSE file for details.

from __future__ import print_function

import sys

from setuptools import setup

if sys.version_info[0:2] < (3, 9):
    print("Python 3.9+ is required", file=sys.stderr)
    sys.exit(1)

# Need feature in 1.12 for ffi.from_buffer() to accept a C type.
# Require 1.17 everywhere so we don't have to think about supporting older
# versions.
MINIMUM_CFFI_VERSION = "1.17"

version = None

with open("blockpress/__init__.py", "r") as fh:
    for line in fh:
        if not line.startswith("__version__"):
            continue

        version = line.split()[2][1:-1]
        break

if not version:
    raise Exception(
        "could not resolve package version; " "this should never happen"
    )

setup(
    name="blockpress",
    version=version,
    description="Size-framed compressed block writer for seekable streams",
    packages=["blockpress"],
    python_requires=">=3.9",
    install_requires=[
        "cffi>=%s" % MINIMUM_CFFI_VERSION,
        "zstandard>=0.15",
    ],
    extras_require={
        "test": ["pytest", "hypothesis"],
    },
    entry_points={
        "console_scripts": ["blockpress=blockpress.cli:main"],
    },
)
