# Copyright Red Hat
#
# mirrordiff/__init__.py - Mirror differ package initialisation
#
# This file is part of the mirrordiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Mirrordiff top-level package.
"""
from ._mirrordiff import *  # noqa: F401, F403
from ._mirrordiff import __all__  # noqa: F401

__version__ = "0.1.0"
