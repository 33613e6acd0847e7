# Copyright Red Hat
#
# dirchanges/__init__.py - Directory change tracker package initialisation
#
# This file is part of the dirchanges project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Dirchanges top-level package.
"""
from ._dirchanges import *  # noqa: F401, F403
from ._dirchanges import __all__  # noqa: F401

__version__ = "0.1.0"
