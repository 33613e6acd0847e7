# Copyright Red Hat
#
# tests/__init__.py - Directory change tracker test package
#
# This file is part of the dirchanges project.
#
# SPDX-License-Identifier: Apache-2.0
import logging
import os
import time

log = logging.getLogger()
log.setLevel(logging.DEBUG)
formatter = logging.Formatter('%(asctime)s %(levelname)s %(name)s %(message)s')
file_handler = logging.FileHandler("test.log")
file_handler.setFormatter(formatter)
console_handler = logging.StreamHandler()
console_handler.setFormatter(formatter)
log.addHandler(file_handler)
log.addHandler(console_handler)

os.environ["TZ"] = "UTC"
time.tzset()


class MockArgs(object):
    debug = None
    verbose = 0
    version = False
    state = None
    json = False
    roots = False
    recursive = False
    paths = []
    ignore_hidden = None
    filter_patterns = None
    filter_full_path = None
    exclude_patterns = None
    ops = None
    update = False
    output_format = None
    pretty = False
    color = "never"
