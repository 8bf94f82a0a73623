# Copyright Red Hat
#
# tests/__init__.py - Mirror differ test package
#
# This file is part of the mirrordiff project.
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
    config = None
    content_hash = False
    hash_algorithm = None
    compare_timestamps = False
    sync = False
    show_members = False
    use_magic_file_type = False
    json = False
    color = "never"
    quiet = True
    path = None
    number = None
