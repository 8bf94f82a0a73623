# Copyright Red Hat
#
# tests/fsdiff/__init__.py - Mirror differ fsdiff test package
#
# This file is part of the mirrordiff project.
#
# SPDX-License-Identifier: Apache-2.0
