# Copyright Red Hat
#
# mirrordiff/__main__.py - Mirror differ module entry point
#
# This file is part of the mirrordiff project.
#
# SPDX-License-Identifier: Apache-2.0
import sys

from mirrordiff.command import main

if __name__ == "__main__":
    sys.exit(main(sys.argv))
