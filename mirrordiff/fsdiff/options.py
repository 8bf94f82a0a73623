# Copyright Red Hat
#
# mirrordiff/fsdiff/options.py - Mirror differ diff options
#
# This file is part of the mirrordiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Tree comparison options.
"""
from dataclasses import dataclass, fields
from argparse import Namespace
import hashlib
import logging

from mirrordiff import MirrordiffArgumentError

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error

#: Hash algorithms accepted for content comparison.
HASH_ALGORITHMS = ("md5", "sha1", "sha256", "sha512")


@dataclass(frozen=True)
class DiffOptions:
    """
    Tree comparison options.
    """

    #: Compare regular files by content hash instead of by size alone
    content_hash: bool = False
    #: Report modification time differences
    compare_timestamps: bool = False
    #: Include archive member details in rendered output
    show_members: bool = False
    #: Reconcile auto-fixable differences onto the mirror tree
    sync: bool = False
    #: Confirm archive candidates by MIME type using magic
    use_magic_file_type: bool = False
    #: Hash algorithm used when ``content_hash`` is set
    hash_algorithm: str = "sha256"
    #: Do not output progress or status updates
    quiet: bool = False

    def __post_init__(self):
        if self.hash_algorithm not in HASH_ALGORITHMS:
            raise MirrordiffArgumentError(
                f"Unknown hash algorithm: {self.hash_algorithm}"
            )

    def __str__(self):
        """
        Return a human readable string representation of this
        ``DiffOptions`` instance.

        :returns: A human readable string.
        :rtype: ``str``
        """
        return "\n".join(f"{key}={val}" for key, val in self.__dict__.items())

    def new_hasher(self):
        """
        Return a new hash object for the configured algorithm.

        :returns: A ``hashlib`` hash object.
        """
        return hashlib.new(self.hash_algorithm, usedforsecurity=False)

    @classmethod
    def from_cmd_args(cls, cmd_args: Namespace) -> "DiffOptions":
        """
        Initialise DiffOptions from command line arguments.

        Construct a new ``DiffOptions`` object from the command line
        arguments in ``cmd_args``. Arguments that are absent or ``None``
        keep their default values.

        :param cmd_args: The command line arguments.
        :type cmd_args: ``Namespace``
        :returns: A new ``DiffOptions`` instance
        :rtype: ``DiffOptions``
        """
        kwargs = {
            f.name: getattr(cmd_args, f.name)
            for f in fields(cls)
            if getattr(cmd_args, f.name, None) is not None
        }
        options = cls(**kwargs)
        _log_debug("Initialised DiffOptions from arguments: %s", repr(options))
        return options
