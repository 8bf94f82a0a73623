# Copyright Red Hat
#
# mirrordiff/fsdiff/fsdiffer.py - Mirror differ top-level interface
#
# This file is part of the mirrordiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Top-level fsdiff interface.
"""
from typing import Optional, TextIO
import logging

from mirrordiff import MirrordiffConfig

from .engine import DiffEngine, DiffResults
from .options import DiffOptions
from .sync import SyncReconciler
from .treewalk import TreeWalker

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


class FsDiffer:
    """
    Top-level interface for comparing a tree with its mirror.
    """

    def __init__(
        self,
        options: Optional[DiffOptions] = None,
        config: Optional[MirrordiffConfig] = None,
        progress_stream: Optional[TextIO] = None,
    ):
        """
        Initialise a new ``FsDiffer`` to compute tree differences.

        :param options: Options to control this ``FsDiffer`` instance.
        :type options: ``DiffOptions``
        :param config: The exclusion configuration. Defaults are used if
                       ``None``.
        :type config: ``Optional[MirrordiffConfig]``
        :param progress_stream: Stream for scan progress output (default
                                stderr).
        :type progress_stream: ``Optional[TextIO]``
        """
        options = options or DiffOptions()
        config = config or MirrordiffConfig()
        self.options: DiffOptions = options
        self.config: MirrordiffConfig = config
        self.progress_stream = progress_stream
        self.tree_walker: TreeWalker = TreeWalker(
            options,
            always_exclude=config.always_exclude,
            rules_file=config.rules_file,
        )
        self.diff_engine: DiffEngine = DiffEngine(options)
        self.reconciler: SyncReconciler = SyncReconciler()

    def compare_roots(self, root_a: str, root_b: str) -> DiffResults:
        """
        Compare the tree at ``root_a`` with its mirror at ``root_b``.

        Both trees are walked, compared and, if ``options.sync`` is set,
        the auto-fixable differences are reconciled onto ``root_b``.

        :param root_a: The primary tree.
        :type root_a: ``str``
        :param root_b: The mirror tree.
        :type root_b: ``str``
        :returns: The diff results for the comparison.
        :rtype: ``DiffResults``
        :raises MirrordiffSystemError: If either root cannot be walked.
        """
        _log_debug(
            "Comparing '%s' with '%s' using options:\n%s",
            root_a,
            root_b,
            self.options,
        )
        entries_a = self.tree_walker.walk_tree(
            root_a, label="A", term_stream=self.progress_stream
        )
        entries_b = self.tree_walker.walk_tree(
            root_b, label="B", term_stream=self.progress_stream
        )

        entries = self.diff_engine.diff(entries_a, entries_b, root_a, root_b)

        if not self.options.sync:
            return DiffResults(entries, root_a, root_b)

        sync_results = self.reconciler.reconcile(entries, root_a, root_b)
        return DiffResults(
            sync_results.entries, root_a, root_b, failures=sync_results.failures
        )
