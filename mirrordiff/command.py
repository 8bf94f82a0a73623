# Copyright Red Hat
#
# mirrordiff/command.py - Mirror differ command interface
#
# This file is part of the mirrordiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""The ``mirrordiff.command`` module provides both the mirrordiff command
line interface infrastructure, and a simple procedural interface to the
``mirrordiff`` library modules.

The procedural interface is used by the ``mirrordiff`` command line tool,
and may be used by application programs, or interactively in the Python
shell by users who do not require all the features present in the
mirrordiff object API.
"""
from argparse import ArgumentParser
from typing import Optional
from os.path import abspath, basename, exists, isdir
import logging
import sys
import os

from mirrordiff import (
    MirrordiffArgumentError,
    MirrordiffConfig,
    MirrordiffPathError,
    MirrordiffSystemError,
    MIRRORDIFF_DEBUG_IGNORE,
    MIRRORDIFF_DEBUG_WALK,
    MIRRORDIFF_DEBUG_DIFF,
    MIRRORDIFF_DEBUG_ARCHIVE,
    MIRRORDIFF_DEBUG_SYNC,
    MIRRORDIFF_DEBUG_COMMAND,
    MIRRORDIFF_DEBUG_ALL,
    MIRRORDIFF_SUBSYSTEM_COMMAND,
    DEFAULT_MIRROR_SUFFIX,
    SubsystemFilter,
    ProgressAwareHandler,
    compute_mirror_path,
    set_debug_mask,
    __version__,
)
from mirrordiff.progress import COLOR_CHOICES, TermControl

from .fsdiff import DiffOptions, DiffResults, FsDiffer, render_diffs
from .fsdiff.options import HASH_ALGORITHMS

#: Exit status: the trees do not differ.
EXIT_SAME = 0
#: Exit status: differences remain, or a tree could not be walked.
EXIT_DIFFERENT = 1
#: Exit status: bad arguments or paths.
EXIT_USAGE = 2

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_command(msg, *args, **kwargs):
    """A wrapper for command subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": MIRRORDIFF_SUBSYSTEM_COMMAND}, **kwargs)


_DEFAULT_LOG_LEVEL = logging.WARNING
_CONSOLE_HANDLER = None


def resolve_roots(path: Optional[str], number: Optional[int], component: str):
    """
    Resolve the primary and mirror comparison roots.

    :param path: The primary tree, or ``None`` for the current directory.
    :type path: ``Optional[str]``
    :param number: The mirror number, or ``None`` for the default.
    :type number: ``Optional[int]``
    :param component: The path component substituted to find the mirror.
    :type component: ``str``
    :returns: A ``(root_a, root_b)`` tuple of absolute paths.
    :raises MirrordiffPathError: If either root does not exist or the
                                 mirror cannot be derived from ``path``.
    :raises MirrordiffArgumentError: If ``number`` is not positive.
    """
    root_a = abspath(path) if path else os.getcwd()
    suffix = number if number is not None else DEFAULT_MIRROR_SUFFIX

    if not exists(root_a):
        raise MirrordiffPathError(f"path does not exist: {root_a}")

    root_b = compute_mirror_path(root_a, suffix, component)
    if not exists(root_b):
        raise MirrordiffPathError(f"mirror path does not exist: {root_b}")
    if not isdir(root_b):
        raise MirrordiffPathError(f"mirror path is not a directory: {root_b}")

    _log_debug_command("Resolved roots A='%s' B='%s'", root_a, root_b)
    return root_a, root_b


def diff_mirror(
    path: Optional[str] = None,
    number: Optional[int] = None,
    options: Optional[DiffOptions] = None,
    config: Optional[MirrordiffConfig] = None,
) -> DiffResults:
    """
    Compare a tree with its mirror.

    :param path: The primary tree, or ``None`` for the current directory.
    :type path: ``Optional[str]``
    :param number: The mirror number, or ``None`` for the default.
    :type number: ``Optional[int]``
    :param options: Comparison options.
    :type options: ``Optional[DiffOptions]``
    :param config: Mirror and exclusion configuration.
    :type config: ``Optional[MirrordiffConfig]``
    :returns: The differences between the two trees.
    :rtype: ``DiffResults``
    """
    config = config or MirrordiffConfig()
    root_a, root_b = resolve_roots(path, number, config.mirror_component)
    differ = FsDiffer(options=options, config=config)
    return differ.compare_roots(root_a, root_b)


def _diff_cmd(cmd_args):
    """
    Mirror diff command handler.

    Compare the tree at ``PATH`` with its mirror.

    :param cmd_args: Command line arguments for the command
    :returns: integer status code returned from ``main()``
    """
    try:
        options = DiffOptions.from_cmd_args(cmd_args)
    except MirrordiffArgumentError as err:
        _log_error("Error: %s", err)
        return EXIT_USAGE

    config = MirrordiffConfig.from_file(cmd_args.config)

    try:
        results = diff_mirror(cmd_args.path, cmd_args.number, options, config)
    except (MirrordiffPathError, MirrordiffArgumentError) as err:
        _log_error("Error: %s", err)
        return EXIT_USAGE
    except MirrordiffSystemError as err:
        _log_error("Error walking tree: %s", err)
        return EXIT_DIFFERENT

    if cmd_args.json:
        print(results.json(pretty=True))
        return EXIT_DIFFERENT if results.unresolved else EXIT_SAME

    if not len(results):
        print("No differences found.")
        return EXIT_SAME

    term_control = TermControl(color=cmd_args.color)
    print(render_diffs(list(results), term_control, options.show_members))
    return EXIT_DIFFERENT if results.unresolved else EXIT_SAME


def setup_logging(cmd_args):
    """
    Set up mirrordiff logging.
    """
    # pylint: disable=global-statement
    global _CONSOLE_HANDLER
    level = _DEFAULT_LOG_LEVEL
    if cmd_args.verbose and cmd_args.verbose > 1:
        level = logging.DEBUG
    elif cmd_args.verbose and cmd_args.verbose > 0:
        level = logging.INFO

    mirrordiff_log = logging.getLogger("mirrordiff")
    formatter = logging.Formatter("%(levelname)s - %(message)s")
    mirrordiff_log.setLevel(level)
    if mirrordiff_log.hasHandlers():
        mirrordiff_log.handlers.clear()

    # Subsystem log filtering
    _mirrordiff_subsystem_filter = SubsystemFilter("mirrordiff")

    # Main console handler
    _CONSOLE_HANDLER = ProgressAwareHandler()

    _CONSOLE_HANDLER.setLevel(level)
    _CONSOLE_HANDLER.setFormatter(formatter)
    _CONSOLE_HANDLER.addFilter(_mirrordiff_subsystem_filter)

    mirrordiff_log.addHandler(_CONSOLE_HANDLER)


def shutdown_logging():
    """
    Shut down mirrordiff logging.
    """
    logging.shutdown()


def set_debug(debug_arg):
    """
    Set debugging mask from command line argument.
    """
    if not debug_arg:
        return

    mask_map = {
        "ignore": MIRRORDIFF_DEBUG_IGNORE,
        "walk": MIRRORDIFF_DEBUG_WALK,
        "diff": MIRRORDIFF_DEBUG_DIFF,
        "archive": MIRRORDIFF_DEBUG_ARCHIVE,
        "sync": MIRRORDIFF_DEBUG_SYNC,
        "command": MIRRORDIFF_DEBUG_COMMAND,
        "all": MIRRORDIFF_DEBUG_ALL,
    }

    mask = 0
    for name in debug_arg.split(","):
        if name not in mask_map:
            raise ValueError(f"Unknown debug option: {name}")
        mask |= mask_map[name]
    set_debug_mask(mask)


def _add_diff_args(parser):
    parser.add_argument(
        "-H",
        "--hash",
        dest="content_hash",
        action="store_true",
        help="Compare regular files by content hash as well as size",
    )
    parser.add_argument(
        "--hash-algorithm",
        choices=HASH_ALGORITHMS,
        default=None,
        help="Hash algorithm used with --hash (default: sha256)",
    )
    parser.add_argument(
        "-D",
        "--dates",
        dest="compare_timestamps",
        action="store_true",
        help="Report modification time differences",
    )
    parser.add_argument(
        "-s",
        "--sync",
        action="store_true",
        help="Copy archives with non-text differences and fix permissions "
        "from the primary tree onto the mirror",
    )
    parser.add_argument(
        "-l",
        "--long",
        dest="show_members",
        action="store_true",
        help="List archive member differences and text edits",
    )
    parser.add_argument(
        "-f",
        "--file-types",
        dest="use_magic_file_type",
        action="store_true",
        help="Confirm document archives by file type using libmagic",
    )
    parser.add_argument(
        "-j",
        "--json",
        action="store_true",
        help="Output differences as JSON",
    )
    parser.add_argument(
        "--color",
        choices=COLOR_CHOICES,
        default="auto",
        help="Colorize the report (default: auto)",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Do not output scan progress",
    )


def main(args):
    """
    Main entry point for mirrordiff.
    """
    parser = ArgumentParser(
        description="Compare a directory tree with its mirror",
        prog=basename(args[0]),
    )

    # Global arguments
    parser.add_argument(
        "-d",
        "--debug",
        metavar="DEBUGOPTS",
        type=str,
        help="A list of debug options to enable",
    )
    parser.add_argument("-v", "--verbose", help="Enable verbose output", action="count")
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        help="Report the version number of mirrordiff",
        version=__version__,
    )
    parser.add_argument(
        "-c",
        "--config",
        metavar="CONFIG",
        type=str,
        default=None,
        help="Path to an alternate configuration file",
    )
    _add_diff_args(parser)
    parser.add_argument(
        "path",
        metavar="PATH",
        nargs="?",
        default=None,
        help="The primary tree (default: the current directory)",
    )
    parser.add_argument(
        "number",
        metavar="NUMBER",
        nargs="?",
        type=int,
        default=None,
        help=f"The mirror number (default: {DEFAULT_MIRROR_SUFFIX})",
    )

    cmd_args = parser.parse_args(args[1:])

    status = EXIT_USAGE

    try:
        set_debug(cmd_args.debug)
    except ValueError as err:
        print(err)
        parser.print_help()
        return status

    setup_logging(cmd_args)

    _log_debug_command("Parsed %s", " ".join(args[1:]))

    if cmd_args.debug:
        status = _diff_cmd(cmd_args)
    else:
        try:
            status = _diff_cmd(cmd_args)
        # pylint: disable=broad-except
        except KeyboardInterrupt:  # pragma: no cover
            _log_info("Exiting on user cancel")
            status = EXIT_DIFFERENT
        except Exception as err:
            _log_error("Command failed: %s", err)
            status = EXIT_DIFFERENT

    shutdown_logging()
    return status


def console_main():
    """
    Console script entry point.
    """
    sys.exit(main(sys.argv))


# vim: set et ts=4 sw=4 :
