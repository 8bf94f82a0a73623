# Copyright Red Hat
#
# mirrordiff/_mirrordiff.py - Mirror differ global definitions
#
# This file is part of the mirrordiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Global definitions for the top-level mirrordiff package.
"""
from typing import List, Optional, TextIO, TYPE_CHECKING
from dataclasses import dataclass, field
from configparser import ConfigParser, Error as ConfigParserError
from os.path import exists, expanduser, join
import logging
import weakref
import sys
import os

if TYPE_CHECKING:
    from .progress import ThrobberBase

_log = logging.getLogger("mirrordiff")

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error

# Mirrordiff debugging subsystem mask
MIRRORDIFF_DEBUG_IGNORE = 1
MIRRORDIFF_DEBUG_WALK = 2
MIRRORDIFF_DEBUG_DIFF = 4
MIRRORDIFF_DEBUG_ARCHIVE = 8
MIRRORDIFF_DEBUG_SYNC = 16
MIRRORDIFF_DEBUG_COMMAND = 32
MIRRORDIFF_DEBUG_ALL = (
    MIRRORDIFF_DEBUG_IGNORE
    | MIRRORDIFF_DEBUG_WALK
    | MIRRORDIFF_DEBUG_DIFF
    | MIRRORDIFF_DEBUG_ARCHIVE
    | MIRRORDIFF_DEBUG_SYNC
    | MIRRORDIFF_DEBUG_COMMAND
)

# Mirrordiff debugging subsystem names
MIRRORDIFF_SUBSYSTEM_IGNORE = "mirrordiff.ignore"
MIRRORDIFF_SUBSYSTEM_WALK = "mirrordiff.walk"
MIRRORDIFF_SUBSYSTEM_DIFF = "mirrordiff.diff"
MIRRORDIFF_SUBSYSTEM_ARCHIVE = "mirrordiff.archive"
MIRRORDIFF_SUBSYSTEM_SYNC = "mirrordiff.sync"
MIRRORDIFF_SUBSYSTEM_COMMAND = "mirrordiff.command"

_DEBUG_MASK_TO_SUBSYSTEM = {
    MIRRORDIFF_DEBUG_IGNORE: MIRRORDIFF_SUBSYSTEM_IGNORE,
    MIRRORDIFF_DEBUG_WALK: MIRRORDIFF_SUBSYSTEM_WALK,
    MIRRORDIFF_DEBUG_DIFF: MIRRORDIFF_SUBSYSTEM_DIFF,
    MIRRORDIFF_DEBUG_ARCHIVE: MIRRORDIFF_SUBSYSTEM_ARCHIVE,
    MIRRORDIFF_DEBUG_SYNC: MIRRORDIFF_SUBSYSTEM_SYNC,
    MIRRORDIFF_DEBUG_COMMAND: MIRRORDIFF_SUBSYSTEM_COMMAND,
}

_debug_subsystems = set()

# Registry of active throbber instances: a WeakSet so that registration
# never keeps a finished throbber alive.
_active_progress: weakref.WeakSet = weakref.WeakSet()

#: Name of the configuration file section holding global options.
_MIRRORDIFF_CFG_GLOBAL = "global"
#: Comma separated list of base names that are never compared.
_MIRRORDIFF_CFG_ALWAYS_EXCLUDE = "always_exclude"
#: Path component that is replaced to locate the mirror tree.
_MIRRORDIFF_CFG_MIRROR_COMPONENT = "mirror_component"
#: Name of the per-directory ignore rules file.
_MIRRORDIFF_CFG_RULES_FILE = "rules_file"

#: Base names excluded from every comparison unless configured otherwise.
DEFAULT_ALWAYS_EXCLUDE = (".git",)

#: Default path component substituted to find the mirror tree.
DEFAULT_MIRROR_COMPONENT = "work"

#: Default name of the gitignore-style rules file.
DEFAULT_RULES_FILE = ".gitignore"

#: Default mirror suffix number.
DEFAULT_MIRROR_SUFFIX = 2


def default_config_path() -> str:
    """
    Return the path to the default ``mirrordiff.conf`` file.

    Honours ``$XDG_CONFIG_HOME`` and falls back to ``~/.config``.

    :returns: The configuration file path.
    :rtype: ``str``
    """
    config_home = os.environ.get("XDG_CONFIG_HOME") or join(
        expanduser("~"), ".config"
    )
    return join(config_home, "mirrordiff", "mirrordiff.conf")


class SubsystemFilter(logging.Filter):
    """
    Filters DEBUG records based on a set of enabled subsystem names.
    Non-DEBUG records or DEBUG records without a 'subsystem' attribute
    are always passed through.
    """

    def __init__(self, name=""):
        super().__init__(name)
        self.enabled_subsystems = set(_debug_subsystems)

    def filter(self, record):
        if record.levelno != logging.DEBUG:
            return True

        if not hasattr(record, "subsystem"):
            return True

        return record.subsystem in self.enabled_subsystems

    def set_debug_subsystems(self, subsystems):
        """Sets the collection of subsystems to allow."""
        self.enabled_subsystems = set(subsystems)


def get_debug_mask():
    """
    Return the current debug mask for the ``mirrordiff`` package.

    :returns: The current debug mask value
    :rtype: int
    """
    enabled_subsystems = set(_debug_subsystems)
    mirrordiff_log = logging.getLogger("mirrordiff")

    for handler in mirrordiff_log.handlers:
        for f in handler.filters:
            if isinstance(f, SubsystemFilter):
                enabled_subsystems.update(f.enabled_subsystems)

    mask_map = {v: k for k, v in _DEBUG_MASK_TO_SUBSYSTEM.items()}
    mask = 0
    for subsystem_name in enabled_subsystems:
        mask |= mask_map.get(subsystem_name, 0)
    return mask


def set_debug_mask(mask):
    """
    Set the debug mask for the ``mirrordiff`` package.

    :param mask: the logical OR of the ``MIRRORDIFF_DEBUG_*``
                 values to log.
    :rtype: None
    """
    # pylint: disable=global-statement
    global _debug_subsystems

    if mask < 0 or mask > MIRRORDIFF_DEBUG_ALL:
        raise ValueError(f"Invalid mirrordiff debug mask: {mask}")

    enabled_subsystems = [
        subsystem_name
        for flag, subsystem_name in _DEBUG_MASK_TO_SUBSYSTEM.items()
        if mask & flag
    ]

    mirrordiff_log = logging.getLogger("mirrordiff")
    for handler in mirrordiff_log.handlers:
        for f in handler.filters:
            if isinstance(f, SubsystemFilter):
                f.set_debug_subsystems(enabled_subsystems)

    _debug_subsystems = set(enabled_subsystems)


def register_progress(progress: "ThrobberBase"):
    """Register a throbber instance for log coordination."""
    _active_progress.add(progress)
    progress.registered = True


def unregister_progress(progress: "ThrobberBase"):
    """Unregister a throbber instance."""
    _active_progress.discard(progress)
    progress.registered = False


def notify_log_output(stream: TextIO):
    """
    Notify throbber instances that log output occurred on stream.

    Called by ProgressAwareHandler after emitting a record.

    :param stream: The stream that received output.
    :type stream: ``TextIO``
    """
    if stream not in (sys.stdout, sys.stderr):
        return
    for progress in list(_active_progress):
        if hasattr(progress, "reset_position"):
            progress.reset_position()


class ProgressAwareHandler(logging.StreamHandler):
    """
    A logging handler that coordinates with active throbbers.

    After emitting a log record, notifies any throbber writing to the
    same stream so that the next frame does not erase the log message.
    """

    def __init__(self, stream: Optional[TextIO] = None, **kwargs):
        super().__init__(stream=stream or sys.stderr, **kwargs)

    def emit(self, record):
        try:
            msg = self.format(record)
            self.stream.write(msg + "\n")
            self.stream.flush()
            notify_log_output(self.stream)
        except Exception:  # pylint: disable=broad-exception-caught
            self.handleError(record)


#
# Mirrordiff exception types
#


class MirrordiffError(Exception):
    """
    Base class for mirror differ errors.
    """


class MirrordiffSystemError(MirrordiffError):
    """
    An error when calling the operating system.
    """


class MirrordiffPathError(MirrordiffError):
    """
    An invalid path was supplied, for example a path that does not exist
    or that has no mirror component to substitute.
    """


class MirrordiffArgumentError(MirrordiffError):
    """
    An invalid argument was passed to a mirrordiff API.
    """


class MirrordiffSyncError(MirrordiffError):
    """
    A mirror tree entry could not be reconciled with the primary tree.
    """

    def __init__(self, path: str, err: OSError):
        super().__init__(f"{path}: {err}")
        #: Relative path of the entry that failed to synchronise.
        self.path = path
        #: The underlying operating system error.
        self.err = err


@dataclass
class MirrordiffConfig:
    """
    Mirror differ configuration.
    """

    always_exclude: List[str] = field(
        default_factory=lambda: list(DEFAULT_ALWAYS_EXCLUDE)
    )
    mirror_component: str = DEFAULT_MIRROR_COMPONENT
    rules_file: str = DEFAULT_RULES_FILE

    @classmethod
    def from_file(cls, config_file: Optional[str] = None) -> "MirrordiffConfig":
        """
        Load ``MirrordiffConfig`` from an INI-style configuration file located
        at ``config_file``.

        A missing file yields the default configuration. A file that cannot
        be parsed is reported and also yields the defaults.

        :param config_file: path to mirrordiff.conf, or ``None`` to use the
                            default location.
        :type config_file: ``Optional[str]``
        :returns: A ``MirrordiffConfig`` instance initialised from
                  ``config_file``.
        :rtype: ``MirrordiffConfig``
        """
        config_file = config_file or default_config_path()

        if not exists(config_file):
            return MirrordiffConfig()

        _log_debug("Loading configuration from '%s'", config_file)
        cfg = ConfigParser()
        try:
            cfg.read([config_file])
        except ConfigParserError as err:
            _log_warn("Ignoring malformed configuration '%s': %s", config_file, err)
            return MirrordiffConfig()

        config = MirrordiffConfig()
        if not cfg.has_section(_MIRRORDIFF_CFG_GLOBAL):
            return config

        section = cfg[_MIRRORDIFF_CFG_GLOBAL]
        if cfg.has_option(_MIRRORDIFF_CFG_GLOBAL, _MIRRORDIFF_CFG_ALWAYS_EXCLUDE):
            names = [
                name.strip()
                for name in section[_MIRRORDIFF_CFG_ALWAYS_EXCLUDE].split(",")
                if name.strip()
            ]
            if names:
                config.always_exclude = names
        if cfg.has_option(_MIRRORDIFF_CFG_GLOBAL, _MIRRORDIFF_CFG_MIRROR_COMPONENT):
            component = section[_MIRRORDIFF_CFG_MIRROR_COMPONENT].strip()
            if component:
                config.mirror_component = component
        if cfg.has_option(_MIRRORDIFF_CFG_GLOBAL, _MIRRORDIFF_CFG_RULES_FILE):
            rules_file = section[_MIRRORDIFF_CFG_RULES_FILE].strip()
            if rules_file:
                config.rules_file = rules_file
        return config


def compute_mirror_path(path: str, suffix: int, component: str) -> str:
    """
    Return the mirror counterpart of ``path``.

    The first path component equal to ``component`` is replaced with
    ``"<component>.<suffix>"``; later occurrences are left untouched.

    :param path: The absolute path of the primary tree.
    :type path: ``str``
    :param suffix: The mirror number (a positive integer).
    :type suffix: ``int``
    :param component: The path component to substitute.
    :type component: ``str``
    :returns: The path of the mirror tree.
    :rtype: ``str``
    :raises MirrordiffArgumentError: If ``suffix`` is not positive.
    :raises MirrordiffPathError: If ``path`` has no ``component`` component.
    """
    if suffix < 1:
        raise MirrordiffArgumentError(
            f"suffix must be a positive number, got {suffix}"
        )

    parts = path.split(os.sep)
    for index, part in enumerate(parts):
        if part == component:
            parts[index] = f"{component}.{suffix}"
            break
    else:
        raise MirrordiffPathError(
            f"path '{path}' does not contain a '{component}' component"
        )

    mirror = os.sep.join(parts)
    if path.startswith(os.sep):
        mirror = os.sep + mirror.lstrip(os.sep)
    return mirror


__all__ = [
    "MIRRORDIFF_DEBUG_IGNORE",
    "MIRRORDIFF_DEBUG_WALK",
    "MIRRORDIFF_DEBUG_DIFF",
    "MIRRORDIFF_DEBUG_ARCHIVE",
    "MIRRORDIFF_DEBUG_SYNC",
    "MIRRORDIFF_DEBUG_COMMAND",
    "MIRRORDIFF_DEBUG_ALL",
    # Debug logging - subsystem name interface
    "SubsystemFilter",
    "MIRRORDIFF_SUBSYSTEM_IGNORE",
    "MIRRORDIFF_SUBSYSTEM_WALK",
    "MIRRORDIFF_SUBSYSTEM_DIFF",
    "MIRRORDIFF_SUBSYSTEM_ARCHIVE",
    "MIRRORDIFF_SUBSYSTEM_SYNC",
    "MIRRORDIFF_SUBSYSTEM_COMMAND",
    "set_debug_mask",
    "get_debug_mask",
    # Progress log callbacks
    "register_progress",
    "unregister_progress",
    "notify_log_output",
    "ProgressAwareHandler",
    # Configuration
    "DEFAULT_ALWAYS_EXCLUDE",
    "DEFAULT_MIRROR_COMPONENT",
    "DEFAULT_MIRROR_SUFFIX",
    "DEFAULT_RULES_FILE",
    "default_config_path",
    "MirrordiffConfig",
    "compute_mirror_path",
    # Exceptions
    "MirrordiffError",
    "MirrordiffSystemError",
    "MirrordiffPathError",
    "MirrordiffArgumentError",
    "MirrordiffSyncError",
]
