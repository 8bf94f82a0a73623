# Copyright Red Hat
#
# mirrordiff/fsdiff/filetypes.py - Mirror differ file type detection
#
# This file is part of the mirrordiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
File type detection for archive candidates.
"""
from typing import Optional
import logging
import magic

from mirrordiff import MIRRORDIFF_SUBSYSTEM_ARCHIVE

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_archive(msg, *args, **kwargs):
    """A wrapper for archive subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": MIRRORDIFF_SUBSYSTEM_ARCHIVE}, **kwargs)


#: MIME type of word processing document archives.
DOCX_MIME_TYPE = (
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
)

#: MIME types that magic may report for a document archive.
ARCHIVE_MIME_TYPES = (
    DOCX_MIME_TYPE,
    "application/zip",
    "application/octet-stream",
)


def detect_mime_type(path: str) -> Optional[str]:
    """
    Return the MIME type of the file at ``path`` as reported by magic.

    :param path: The path to inspect.
    :type path: ``str``
    :returns: The MIME type, or ``None`` if detection failed.
    :rtype: ``Optional[str]``
    """
    # c9s magic does not have magic.error
    if hasattr(magic, "error"):
        magic_errors = (magic.error, OSError, ValueError)
    else:
        magic_errors = (OSError, ValueError)

    try:
        mime_type = magic.detect_from_filename(path).mime_type
    except magic_errors as err:
        _log_warn("Error detecting file type for %s: %s", path, err)
        return None
    _log_debug_archive("Detected MIME type %s for %s", mime_type, path)
    return mime_type


def is_archive_content(path: str) -> bool:
    """
    Return ``True`` if magic identifies ``path`` as a zip document archive.

    A failed detection is treated as a match so that the archive differ
    decides, and reports ``docx:err`` if the file cannot be opened.

    :param path: The path to inspect.
    :type path: ``str``
    :rtype: ``bool``
    """
    mime_type = detect_mime_type(path)
    return mime_type is None or mime_type in ARCHIVE_MIME_TYPES


__all__ = [
    "ARCHIVE_MIME_TYPES",
    "DOCX_MIME_TYPE",
    "detect_mime_type",
    "is_archive_content",
]
