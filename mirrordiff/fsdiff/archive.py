# Copyright Red Hat
#
# mirrordiff/fsdiff/archive.py - Mirror differ document archive inspection
#
# This file is part of the mirrordiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Structural comparison of zip packaged XML document archives.

Two versions of a word processing archive can differ byte-for-byte
without any change to the text a reader sees: re-saving a document
recompresses it, rewrites metadata and often reorders markup. The
``ArchiveDiffer`` compares archives member by member and classifies the
difference so that cosmetic repackaging can be told apart from genuine
edits to the document text.
"""
from typing import Any, Dict, List, Optional, Tuple
from dataclasses import dataclass, field
from enum import Enum
import xml.etree.ElementTree as ET
import zipfile
import hashlib
import logging
import zlib
import os

from mirrordiff import MIRRORDIFF_SUBSYSTEM_ARCHIVE

from .textdiff import TextDiffer

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_archive(msg, *args, **kwargs):
    """A wrapper for archive subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": MIRRORDIFF_SUBSYSTEM_ARCHIVE}, **kwargs)


#: Prefix shared by all archive classification labels.
ARCHIVE_LABEL_PREFIX = "docx:"
#: At least one text-bearing member differs in its text.
LABEL_TEXT = ARCHIVE_LABEL_PREFIX + "text"
#: Members differ, but none of the differences affect the text.
LABEL_NOT_TEXT = ARCHIVE_LABEL_PREFIX + "not-text"
#: All members are identical.
LABEL_IDENTICAL = ARCHIVE_LABEL_PREFIX + "identical"
#: One of the archives could not be opened.
LABEL_ERROR = ARCHIVE_LABEL_PREFIX + "err"

#: File name extension of inspected archives.
ARCHIVE_EXTENSION = ".docx"

#: Local name of the XML element that holds a run of document text.
_TEXT_RUN_TAG = "t"

#: Members whose plain text is compared when their content differs.
TEXT_BEARING_MEMBERS = frozenset(
    [
        "word/document.xml",
        "word/footnotes.xml",
        "word/endnotes.xml",
        "word/comments.xml",
    ]
    + [f"word/header{i}.xml" for i in range(1, 10)]
    + [f"word/footer{i}.xml" for i in range(1, 10)]
)

# Reading a member can fail in several ways depending on the archive
# damage and the compression method used.
_MEMBER_READ_ERRORS = (
    OSError,
    EOFError,
    RuntimeError,
    NotImplementedError,
    zipfile.BadZipFile,
    zlib.error,
)


class MemberCategory(Enum):
    """
    Classification of archive members by their role in the document.
    """

    TEXT = "text"
    META = "meta"
    STYLE = "style"
    MEDIA = "media"
    OTHER = "other"


_TEXT_MEMBERS = (
    "word/document.xml",
    "word/footnotes.xml",
    "word/endnotes.xml",
    "word/comments.xml",
)
_TEXT_PREFIXES = ("word/header", "word/footer")
_META_MEMBERS = ("[content_types].xml", "_rels/.rels")
_META_PREFIXES = ("docprops/", "word/_rels/")
_STYLE_MEMBERS = (
    "word/styles.xml",
    "word/settings.xml",
    "word/fonttable.xml",
    "word/numbering.xml",
    "word/websettings.xml",
)
_STYLE_PREFIXES = ("word/theme/",)
_MEDIA_PREFIXES = ("word/media/",)


def categorize_member(name: str) -> MemberCategory:
    """
    Classify an archive member by its name (case-insensitively).

    :param name: The member name.
    :type name: ``str``
    :returns: The member category.
    :rtype: ``MemberCategory``
    """
    lower = name.lower()
    if lower in _TEXT_MEMBERS or lower.startswith(_TEXT_PREFIXES):
        return MemberCategory.TEXT
    if lower in _META_MEMBERS or lower.startswith(_META_PREFIXES):
        return MemberCategory.META
    if lower in _STYLE_MEMBERS or lower.startswith(_STYLE_PREFIXES):
        return MemberCategory.STYLE
    if lower.startswith(_MEDIA_PREFIXES):
        return MemberCategory.MEDIA
    return MemberCategory.OTHER


def is_text_bearing(name: str) -> bool:
    """
    Return ``True`` if ``name`` is a member whose plain text is compared.
    """
    return name.lower() in TEXT_BEARING_MEMBERS


def is_archive(rel_path: str) -> bool:
    """
    Return ``True`` if ``rel_path`` names an inspected archive, judged by
    its file name extension.

    :param rel_path: The path to test.
    :type rel_path: ``str``
    :rtype: ``bool``
    """
    return os.path.splitext(rel_path)[1].lower() == ARCHIVE_EXTENSION


def _local_name(tag: Any) -> str:
    """
    Strip any ``{namespace}`` qualifier from an element tag.
    """
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def extract_plain_text(xml_data: bytes) -> str:
    """
    Return the concatenated character data of all text run elements in
    ``xml_data``.

    Character data is collected from the start of any element with local
    name ``t`` until the next end of such an element. All other markup is
    ignored. Malformed XML yields the empty string.

    :param xml_data: The XML document.
    :type xml_data: ``bytes``
    :returns: The plain text.
    :rtype: ``str``
    """
    parser = ET.XMLPullParser(events=("start", "end"))
    try:
        parser.feed(xml_data)
        parser.close()
    except ET.ParseError as err:
        _log_debug_archive("Ignoring malformed XML member: %s", err)
        return ""

    # The document is complete here, so each element's text and tail
    # are final when its events are read.
    parts = []
    in_text = False
    for event, elem in parser.read_events():
        is_run = _local_name(elem.tag) == _TEXT_RUN_TAG
        if event == "start":
            if is_run:
                in_text = True
            if in_text and elem.text:
                parts.append(elem.text)
        else:
            if is_run:
                in_text = False
            if in_text and elem.tail:
                parts.append(elem.tail)
    return "".join(parts)


@dataclass(frozen=True)
class MemberDigest:
    """
    Size and content hash of one archive member.
    """

    size: int
    content_hash: str


class ArchiveTextExtractor:
    """
    Read member digests and plain text from an open archive.
    """

    def __init__(self, archive: zipfile.ZipFile):
        self.archive = archive

    def member_names(self) -> List[str]:
        """
        Return member names in archive order, without duplicates.
        """
        return list(dict.fromkeys(info.filename for info in self.archive.infolist()))

    def _hash_member(self, name: str) -> str:
        hasher = hashlib.sha256()
        try:
            with self.archive.open(name) as member:
                for chunk in iter(lambda: member.read(65536), b""):
                    hasher.update(chunk)
        except _MEMBER_READ_ERRORS as err:
            _log_debug_archive("Cannot hash member %s: %s", name, err)
            return ""
        return hasher.hexdigest()

    def member_digests(self) -> Dict[str, MemberDigest]:
        """
        Map member names to their uncompressed size and content hash.

        A member that cannot be read has the empty hash.

        :returns: A dictionary in archive order.
        :rtype: ``Dict[str, MemberDigest]``
        """
        return {
            name: MemberDigest(
                size=self.archive.getinfo(name).file_size,
                content_hash=self._hash_member(name),
            )
            for name in self.member_names()
        }

    def read_text(self, name: str) -> str:
        """
        Return the plain text of the member ``name``.

        :param name: The member name.
        :type name: ``str``
        :returns: The extracted plain text.
        :rtype: ``str``
        :raises OSError: and other ``_MEMBER_READ_ERRORS`` if the member
                         cannot be read.
        """
        return extract_plain_text(self.archive.read(name))


@dataclass(frozen=True)
class ArchiveMemberDiff:
    """
    One differing member of a pair of archives.
    """

    member_name: str
    category: MemberCategory
    reason: str
    text_edits: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert this ``ArchiveMemberDiff`` into a dictionary suitable for
        encoding as JSON.

        :rtype: ``Dict[str, Any]``
        """
        return {
            "member_name": self.member_name,
            "category": self.category.value,
            "reason": self.reason,
            "text_edits": list(self.text_edits),
        }


@dataclass(frozen=True)
class ArchiveResult:
    """
    The classification of a pair of archives.
    """

    label: str
    member_diffs: Tuple[ArchiveMemberDiff, ...] = field(default_factory=tuple)


class ArchiveDiffer:
    """
    Compare two versions of a document archive.
    """

    def __init__(self, text_differ: Optional[TextDiffer] = None):
        self.text_differ = text_differ or TextDiffer()

    def _one_sided(
        self, name: str, extractor: ArchiveTextExtractor, side: str
    ) -> ArchiveMemberDiff:
        """
        Describe a member that is present in only one archive.

        :param side: "A" or "B", the archive that holds the member.
        """
        category = categorize_member(name)
        reason = f"only in {side}"
        if category != MemberCategory.TEXT or not is_text_bearing(name):
            return ArchiveMemberDiff(name, category, reason)

        try:
            text = extractor.read_text(name)
        except _MEMBER_READ_ERRORS as err:
            _log_debug_archive("Cannot read member %s: %s", name, err)
            return ArchiveMemberDiff(name, category, reason)

        if not text:
            return ArchiveMemberDiff(name, MemberCategory.META, f"{reason} (empty)")

        if side == "A":
            edits = self.text_differ.diff(text, "")
        else:
            edits = self.text_differ.diff("", text)
        return ArchiveMemberDiff(name, category, reason, tuple(edits))

    def _changed(
        self,
        name: str,
        extractor_a: ArchiveTextExtractor,
        extractor_b: ArchiveTextExtractor,
    ) -> ArchiveMemberDiff:
        """
        Describe a member present in both archives with differing content.
        """
        category = categorize_member(name)
        if category != MemberCategory.TEXT or not is_text_bearing(name):
            return ArchiveMemberDiff(name, category, "hash differs")

        try:
            text_a = extractor_a.read_text(name)
            text_b = extractor_b.read_text(name)
        except _MEMBER_READ_ERRORS as err:
            _log_debug_archive("Cannot read member %s: %s", name, err)
            return ArchiveMemberDiff(name, category, "hash differs")

        if text_a == text_b:
            return ArchiveMemberDiff(
                name, MemberCategory.STYLE, "markup only (text identical)"
            )
        edits = self.text_differ.diff(text_a, text_b)
        return ArchiveMemberDiff(name, category, "text content differs", tuple(edits))

    def _compare(
        self, archive_a: zipfile.ZipFile, archive_b: zipfile.ZipFile
    ) -> ArchiveResult:
        extractor_a = ArchiveTextExtractor(archive_a)
        extractor_b = ArchiveTextExtractor(archive_b)
        digests_a = extractor_a.member_digests()
        digests_b = extractor_b.member_digests()

        member_diffs = []
        for name, digest_a in digests_a.items():
            digest_b = digests_b.get(name)
            if digest_b is None:
                member_diffs.append(self._one_sided(name, extractor_a, "A"))
            elif digest_a.content_hash != digest_b.content_hash:
                member_diffs.append(self._changed(name, extractor_a, extractor_b))
        for name in digests_b:
            if name not in digests_a:
                member_diffs.append(self._one_sided(name, extractor_b, "B"))

        if not member_diffs:
            label = LABEL_IDENTICAL
        elif any(diff.category == MemberCategory.TEXT for diff in member_diffs):
            label = LABEL_TEXT
        else:
            label = LABEL_NOT_TEXT
        return ArchiveResult(label, tuple(member_diffs))

    def analyze(self, path_a: str, path_b: str) -> ArchiveResult:
        """
        Classify the difference between the archives at ``path_a`` and
        ``path_b``.

        The result label is ``docx:identical`` if no member differs,
        ``docx:text`` if the text of any text-bearing member differs and
        ``docx:not-text`` otherwise. If either archive cannot be opened
        the label is ``docx:err`` and there are no member diffs.

        :param path_a: Path to the archive in the primary tree.
        :type path_a: ``str``
        :param path_b: Path to the archive in the mirror tree.
        :type path_b: ``str``
        :returns: The classification and per-member differences.
        :rtype: ``ArchiveResult``
        """
        try:
            with zipfile.ZipFile(path_a) as archive_a, zipfile.ZipFile(
                path_b
            ) as archive_b:
                result = self._compare(archive_a, archive_b)
        except (OSError, zipfile.BadZipFile, zipfile.LargeZipFile) as err:
            _log_debug_archive(
                "Cannot open archives %s and %s: %s", path_a, path_b, err
            )
            return ArchiveResult(LABEL_ERROR)

        _log_debug_archive(
            "Archive %s: %s (%d member differences)",
            path_a,
            result.label,
            len(result.member_diffs),
        )
        return result


__all__ = [
    "ARCHIVE_EXTENSION",
    "ARCHIVE_LABEL_PREFIX",
    "LABEL_ERROR",
    "LABEL_IDENTICAL",
    "LABEL_NOT_TEXT",
    "LABEL_TEXT",
    "TEXT_BEARING_MEMBERS",
    "ArchiveDiffer",
    "ArchiveMemberDiff",
    "ArchiveResult",
    "ArchiveTextExtractor",
    "MemberCategory",
    "MemberDigest",
    "categorize_member",
    "extract_plain_text",
    "is_archive",
    "is_text_bearing",
]
