# Copyright Red Hat
#
# mirrordiff/fsdiff/render.py - Mirror differ report rendering
#
# This file is part of the mirrordiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Tabular rendering of tree differences.
"""
from typing import Iterable, List, Optional, Sequence, Tuple

from mirrordiff.progress import TermControl

from .archive import ARCHIVE_LABEL_PREFIX
from .engine import (
    DiffEntry,
    DiffKind,
    HASH_DETAIL,
    MODE_DETAIL,
    MODIFIED_DETAIL,
    SIZE_DETAIL,
)
from .textdiff import DELETE_TAG, INSERT_TAG

#: Narrowest terminal that is laid out at its own width.
_MIN_WIDTH = 40
#: Width used for narrower or unknown terminals.
_FALLBACK_WIDTH = 80

_DETAIL_MIN = 6
_DETAIL_MAX = 24
_GROUP_MAX = 18
_FILE_MIN = 10
# Two column padding, status, separators and the two size columns.
_FIXED_COLUMNS = 29

_ROOT_GROUP = "."
_ELLIPSIS = "..."

_SHORT_NAMES = (
    (MODE_DETAIL, "mode"),
    (HASH_DETAIL, "hash"),
    (SIZE_DETAIL, "size"),
    (MODIFIED_DETAIL, "date"),
)


def short_details(details: Iterable[str]) -> List[str]:
    """
    Abbreviate change details for display and comparison.

    Each ``mode:``, ``hash:``, ``size:`` and ``modified:`` detail is
    replaced by its short name (``mode``, ``hash``, ``size``, ``date``).
    When an archive label is present it stands for the content difference
    and the size and hash details are dropped. All other details are kept
    unchanged.

    :param details: The change details of a ``DiffEntry``.
    :type details: ``Iterable[str]``
    :returns: The list of abbreviated details.
    :rtype: ``List[str]``
    """
    details = list(details)
    has_archive = any(d.startswith(ARCHIVE_LABEL_PREFIX) for d in details)

    short = []
    for detail in details:
        for prefix, name in _SHORT_NAMES:
            if detail.startswith(prefix):
                if has_archive and prefix in (SIZE_DETAIL, HASH_DETAIL):
                    break
                short.append(name)
                break
        else:
            short.append(detail)
    return short


def detail_string(details: Iterable[str]) -> str:
    """
    Return the abbreviated details joined by single spaces.

    :param details: The change details of a ``DiffEntry``.
    :type details: ``Iterable[str]``
    :rtype: ``str``
    """
    return " ".join(short_details(details))


def first_detail(details: Iterable[str]) -> str:
    """
    Return the first abbreviated detail, or the empty string.
    """
    short = short_details(details)
    return short[0] if short else ""


def split_group_and_file(rel_path: str) -> Tuple[str, str]:
    """
    Split ``rel_path`` into its first component and the remainder.

    Paths in the comparison root belong to the group ``"."``.

    :param rel_path: A ``/`` separated relative path.
    :type rel_path: ``str``
    :returns: A ``(group, file)`` tuple.
    :rtype: ``Tuple[str, str]``
    """
    parts = rel_path.split("/", 1)
    if len(parts) == 1:
        return _ROOT_GROUP, parts[0]
    return parts[0], parts[1]


def truncate_path(path: str, max_len: int) -> str:
    """
    Shorten ``path`` to at most ``max_len`` characters by replacing its
    head with ``"..."``.

    :param path: The path to shorten.
    :type path: ``str``
    :param max_len: The maximum length.
    :type max_len: ``int``
    :rtype: ``str``
    """
    if len(path) <= max_len:
        return path
    if max_len <= len(_ELLIPSIS):
        return path[:max_len]
    return _ELLIPSIS + path[len(path) - (max_len - len(_ELLIPSIS)) :]


def _sort_key(entry: DiffEntry) -> Tuple[str, str, str]:
    return (detail_string(entry.details),) + split_group_and_file(entry.path)


def sort_entries(entries: Iterable[DiffEntry]) -> List[DiffEntry]:
    """
    Return ``entries`` sorted for display: by detail string, then by group
    and then by the remainder of the path.

    :param entries: The entries to sort.
    :type entries: ``Iterable[DiffEntry]``
    :rtype: ``List[DiffEntry]``
    """
    return sorted(entries, key=_sort_key)


def _paint(term_control: TermControl, color: str, text: str) -> str:
    if not color:
        return text
    return f"{color}{text}{term_control.NORMAL}"


class _Layout:
    """
    Column widths for one report.
    """

    def __init__(self, width: int, entries: Sequence[DiffEntry]):
        self.width = width if width >= _MIN_WIDTH else _FALLBACK_WIDTH
        detail = max(
            [_DETAIL_MIN] + [len(detail_string(e.details)) for e in entries]
        )
        self.detail = min(detail, _DETAIL_MAX)
        self.group = _GROUP_MAX
        self.file = max(_FILE_MIN, self.width - _FIXED_COLUMNS - self.detail - self.group)

    # pylint: disable=too-many-arguments
    def row(self, status, detail, path, size_a, size_b) -> str:
        group, file_name = split_group_and_file(path)
        return (
            f"  {status}  {detail:<{self.detail}}  "
            f"{truncate_path(group, self.group):<{self.group}}  "
            f"{truncate_path(file_name, self.file):<{self.file}}  "
            f"{size_a:>8}  {size_b:>8}"
        )

    def header(self) -> str:
        return (
            f"  S  {'DETAIL':<{self.detail}}  {'GROUP':<{self.group}}  "
            f"{'FILE':<{self.file}}  {'SIZE_A':>8}  {'SIZE_B':>8}"
        )


def _display_path(entry: DiffEntry) -> str:
    return entry.path + "/" if entry.is_dir else entry.path


def _render_members(entry: DiffEntry, term_control: TermControl) -> List[str]:
    lines = []
    for member in entry.archive_details:
        lines.append(
            _paint(
                term_control,
                term_control.YELLOW,
                f"      {member.category.value:<8}  {member.member_name}  "
                f"({member.reason})",
            )
        )
        for edit in member.text_edits:
            color = ""
            if edit.startswith(DELETE_TAG):
                color = term_control.RED
            elif edit.startswith(INSERT_TAG):
                color = term_control.GREEN
            lines.append(_paint(term_control, color, f"  {edit}"))
    return lines


def summary(entries: Sequence[DiffEntry]) -> str:
    """
    Return the one line summary of ``entries``.

    :param entries: The differences to count.
    :type entries: ``Sequence[DiffEntry]``
    :rtype: ``str``
    """
    counts = {kind: 0 for kind in DiffKind}
    for entry in entries:
        counts[entry.kind] += 1
    text = (
        f"Summary: {counts[DiffKind.ONLY_A]} only in A, "
        f"{counts[DiffKind.ONLY_B]} only in B, "
        f"{counts[DiffKind.CHANGED]} changed"
    )
    if counts[DiffKind.SYNCED]:
        text += f", {counts[DiffKind.SYNCED]} synced"
    return text


# pylint: disable=too-many-locals
def render_diffs(
    entries: Sequence[DiffEntry],
    term_control: Optional[TermControl] = None,
    show_members: bool = False,
) -> str:
    """
    Render ``entries`` as a report with one section per kind of difference.

    Entries only in the primary tree, only in the mirror tree and changed
    entries are listed in that order, each section sorted with
    ``sort_entries()``. Synced entries are only counted in the summary.

    :param entries: The differences to render.
    :type entries: ``Sequence[DiffEntry]``
    :param term_control: Terminal control for width and color. Plain text
                         is produced if ``None``.
    :type term_control: ``Optional[TermControl]``
    :param show_members: List archive member differences below each
                         changed archive.
    :type show_members: ``bool``
    :returns: The report text.
    :rtype: ``str``
    """
    term_control = term_control or TermControl(color="never")
    only_a = sort_entries(e for e in entries if e.kind == DiffKind.ONLY_A)
    only_b = sort_entries(e for e in entries if e.kind == DiffKind.ONLY_B)
    changed = sort_entries(e for e in entries if e.kind == DiffKind.CHANGED)

    layout = _Layout(term_control.width, only_a + only_b + changed)
    cyan = term_control.CYAN

    def _section(title: str) -> List[str]:
        return [
            _paint(term_control, cyan, f"=== {title} ==="),
            _paint(term_control, cyan, layout.header()),
            _paint(term_control, cyan, "-" * layout.width),
        ]

    lines = []
    if only_a:
        lines.extend(_section("Only in A"))
        for entry in only_a:
            row = layout.row("-", "", _display_path(entry), entry.entry_a.size, "-")
            lines.append(_paint(term_control, term_control.RED, row))
        lines.append("")

    if only_b:
        lines.extend(_section("Only in B"))
        for entry in only_b:
            row = layout.row("+", "", _display_path(entry), "-", entry.entry_b.size)
            lines.append(_paint(term_control, term_control.GREEN, row))
        lines.append("")

    if changed:
        lines.extend(_section("Changed"))
        for entry in changed:
            detail = detail_string(entry.details)
            if len(detail) > layout.detail:
                detail = first_detail(entry.details)
            row = layout.row(
                "~",
                detail,
                _display_path(entry),
                entry.entry_a.size,
                entry.entry_b.size,
            )
            lines.append(_paint(term_control, term_control.YELLOW, row))
            if show_members:
                lines.extend(_render_members(entry, term_control))
        lines.append("")

    lines.append(summary(entries))
    return "\n".join(lines)


__all__ = [
    "detail_string",
    "first_detail",
    "render_diffs",
    "short_details",
    "sort_entries",
    "split_group_and_file",
    "summary",
    "truncate_path",
]
