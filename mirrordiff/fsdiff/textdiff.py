# Copyright Red Hat
#
# mirrordiff/fsdiff/textdiff.py - Mirror differ LCS text diff
#
# This file is part of the mirrordiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Longest common subsequence text differ.

Produces a minimal-looking edit script of deleted (``"- "``) and added
(``"+ "``) units between two texts. Units that are common to both texts
are not emitted.
"""
from typing import List, NamedTuple, Sequence, Tuple

#: Prefix for units present only in the first text.
DELETE_TAG = "- "
#: Prefix for units present only in the second text.
INSERT_TAG = "+ "

#: Width of the chunks used to split texts that have no line breaks.
CHUNK_SIZE = 80


class Match(NamedTuple):
    """
    A pair of equal units aligned by the LCS.
    """

    index_a: int
    index_b: int


def lcs(seq_a: Sequence[str], seq_b: Sequence[str]) -> List[Match]:
    """
    Compute a longest common subsequence of ``seq_a`` and ``seq_b``.

    Uses the ``O(n*m)`` dynamic programming table. When skipping a unit of
    either sequence gives an equally long subsequence the unit of
    ``seq_a`` is skipped, so that the result is deterministic.

    :param seq_a: The first sequence.
    :type seq_a: ``Sequence[str]``
    :param seq_b: The second sequence.
    :type seq_b: ``Sequence[str]``
    :returns: The aligned index pairs, strictly increasing in both
              coordinates.
    :rtype: ``List[Match]``
    """
    len_a, len_b = len(seq_a), len(seq_b)
    if not len_a or not len_b:
        return []

    table = [[0] * (len_b + 1) for _ in range(len_a + 1)]
    for i in range(1, len_a + 1):
        row, prev = table[i], table[i - 1]
        for j in range(1, len_b + 1):
            if seq_a[i - 1] == seq_b[j - 1]:
                row[j] = prev[j - 1] + 1
            elif prev[j] >= row[j - 1]:
                row[j] = prev[j]
            else:
                row[j] = row[j - 1]

    matches = []
    i, j = len_a, len_b
    while i > 0 and j > 0:
        if seq_a[i - 1] == seq_b[j - 1]:
            matches.append(Match(i - 1, j - 1))
            i -= 1
            j -= 1
        elif table[i - 1][j] >= table[i][j - 1]:
            i -= 1
        else:
            j -= 1

    matches.reverse()
    return matches


def split_chunks(text: str, size: int = CHUNK_SIZE) -> List[str]:
    """
    Split ``text`` into consecutive chunks of ``size`` characters.

    The last chunk may be shorter; the empty string has no chunks.
    """
    return [text[i : i + size] for i in range(0, len(text), size)]


def split_units(
    text_a: str, text_b: str, size: int = CHUNK_SIZE
) -> Tuple[List[str], List[str]]:
    """
    Split two texts into the units that are aligned by the differ.

    Texts are split on newlines. If neither text contains a newline both
    are split into fixed size chunks instead.

    :returns: A tuple of the units of ``text_a`` and ``text_b``.
    """
    units_a = text_a.split("\n")
    units_b = text_b.split("\n")
    if len(units_a) == 1 and len(units_b) == 1:
        return split_chunks(text_a, size), split_chunks(text_b, size)
    return units_a, units_b


class TextDiffer:
    """
    Render LCS edit scripts for pairs of texts.
    """

    def __init__(self, chunk_size: int = CHUNK_SIZE):
        self.chunk_size = chunk_size

    def diff(self, text_a: str, text_b: str) -> List[str]:
        """
        Return the edit script that turns ``text_a`` into ``text_b``.

        Deletions preceding each aligned pair are emitted before the
        additions preceding it.

        :param text_a: The original text.
        :type text_a: ``str``
        :param text_b: The updated text.
        :type text_b: ``str``
        :returns: Tagged deletion and addition lines.
        :rtype: ``List[str]``
        """
        units_a, units_b = split_units(text_a, text_b, self.chunk_size)
        script = []
        index_a = index_b = 0
        for match in lcs(units_a, units_b) + [Match(len(units_a), len(units_b))]:
            script.extend(DELETE_TAG + unit for unit in units_a[index_a : match.index_a])
            script.extend(INSERT_TAG + unit for unit in units_b[index_b : match.index_b])
            index_a, index_b = match.index_a + 1, match.index_b + 1
        return script


__all__ = [
    "CHUNK_SIZE",
    "DELETE_TAG",
    "INSERT_TAG",
    "Match",
    "TextDiffer",
    "lcs",
    "split_chunks",
    "split_units",
]
