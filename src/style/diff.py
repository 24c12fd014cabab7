# src/style/diff.py - v1
"""Sentence-level diff between a generated section and the user's edit."""

from __future__ import annotations

import difflib

from draftsmith.core.models import SentenceEdit
from draftsmith.style.analyzer import segment_sentences


def sentence_diff(before: str, after: str) -> list[SentenceEdit]:
    """Diff two texts sentence by sentence.

    Unchanged sentences are omitted. A replaced block of unequal length is
    paired positionally; surplus sentences become inserts or deletes.
    """
    old = segment_sentences(before)
    new = segment_sentences(after)
    matcher = difflib.SequenceMatcher(a=old, b=new, autojunk=False)

    edits: list[SentenceEdit] = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            continue
        if tag == "delete":
            edits.extend(SentenceEdit(op="delete", before=s) for s in old[i1:i2])
        elif tag == "insert":
            edits.extend(SentenceEdit(op="insert", after=s) for s in new[j1:j2])
        else:
            removed, added = old[i1:i2], new[j1:j2]
            for k in range(max(len(removed), len(added))):
                if k < len(removed) and k < len(added):
                    edits.append(SentenceEdit(op="replace", before=removed[k], after=added[k]))
                elif k < len(removed):
                    edits.append(SentenceEdit(op="delete", before=removed[k]))
                else:
                    edits.append(SentenceEdit(op="insert", after=added[k]))
    return edits
