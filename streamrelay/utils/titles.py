from __future__ import annotations

import unicodedata
from typing import Optional


def normalize_title(title: Optional[str]) -> str:
    """
    Canonical form used for fuzzy title comparison.

    Case-folds, then drops whitespace and every Unicode punctuation character
    (categories P*). `"The Matrix: Reloaded"` becomes `"thematrixreloaded"`.
    """
    if not title:
        return ""
    return "".join(
        ch
        for ch in title.casefold()
        if not ch.isspace() and not unicodedata.category(ch).startswith("P")
    )


def titles_match(
    wanted_title: str,
    wanted_year: Optional[str],
    candidate_title: str,
    candidate_year: Optional[str],
) -> bool:
    """
    Accept a candidate when either normalized title contains the other and the
    years agree or one of them is absent. Empty normalized titles never match.
    """
    a = normalize_title(wanted_title)
    b = normalize_title(candidate_title)
    if not a or not b:
        return False
    if a not in b and b not in a:
        return False
    wy = str(wanted_year or "").strip()
    cy = str(candidate_year or "").strip()
    return not wy or not cy or wy == cy
