from __future__ import annotations

EXACT = 1.0
CONTAINS = 0.8


def similarity(a: str, b: str) -> float:
    """Cheap title similarity in [0, 1].

    Case-insensitive equality scores 1.0 and containment either way 0.8.
    Anything else is the Jaccard overlap of the two character sets.
    """
    s1 = (a or "").lower()
    s2 = (b or "").lower()
    if s1 == s2:
        return EXACT
    if not s1 or not s2:
        return 0.0
    if s1 in s2 or s2 in s1:
        return CONTAINS
    c1, c2 = set(s1), set(s2)
    return len(c1 & c2) / len(c1 | c2)
