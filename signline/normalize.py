# ============================================================
# normalize.py — Canonical Comparison Form for Practice Words
# ============================================================
# Every place that compares an expected word against what was
# recognised goes through normalize(), so "Tai Seng", "TAI-SENG!!"
# and "taiseng" all compare equal.
# ============================================================

import string

_ALLOWED = frozenset(string.ascii_lowercase)


def normalize(word: str) -> str:
    """
    Lowercase the word and keep only the letters a-z.

    Examples:
        "Tai Seng"      -> "taiseng"
        "City Hall"     -> "cityhall"
        "  H E L L O  " -> "hello"
    """
    return "".join(ch for ch in word.lower() if ch in _ALLOWED)
