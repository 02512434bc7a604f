"""Helpers for No-Intro style names, e.g. ``"Super Game (USA) (Rev 1)"``."""

# checked in order; first hit wins
_REGION_MARKERS = (
    ("us", ("(usa", "(us)", ", usa)")),
    ("eu", ("(europe", "(eu)", ", europe)")),
    ("jp", ("(japan", "(jp)", ", japan)")),
    ("us", ("(world)",)),
)


def display_name(name: str) -> str:
    """Strip the bracketed region/version suffix."""
    head, sep, _ = name.partition(" (")
    if not sep:
        return name
    return head.strip()


def region(name: str) -> str:
    """Return ``"us"``, ``"eu"``, ``"jp"`` or ``""`` for a No-Intro name."""
    lower = name.lower()
    for code, markers in _REGION_MARKERS:
        if any(marker in lower for marker in markers):
            return code
    return ""
