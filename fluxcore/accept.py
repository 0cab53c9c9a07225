"""Content negotiation on the Accept header."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Union


@dataclass(frozen=True)
class AcceptSpec:
    """One media range from an Accept header, with its quality."""

    value: str
    q: float = 1.0


def parse_accept(header_values: Optional[Union[str, Iterable[str]]]) -> list[AcceptSpec]:
    """Parse the values of one or more Accept headers."""
    if isinstance(header_values, str):
        header_values = [header_values]
    specs: list[AcceptSpec] = []
    for header in header_values or ():
        for item in header.split(","):
            media, *params = item.split(";")
            media = media.strip().lower()
            if not media:
                continue
            q = 1.0
            valid = True
            for param in params:
                key, _, value = param.partition("=")
                if key.strip().lower() == "q":
                    try:
                        q = float(value.strip())
                    except ValueError:
                        valid = False
            if valid:
                specs.append(AcceptSpec(media, q))
    return specs


def _index_of(items: Sequence[str], search: str) -> int:
    return items.index(search) if search in items else len(items)


def negotiate_content_type(
    header_values: Optional[Union[str, Iterable[str]]], ordered_pref: Sequence[str]
) -> str:
    """Pick the best available content type, or "" if none is acceptable.

    With no Accept header the first preference is chosen. Otherwise the
    highest quality match wins, ties going to the earlier preference.
    """
    specs = parse_accept(header_values)
    if not specs:
        return ordered_pref[0]
    preferred = [spec for spec in specs if spec.value in ordered_pref]
    if not preferred:
        return ""
    best = min(preferred, key=lambda spec: (-spec.q, _index_of(ordered_pref, spec.value)))
    return best.value