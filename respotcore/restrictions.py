"""Country and catalogue restrictions that decide whether an item is playable."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator

_COUNTRY_CODE_LENGTH = 2


@dataclass(frozen=True)
class Restriction:
    """A restriction record of an item's metadata.

    ``countries_allowed`` and ``countries_forbidden`` are concatenated
    two-letter country codes; None means the field is absent.
    """

    catalogue_str: tuple[str, ...] = field(default_factory=tuple)
    countries_allowed: str | None = None
    countries_forbidden: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "catalogue_str", tuple(self.catalogue_str))


def _country_codes(countries: str) -> Iterator[str]:
    for start in range(0, len(countries), _COUNTRY_CODE_LENGTH):
        yield countries[start:start + _COUNTRY_CODE_LENGTH]


def countrylist_contains(countries: str, country: str) -> bool:
    """Return True if ``country`` is one of the two-letter codes in ``countries``."""
    return any(code == country for code in _country_codes(countries))


def parse_restrictions(
    restrictions: Iterable[Restriction],
    country: str,
    catalogue: str,
) -> bool:
    """Return True if an item with these restrictions is available in ``country``.

    Only restrictions listing ``catalogue`` are considered. An item with no
    applicable allow or forbid list is unavailable.
    """
    forbidden: list[str] = []
    allowed: list[str] = []
    has_forbidden = False
    has_allowed = False

    for restriction in restrictions:
        if catalogue not in restriction.catalogue_str:
            continue
        if restriction.countries_forbidden is not None:
            forbidden.append(restriction.countries_forbidden)
            has_forbidden = True
        if restriction.countries_allowed is not None:
            allowed.append(restriction.countries_allowed)
            has_allowed = True

    return (
        (has_forbidden or has_allowed)
        and (not has_forbidden or not countrylist_contains("".join(forbidden), country))
        and (not has_allowed or countrylist_contains("".join(allowed), country))
    )