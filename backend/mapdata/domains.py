from __future__ import annotations

import re
from dataclasses import dataclass, field


class DomainNotAllowedError(ValueError):
    def __init__(self, domain: str):
        super().__init__(f"Domain is not allowed: {domain}")
        self.domain = domain


def _pattern_to_regex(pattern: str) -> str:
    # `*` stands for exactly one host label.
    parts = [re.escape(p) if p != "*" else r"[^.]+" for p in pattern.strip().split(".")]
    return r"\.".join(parts)


@dataclass(frozen=True)
class DomainMatcher:
    """
    Case-insensitive host allow-list.

    Entries may use `*` for a single label (`*.wikipedia.org`). With
    `allow_subdomains`, any number of extra leading labels is accepted too.
    An empty list matches nothing.
    """

    patterns: tuple[str, ...]
    allow_subdomains: bool = True
    _regex: re.Pattern[str] | None = field(
        default=None, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        cleaned = tuple(p.strip().lower() for p in self.patterns if p and p.strip())
        object.__setattr__(self, "patterns", cleaned)
        if not cleaned:
            regex = None
        else:
            prefix = r"(?:[^.]+\.)*" if self.allow_subdomains else ""
            alternatives = "|".join(_pattern_to_regex(p) for p in cleaned)
            regex = re.compile(rf"^{prefix}(?:{alternatives})$", re.IGNORECASE)
        object.__setattr__(self, "_regex", regex)

    def test(self, domain: str | None) -> bool:
        regex = self._regex
        if regex is None or not domain:
            return False
        return regex.match(domain.strip()) is not None


@dataclass(frozen=True)
class DomainResolver:
    """
    Picks the transport protocol for a map-data domain.

    The https list is consulted before the http list.
    """

    https: DomainMatcher
    http: DomainMatcher

    @classmethod
    def from_lists(
        cls, https: list[str] | None, http: list[str] | None
    ) -> "DomainResolver":
        return cls(
            https=DomainMatcher(tuple(https or ())),
            http=DomainMatcher(tuple(http or ())),
        )

    def protocol_for(self, domain: str) -> str:
        if self.https.test(domain):
            return "https"
        if self.http.test(domain):
            return "http"
        raise DomainNotAllowedError(domain)
