"""
Track version-code reconciliation.

A track update either replaces everything on the track (`All`) or keeps the
codes of the current release that survive a filter (`ExplicitList`,
`Pattern`) and appends the newly uploaded ones after them.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Union

import regex as re

from .errors import InvalidFilterExpression, InvalidReleaseNotes, InvalidVersionCodeList

log = logging.getLogger(__name__)

LANGUAGE_CODE = re.compile(r'[a-zA-Z]{2,3}(-[a-zA-Z0-9]{2,8})*')


#####################################################################
# Filters
#####################################################################
@dataclass(frozen=True)
class All:
    """Replace every version code on the track."""


@dataclass(frozen=True)
class ExplicitList:
    """Remove these version codes from the current release."""

    codes: frozenset = frozenset()

    def __post_init__(self):
        codes = frozenset(self.codes)
        bad = [c for c in codes if isinstance(c, bool) or not isinstance(c, int) or c <= 0]
        if bad:
            raise InvalidVersionCodeList(sorted(bad, key=str))
        object.__setattr__(self, 'codes', codes)

    @classmethod
    def parse(cls, text: str) -> 'ExplicitList':
        """Parse a comma-separated list such as "12, 13,15"; empty items are skipped."""
        codes, incorrect = set(), []
        for token in (t.strip() for t in text.split(',')):
            if not token:
                continue
            code = int(token) if token.isascii() and token.isdigit() else 0
            if code > 0:
                codes.add(code)
            else:
                incorrect.append(token)
        if incorrect:
            raise InvalidVersionCodeList(incorrect)
        return cls(frozenset(codes))

    def excludes(self, version_code: int) -> bool:
        return version_code in self.codes


@dataclass(frozen=True)
class Pattern:
    """Remove version codes whose decimal form fully matches `expression`."""

    expression: str
    compiled: object = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        try:
            compiled = re.compile(self.expression)
        except (re.error, TypeError) as e:
            raise InvalidFilterExpression(self.expression, e) from e
        object.__setattr__(self, 'compiled', compiled)

    def excludes(self, version_code: int) -> bool:
        return self.compiled.fullmatch(str(version_code)) is not None


FilterSpec = Union[All, ExplicitList, Pattern]


def parse_filter(kind: str | None, value: str | None = None) -> FilterSpec:
    """
    Map the configured filter type to a FilterSpec:
      - None or "all" -> All()
      - "list"        -> ExplicitList parsed from `value`
      - "expression"  -> Pattern(`value`)
    """
    if kind is None or kind == 'all':
        return All()
    if kind == 'list':
        return ExplicitList.parse(value or '')
    if kind == 'expression':
        if value is None:
            raise InvalidFilterExpression('', 'an expression is required')
        return Pattern(value)
    raise ValueError(f'Unknown version code filter type: {kind}')


#####################################################################
# Reconciliation
#####################################################################
def current_version_codes(track: dict | None) -> list[int]:
    """Version codes of the first release of a fetched track resource."""
    releases = (track or {}).get('releases') or []
    if not releases:
        return []
    return [int(vc) for vc in releases[0].get('versionCodes') or []]


def reconcile(filter_spec: FilterSpec, old_version_codes: Iterable[int], new_version_codes: Iterable[int]) -> list[int]:
    new_version_codes = list(new_version_codes)
    if isinstance(filter_spec, All):
        return new_version_codes

    merged = [vc for vc in old_version_codes or [] if not filter_spec.excludes(vc)]
    log.debug('Version codes to keep: %s', merged)
    for vc in new_version_codes:
        if vc not in merged:
            merged.append(vc)
    return merged


#####################################################################
# Release payload
#####################################################################
def build_release(
    version_codes: Iterable[int],
    user_fraction: float = 1.0,
    update_priority: int = 0,
    release_notes: list[dict] | None = None,
) -> dict:
    release = {
        'versionCodes': [str(vc) for vc in version_codes],
        'inAppUpdatePriority': update_priority,
    }
    # a userFraction is only accepted on staged rollouts
    if user_fraction < 1.0:
        release['status'] = 'inProgress'
        release['userFraction'] = user_fraction
    else:
        release['status'] = 'completed'

    if release_notes:
        for note in release_notes:
            language = note.get('language')
            if not isinstance(language, str) or not LANGUAGE_CODE.fullmatch(language):
                raise InvalidReleaseNotes(language)
        release['releaseNotes'] = release_notes
    return release
