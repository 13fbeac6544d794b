"""Semantic-version constraints and latest-version resolution.

Versions are parsed with :mod:`semver`.  Constraints follow the range
syntax used by Hyper Protect tooling:

* comparators ``=``, ``!=``, ``>``, ``>=``, ``<``, ``<=`` (``=>``/``=<``
  accepted), optionally followed by whitespace (``">= 1.0.0"``);
* ``~1.2.3`` (patch-level changes), ``^1.2.3`` (no major change);
* wildcards ``1.2.x``, ``1.*``, ``*`` and partial versions ``1.2``;
* hyphen ranges ``1.2 - 1.4.5`` (inclusive);
* comparators separated by commas or spaces must all match; ``||``
  separates alternatives.

A version with a prerelease tag only satisfies a group that itself names a
prerelease version.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TypeVar

import semver

from aumai_hpcontract.errors import InvalidVersionError, NoMatchingVersionError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_WILDCARDS = frozenset({"x", "X", "*"})

_COMPARATOR = re.compile(
    r"(?P<op>!=|>=|=>|<=|=<|~>|>|<|=|~|\^)?\s*"
    r"v?(?P<major>\d+|[xX*])"
    r"(?:\.(?P<minor>\d+|[xX*]))?"
    r"(?:\.(?P<patch>\d+|[xX*]))?"
    r"(?:-(?P<pre>[0-9A-Za-z.-]+))?"
    r"(?:\+(?P<build>[0-9A-Za-z.-]+))?"
)
_HYPHEN_RANGE = re.compile(r"^\s*(?P<low>\S+)\s+-\s+(?P<high>\S+)\s*$")


def parse_version(text: str) -> semver.Version:
    """Parse *text* as a semantic version.

    A leading ``v`` is ignored and missing minor/patch components default
    to zero, so ``"v1.2"`` parses as ``1.2.0``.

    Raises:
        InvalidVersionError: if *text* is not a semantic version.
    """
    candidate = text.strip()
    if candidate[:1] in ("v", "V"):
        candidate = candidate[1:]
    try:
        return semver.Version.parse(candidate, optional_minor_and_patch=True)
    except (ValueError, TypeError) as exc:
        raise InvalidVersionError(f"error parsing version {text!r} - {exc}") from exc


@dataclass(frozen=True)
class _Range:
    lower: semver.Version | None = None
    lower_inclusive: bool = True
    upper: semver.Version | None = None
    upper_inclusive: bool = False
    negate: bool = False
    prerelease: bool = False

    def contains(self, version: semver.Version) -> bool:
        inside = True
        if self.lower is not None:
            inside = version >= self.lower if self.lower_inclusive else version > self.lower
        if inside and self.upper is not None:
            inside = version <= self.upper if self.upper_inclusive else version < self.upper
        return not inside if self.negate else inside


_NOTHING = _Range(
    lower=semver.Version(0, 0, 0), upper=semver.Version(0, 0, 0), upper_inclusive=False
)


def _bump(version: semver.Version, position: int) -> semver.Version:
    if position == 0:
        return version.bump_major()
    if position == 1:
        return version.bump_minor()
    return version.bump_patch()


def _comparator_range(match: re.Match[str]) -> _Range:
    op = match.group("op") or "="
    op = {"=>": ">=", "=<": "<=", "~>": "~"}.get(op, op)
    parts = [match.group("major"), match.group("minor"), match.group("patch")]

    # Number of concrete leading components; anything after a wildcard is
    # treated as a wildcard too.
    concrete = 0
    for part in parts:
        if part is None or part in _WILDCARDS:
            break
        concrete += 1

    numbers = [int(part) if index < concrete else 0 for index, part in enumerate(parts)]
    pre = match.group("pre") if concrete == 3 else None
    base = semver.Version(*numbers, prerelease=pre)
    has_pre = pre is not None

    if concrete == 3:
        if op == "=":
            return _Range(base, True, base, True, prerelease=has_pre)
        if op == "!=":
            return _Range(base, True, base, True, negate=True, prerelease=has_pre)
        if op == ">":
            return _Range(lower=base, lower_inclusive=False, prerelease=has_pre)
        if op == ">=":
            return _Range(lower=base, prerelease=has_pre)
        if op == "<":
            return _Range(upper=base, prerelease=has_pre)
        if op == "<=":
            return _Range(upper=base, upper_inclusive=True, prerelease=has_pre)
        if op == "~":
            return _Range(base, True, base.bump_minor(), prerelease=has_pre)
        # caret
        if base.major > 0:
            upper = base.bump_major()
        elif base.minor > 0:
            upper = base.bump_minor()
        else:
            upper = base.bump_patch()
        return _Range(base, True, upper, prerelease=has_pre)

    if concrete == 0:
        # "*", "x", ">=*" and friends accept everything; "<*", ">*", "!=*" nothing.
        return _NOTHING if op in ("<", ">", "!=") else _Range()

    upper = _bump(base, concrete - 1)
    if op == "=":
        return _Range(base, True, upper)
    if op == "!=":
        return _Range(base, True, upper, negate=True)
    if op == ">":
        return _Range(lower=upper)
    if op == ">=":
        return _Range(lower=base)
    if op == "<":
        return _Range(upper=base)
    if op == "<=":
        return _Range(upper=upper)
    if op == "~":
        return _Range(base, True, upper)
    # caret
    if base.major > 0 or concrete == 1:
        return _Range(base, True, base.bump_major())
    return _Range(base, True, base.bump_minor())


def _parse_piece(piece: str, constraint: str) -> list[_Range]:
    hyphen = _HYPHEN_RANGE.match(piece)
    if hyphen:
        low = _COMPARATOR.fullmatch(">=" + hyphen.group("low"))
        high = _COMPARATOR.fullmatch("<=" + hyphen.group("high"))
        if low is None or high is None:
            raise InvalidVersionError(f"error parsing version constraint {constraint!r}")
        return [_comparator_range(low), _comparator_range(high)]

    ranges: list[_Range] = []
    position = 0
    for match in _COMPARATOR.finditer(piece):
        if piece[position : match.start()].strip():
            break
        ranges.append(_comparator_range(match))
        position = match.end()
    if not ranges or piece[position:].strip():
        raise InvalidVersionError(f"error parsing version constraint {constraint!r}")
    return ranges


class Constraint:
    """A parsed semantic-version constraint."""

    def __init__(self, text: str | None = None) -> None:
        self.text = (text or "").strip()
        self._groups: list[list[_Range]] = []
        if not self.text:
            return
        for alternative in self.text.split("||"):
            group: list[_Range] = []
            for piece in alternative.split(","):
                group.extend(_parse_piece(piece, self.text))
            self._groups.append(group)

    def check(self, version: semver.Version) -> bool:
        """Return True when *version* satisfies the constraint."""
        if not self._groups:
            return True
        for group in self._groups:
            if version.prerelease and not any(r.prerelease for r in group):
                continue
            if all(r.contains(version) for r in group):
                return True
        return False

    def __repr__(self) -> str:
        return f"Constraint({self.text!r})"


def resolve_latest(
    candidates: Mapping[str, T], constraint: str | Constraint | None = None
) -> tuple[str, T]:
    """Pick the highest version in *candidates* that satisfies *constraint*.

    Args:
        candidates: Mapping of version string to payload.
        constraint: Range expression; empty or ``None`` accepts every version.

    Returns:
        ``(version_string, payload)`` where ``version_string`` is the key
        exactly as it appears in *candidates*.

    Raises:
        InvalidVersionError: if any key or the constraint cannot be parsed,
            or two keys denote the same version.
        NoMatchingVersionError: if no candidate satisfies the constraint.
    """
    parsed: dict[semver.Version, str] = {}
    for key in candidates:
        version = parse_version(key)
        if version in parsed:
            raise InvalidVersionError(
                f"versions {parsed[version]!r} and {key!r} are duplicates"
            )
        parsed[version] = key

    target = constraint if isinstance(constraint, Constraint) else Constraint(constraint)
    matching = [version for version in parsed if target.check(version)]
    if not matching:
        raise NoMatchingVersionError(
            f"no matching version found for constraint {target.text!r}"
        )

    latest = max(matching)
    key = parsed[latest]
    logger.debug(
        "resolved %r to %s among %d candidate(s)", target.text, key, len(candidates)
    )
    return key, candidates[key]


__all__ = ["Constraint", "parse_version", "resolve_latest"]
