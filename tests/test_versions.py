"""Tests for aumai_hpcontract.versions: constraints and latest-version resolution."""

from __future__ import annotations

import pytest

from aumai_hpcontract.errors import InvalidVersionError, NoMatchingVersionError
from aumai_hpcontract.versions import Constraint, parse_version, resolve_latest

CERTS = {
    "1.0.21": "cert-21",
    "1.0.22": "cert-22",
    "1.0.23": "cert-23",
    "1.1.0": "cert-110",
    "2.0.0": "cert-200",
}


class TestParseVersion:
    def test_full_version(self) -> None:
        assert str(parse_version("1.0.22")) == "1.0.22"

    def test_leading_v_and_partial(self) -> None:
        assert str(parse_version("v1.2")) == "1.2.0"

    def test_prerelease(self) -> None:
        assert parse_version("1.0.0-rc.1").prerelease == "rc.1"

    @pytest.mark.parametrize("text", ["", "abc", "1.0.x", "1..2"])
    def test_invalid(self, text: str) -> None:
        with pytest.raises(InvalidVersionError):
            parse_version(text)


class TestConstraint:
    @pytest.mark.parametrize(
        ("constraint", "version", "expected"),
        [
            (">=1.0.22", "1.0.22", True),
            (">=1.0.22", "1.0.21", False),
            (">= 1.0.22", "1.0.23", True),
            (">1.0.22", "1.0.22", False),
            ("<1.1.0", "1.0.99", True),
            ("<=1.1.0", "1.1.0", True),
            ("=1.0.22", "1.0.22", True),
            ("1.0.22", "1.0.23", False),
            ("!=1.0.22", "1.0.23", True),
            ("!=1.0.22", "1.0.22", False),
            ("~1.0.22", "1.0.30", True),
            ("~1.0.22", "1.1.0", False),
            ("~1.0", "1.0.5", True),
            ("^1.0.22", "1.9.0", True),
            ("^1.0.22", "2.0.0", False),
            ("^0.2.3", "0.3.0", False),
            ("^0.0.3", "0.0.4", False),
            ("1.0.x", "1.0.7", True),
            ("1.0.x", "1.1.0", False),
            ("1.*", "1.9.9", True),
            ("*", "7.0.0", True),
            ("1.0", "1.0.99", True),
            ("1.0.21 - 1.0.23", "1.0.23", True),
            ("1.0.21 - 1.0.23", "1.0.24", False),
            ("1.0 - 1.1", "1.1.9", True),
            (">=1.0.22, <1.1.0", "1.0.23", True),
            (">=1.0.22, <1.1.0", "1.1.0", False),
            (">=1.0.22 <1.1.0", "1.0.30", True),
            ("<1.0.0 || >=2.0.0", "2.0.0", True),
            ("<1.0.0 || >=2.0.0", "1.5.0", False),
        ],
    )
    def test_check(self, constraint: str, version: str, expected: bool) -> None:
        assert Constraint(constraint).check(parse_version(version)) is expected

    def test_prerelease_excluded_without_prerelease_comparator(self) -> None:
        assert not Constraint(">=1.0.0").check(parse_version("1.2.0-rc.1"))

    def test_prerelease_included_with_prerelease_comparator(self) -> None:
        assert Constraint(">=1.2.0-rc.0").check(parse_version("1.2.0-rc.1"))

    def test_empty_accepts_everything(self) -> None:
        assert Constraint("").check(parse_version("0.0.1"))
        assert Constraint(None).check(parse_version("99.0.0"))

    @pytest.mark.parametrize("text", [">>1.0", "latest", ">=1.0.0 foo", "1.0 -"])
    def test_invalid_constraint(self, text: str) -> None:
        with pytest.raises(InvalidVersionError):
            Constraint(text)


class TestResolveLatest:
    def test_no_constraint_returns_maximum(self) -> None:
        assert resolve_latest(CERTS) == ("2.0.0", "cert-200")

    def test_lower_bound(self) -> None:
        assert resolve_latest(CERTS, ">=1.0.22, <2.0.0") == ("1.1.0", "cert-110")

    def test_inclusive_upper_bound_with_spaces(self) -> None:
        candidates = {"1.0.0": "A", "1.2.5": "B", "3.5.10": "C"}
        assert resolve_latest(candidates, ">= 1.0.0, <= 3.5.10") == ("3.5.10", "C")

    def test_tilde(self) -> None:
        assert resolve_latest(CERTS, "~1.0.22") == ("1.0.23", "cert-23")

    def test_exact(self) -> None:
        assert resolve_latest(CERTS, "1.0.21") == ("1.0.21", "cert-21")

    def test_semantic_not_lexical_ordering(self) -> None:
        assert resolve_latest({"1.0.9": "a", "1.0.10": "b"}) == ("1.0.10", "b")

    def test_original_key_returned(self) -> None:
        assert resolve_latest({"v1.0.1": "a", "1.0.0": "b"}) == ("v1.0.1", "a")

    def test_no_match(self) -> None:
        with pytest.raises(NoMatchingVersionError):
            resolve_latest(CERTS, ">=3.0.0")

    def test_invalid_key(self) -> None:
        with pytest.raises(InvalidVersionError):
            resolve_latest({"not-a-version": "x"})

    def test_duplicate_keys_rejected(self) -> None:
        with pytest.raises(InvalidVersionError):
            resolve_latest({"1.0.0": "a", "v1.0.0": "b"})

    def test_accepts_constraint_object(self) -> None:
        assert resolve_latest(CERTS, Constraint("<1.0.22")) == ("1.0.21", "cert-21")
