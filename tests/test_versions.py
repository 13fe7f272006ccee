"""Tests for release_train.versions."""

from __future__ import annotations

import pytest
from pydantic import BaseModel

from release_train.versions import BumpType, Version, parse_version, try_parse_version


class TestParseVersion:
    def test_full_version(self) -> None:
        assert parse_version("1.2.3") == Version(1, 2, 3)

    def test_strips_leading_v(self) -> None:
        assert parse_version("v2.0.1") == Version(2, 0, 1)

    def test_pads_short_versions(self) -> None:
        assert parse_version("1") == Version(1, 0, 0)
        assert parse_version("v1.2") == Version(1, 2, 0)

    def test_keeps_prerelease_and_build(self) -> None:
        assert str(parse_version("1.2.3-beta.1+abc")) == "1.2.3-beta.1+abc"

    def test_invalid_raises(self) -> None:
        with pytest.raises(ValueError, match="not valid SemVer"):
            parse_version("latest")

    def test_try_parse_returns_none(self) -> None:
        assert try_parse_version("latest") is None
        assert try_parse_version("1.0.0") == Version(1, 0, 0)


class TestOrdering:
    def test_prerelease_sorts_before_release(self) -> None:
        assert parse_version("1.2.3-alpha") < parse_version("1.2.3") < parse_version("2.2.0")

    def test_numeric_not_lexical(self) -> None:
        assert parse_version("1.10.0") > parse_version("1.9.0")

    def test_max_of_versions(self) -> None:
        versions = [parse_version(v) for v in ("1.0.0", "1.2.0", "1.1.9")]
        assert max(versions) == Version(1, 2, 0)


class TestBump:
    def test_patch(self) -> None:
        assert Version(1, 2, 3).bump(BumpType.PATCH) == Version(1, 2, 4)

    def test_minor_resets_patch(self) -> None:
        assert Version(1, 2, 3).bump(BumpType.MINOR) == Version(1, 3, 0)

    def test_major_resets_minor_and_patch(self) -> None:
        assert Version(1, 2, 3).bump(BumpType.MAJOR) == Version(2, 0, 0)

    def test_patch_drops_prerelease(self) -> None:
        assert parse_version("1.2.3-beta").bump(BumpType.PATCH) == Version(1, 2, 4)

    def test_bump_returns_subclass(self) -> None:
        assert isinstance(Version(1, 0, 0).bump(BumpType.MAJOR), Version)

    def test_bump_levels_are_ordered(self) -> None:
        assert max(BumpType.PATCH, BumpType.MAJOR, BumpType.MINOR) is BumpType.MAJOR


class TestSnapshot:
    def test_is_snapshot(self) -> None:
        assert parse_version("1.2.4-SNAPSHOT").is_snapshot
        assert not parse_version("1.2.4").is_snapshot
        assert not parse_version("1.2.4-beta").is_snapshot

    def test_release_core(self) -> None:
        assert parse_version("1.2.4-SNAPSHOT").release_core() == Version(1, 2, 4)


class TestPydanticField:
    class Model(BaseModel):
        version: Version

    def test_validates_strings(self) -> None:
        """String input is parsed leniently, like parse_version()."""
        assert self.Model(version="v1.2").version == Version(1, 2, 0)

    def test_serializes_as_string(self) -> None:
        assert self.Model(version="1.2.3").model_dump(mode="json") == {"version": "1.2.3"}

    def test_rejects_garbage(self) -> None:
        with pytest.raises(ValueError):
            self.Model(version="not-a-version")
