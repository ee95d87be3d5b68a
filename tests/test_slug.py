"""Tests for name and slug helpers (core/slug.py).

Coverage:
* Name validation rules.
* Slug suggestions from display names, including shortening and padding.
* Slug sanity checks and normalisation.
* Avatar URL validation.
"""

from __future__ import annotations

import pytest

from forge_cli.core.slug import (
    create_slug_from_name,
    slug_to_sane_check,
    validate_name,
    validate_url,
)
from forge_cli.exceptions import ValidationError


class TestValidateName:
    def test_accepts_plain_name(self) -> None:
        validate_name("My Game", 50)

    @pytest.mark.parametrize("name", ["", "a" * 51, "a/b", "what?", "tab\there"])
    def test_rejects(self, name: str) -> None:
        with pytest.raises(ValidationError):
            validate_name(name, 50)


class TestCreateSlugFromName:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("MyGame", "my_game"),
            ("my cool game", "my_cool_game"),
            ("ABC", "abc"),
            ("  spaced  ", "spaced"),
        ],
    )
    def test_suggestions(self, name: str, expected: str) -> None:
        assert create_slug_from_name(name, 3, 15) == expected

    def test_long_name_drops_separators(self) -> None:
        assert create_slug_from_name("Hello World Forever Game", 3, 15) == "helloworldforev"

    def test_short_name_is_padded(self) -> None:
        slug = create_slug_from_name("ab", 3, 15)
        assert slug.startswith("ab_")
        assert len(slug) == 11


class TestSlugToSaneCheck:
    def test_collapses_underscores(self) -> None:
        assert slug_to_sane_check("a__b_", 3, 15) == "a_b"

    def test_truncates(self) -> None:
        assert slug_to_sane_check("abcdefghijklmnopq", 3, 15) == "abcdefghijklmno"

    @pytest.mark.parametrize("slug", ["ab", "Bad-Slug", "has space"])
    def test_rejects(self, slug: str) -> None:
        with pytest.raises(ValidationError):
            slug_to_sane_check(slug, 3, 15)


class TestValidateUrl:
    @pytest.mark.parametrize("url", ["https://cdn.example.com/a.png", "http://example.io"])
    def test_accepts(self, url: str) -> None:
        validate_url(url)

    @pytest.mark.parametrize(
        ("url", "message"),
        [
            ("ftp://example.com/a.png", "Must start with http"),
            ("example.com/a.png", "Must start with http"),
            ("http://localhost:8080/a.png", "Cannot use localhost"),
            ("https://intranet/a.png", "Must have a TLD"),
        ],
    )
    def test_rejects(self, url: str, message: str) -> None:
        with pytest.raises(ValidationError, match=message):
            validate_url(url)
