"""Tests for JSON to domain-model parsers (core/parsing.py).

Coverage:
* Entity parsers tolerate missing and null fields, including member users.
* Shape errors raise ``TypeError``.
* ``list_of`` treats ``null`` as empty.
* Region map and project payload conversion.
"""

from __future__ import annotations

import pytest

from forge_cli.core.models import Project, ProjectConfig
from forge_cli.core.parsing import (
    list_of,
    parse_organization,
    parse_organization_member,
    parse_project,
    parse_region_map,
    parse_user,
    project_payload,
)


class TestEntityParsers:
    def test_parse_user(self) -> None:
        user = parse_user({"id": "u1", "name": "Ada", "email": "a@x.io", "extra": 1})
        assert (user.id, user.name, user.email, user.avatar_url) == ("u1", "Ada", "a@x.io", "")

    def test_null_fields_become_empty(self) -> None:
        org = parse_organization({"id": "o1", "name": None})
        assert org.name == ""

    def test_parse_project_with_regions(self) -> None:
        project = parse_project(
            {
                "id": "p1",
                "org_id": "o1",
                "name": "Game",
                "repo_path": "server",
                "config": {"region": ["us-east", "eu-west"]},
            },
        )
        assert project.org_id == "o1"
        assert project.repo_path == "server"
        assert project.config.regions == ("us-east", "eu-west")

    def test_parse_organization_member(self) -> None:
        member = parse_organization_member(
            {"role": "admin", "user": {"id": "u1", "name": "Ada", "email": "a@x.io"}},
        )
        assert member.role == "admin"
        assert member.user.email == "a@x.io"

    def test_member_without_user(self) -> None:
        member = parse_organization_member({"role": "mystery"})
        assert member.user.email == ""
        assert member.display_role == "none"

    def test_parse_project_ignores_malformed_config(self) -> None:
        assert parse_project({"id": "p1", "config": "weird"}).config == ProjectConfig()

    @pytest.mark.parametrize("parser", [parse_user, parse_organization, parse_project])
    def test_non_object_raises_type_error(self, parser) -> None:
        with pytest.raises(TypeError):
            parser(["not", "an", "object"])


class TestListOf:
    def test_null_is_empty(self) -> None:
        assert list_of(parse_organization)(None) == []

    def test_parses_each_item(self) -> None:
        orgs = list_of(parse_organization)([{"id": "a"}, {"id": "b"}])
        assert [o.id for o in orgs] == ["a", "b"]

    def test_object_raises_type_error(self) -> None:
        with pytest.raises(TypeError):
            list_of(parse_organization)({"id": "a"})


class TestRegionsAndPayload:
    def test_region_map_sorted(self) -> None:
        assert parse_region_map({"us-east": True, "ap-south": True}) == ["ap-south", "us-east"]

    def test_project_payload(self) -> None:
        payload = project_payload(
            Project(
                id="ignored",
                name="Game",
                slug="game",
                repo_url="https://git.example/g",
                config=ProjectConfig(regions=("us-east",)),
            ),
        )
        assert "id" not in payload
        assert payload["slug"] == "game"
        assert payload["config"] == {"region": ["us-east"]}
