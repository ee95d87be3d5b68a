"""Raw JSON → domain-model parsers.

Every function here is a **pure** transformation of an already-decoded
JSON value.  Missing keys fall back to empty values (the API omits
empty fields freely); a value of the wrong *shape* raises
:class:`TypeError`, which the transport turns into a
:class:`~forge_cli.exceptions.ResponseDecodeError`.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

from forge_cli.core.models import Organization, OrganizationMember, Project, ProjectConfig, User

T = TypeVar("T")


def _require_mapping(raw: Any, what: str) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise TypeError(f"expected a JSON object for {what}, got {type(raw).__name__}")
    return raw


def _str(raw: dict[str, Any], key: str) -> str:
    """Fetch *key* as a string, mapping ``None``/missing to ``""``."""
    value = raw.get(key)
    return "" if value is None else str(value)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------

def parse_user(raw: Any) -> User:
    data = _require_mapping(raw, "user")
    return User(
        id=_str(data, "id"),
        name=_str(data, "name"),
        email=_str(data, "email"),
        avatar_url=_str(data, "avatar_url"),
    )


def parse_organization(raw: Any) -> Organization:
    data = _require_mapping(raw, "organization")
    return Organization(
        id=_str(data, "id"),
        name=_str(data, "name"),
        slug=_str(data, "slug"),
        owner_id=_str(data, "owner_id"),
        avatar_url=_str(data, "avatar_url"),
        created_time=_str(data, "created_time"),
        updated_time=_str(data, "updated_time"),
    )


def parse_organization_member(raw: Any) -> OrganizationMember:
    data = _require_mapping(raw, "organization member")
    user = data.get("user")
    return OrganizationMember(
        role=_str(data, "role"),
        user=parse_user(user) if user is not None else User(),
    )


def _parse_project_config(raw: Any) -> ProjectConfig:
    if not isinstance(raw, dict):
        return ProjectConfig()
    regions = raw.get("region")
    if not isinstance(regions, list):
        return ProjectConfig()
    return ProjectConfig(regions=tuple(str(region) for region in regions))


def parse_project(raw: Any) -> Project:
    data = _require_mapping(raw, "project")
    return Project(
        id=_str(data, "id"),
        name=_str(data, "name"),
        slug=_str(data, "slug"),
        org_id=_str(data, "org_id"),
        owner_id=_str(data, "owner_id"),
        repo_url=_str(data, "repo_url"),
        repo_path=_str(data, "repo_path"),
        avatar_url=_str(data, "avatar_url"),
        config=_parse_project_config(data.get("config")),
    )


def project_payload(project: Project) -> dict[str, Any]:
    """Serialise the writable fields of *project* for create/update calls."""
    return {
        "name": project.name,
        "slug": project.slug,
        "repo_url": project.repo_url,
        "repo_path": project.repo_path,
        "avatar_url": project.avatar_url,
        "config": {"region": list(project.config.regions)},
    }


# ---------------------------------------------------------------------------
# Combinators
# ---------------------------------------------------------------------------

def list_of(item_parser: Callable[[Any], T]) -> Callable[[Any], list[T]]:
    """Lift a single-item parser to a JSON-array parser.

    ``null`` decodes to an empty list; the API returns it for "none".
    """

    def _parse(raw: Any) -> list[T]:
        if raw is None:
            return []
        if not isinstance(raw, list):
            raise TypeError(f"expected a JSON array, got {type(raw).__name__}")
        return [item_parser(item) for item in raw]

    return _parse


def parse_region_map(raw: Any) -> list[str]:
    """Turn ``{"us-east": true, ...}`` into a sorted list of region names."""
    data = _require_mapping(raw, "regions")
    return sorted(str(region) for region in data)
