"""Tests for the JSON config store (infra/config_store.py).

Coverage:
* Missing file yields an empty config.
* Round trip of persisted fields; transient fields are never written.
* Zero-time and naive expiry timestamps.
* Corrupt file and unwritable directory errors.
* Known-project add/replace/remove.
"""

from __future__ import annotations

import json
import os
import stat
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

from forge_cli.exceptions import ConfigError, ConfigSaveError
from forge_cli.infra.config_store import JsonConfigService


class TestLoad:
    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        cfg = JsonConfigService(tmp_path / "forge-config.json").load()
        assert cfg.organization_id == ""
        assert cfg.known_projects == []

    def test_reads_document(self, tmp_path: Path) -> None:
        path = tmp_path / "forge-config.json"
        path.write_text(
            json.dumps(
                {
                    "organization_id": "o1",
                    "project_id": "p1",
                    "credential": {
                        "token": "tok",
                        "token_expires_at": "2030-01-01T00:00:00Z",
                        "email": "a@x.io",
                    },
                    "known_projects": [
                        {
                            "repo_url": "https://git.example/g",
                            "repo_path": "",
                            "organization_id": "o1",
                            "project_id": "p1",
                            "project_name": "Game",
                        },
                    ],
                    "unrelated": True,
                },
            ),
        )
        cfg = JsonConfigService(path).load()
        assert cfg.project_id == "p1"
        assert cfg.credential.token_expires_at == datetime(2030, 1, 1, tzinfo=timezone.utc)
        assert cfg.known_projects[0].project_name == "Game"

    def test_zero_time_expiry_is_none(self, tmp_path: Path) -> None:
        path = tmp_path / "c.json"
        path.write_text('{"credential": {"token": "t", "token_expires_at": "0001-01-01T00:00:00Z"}}')
        cfg = JsonConfigService(path).load()
        assert cfg.credential.token_expires_at is None
        assert not cfg.credential.is_valid()

    def test_naive_expiry_is_utc(self, tmp_path: Path) -> None:
        path = tmp_path / "c.json"
        path.write_text('{"credential": {"token": "t", "token_expires_at": "2030-01-01T00:00:00"}}')
        expires = JsonConfigService(path).load().credential.token_expires_at
        assert expires is not None and expires.tzinfo is not None

    def test_corrupt_file(self, tmp_path: Path) -> None:
        path = tmp_path / "c.json"
        path.write_text("{not json")
        with pytest.raises(ConfigError) as exc_info:
            JsonConfigService(path).load()
        assert exc_info.value.hint


class TestSave:
    def test_round_trip_skips_transient_fields(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "forge-config.json"
        service = JsonConfigService(path)
        cfg = service.load()
        cfg.organization_id = "o1"
        cfg.curr_repo_known = True
        cfg.curr_repo_url = "https://git.example/g"
        service.add_known_project("p1", "Game", "o1", "https://git.example/g", "srv")
        service.save()

        raw = json.loads(path.read_text())
        assert "curr_repo_known" not in raw
        assert "curr_repo_url" not in raw

        reloaded = JsonConfigService(path).load()
        assert reloaded.organization_id == "o1"
        assert not reloaded.curr_repo_known
        assert reloaded.find_known_project("https://git.example/g", "srv") is not None

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_owner_only_permissions(self, tmp_path: Path) -> None:
        path = tmp_path / "c.json"
        JsonConfigService(path).save()
        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600

    def test_unwritable_location(self, tmp_path: Path) -> None:
        blocker = tmp_path / "file"
        blocker.write_text("")
        with pytest.raises(ConfigSaveError):
            JsonConfigService(blocker / "c.json").save()


class TestKnownProjects:
    def test_add_replaces_same_pair(self, tmp_path: Path) -> None:
        service = JsonConfigService(tmp_path / "c.json")
        service.add_known_project("p1", "Old", "o1", "https://git.example/g", "")
        service.add_known_project("p2", "New", "o1", "https://git.example/g", "")
        known = service.get_config().known_projects
        assert [k.project_id for k in known] == ["p2"]

    def test_remove(self, tmp_path: Path) -> None:
        service = JsonConfigService(tmp_path / "c.json")
        service.add_known_project("p1", "A", "o1", "https://git.example/a", "")
        service.add_known_project("p1", "A", "o1", "https://git.example/a", "sub")
        service.add_known_project("p2", "B", "o1", "https://git.example/b", "")
        service.remove_known_project("p1", "o1")
        assert [k.project_id for k in service.get_config().known_projects] == ["p2"]
