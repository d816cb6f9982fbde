"""
Integration tests for the datatype-store command line.

Tests cover:
- init, tree and prevalues commands
- Settings from environment
"""

import json
import logging
from pathlib import Path

import pytest

from cmsdb.datatype_store import main as cli
from cmsdb.datatype_store.config import Settings
from cmsdb.datatype_store.models import DataTypeDefinition, PreValue


@pytest.fixture(autouse=True)
def restore_logging():
    """setup_logging replaces root handlers; put them back afterwards."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


@pytest.fixture
def db_path(data_dir):
    return str(Path(data_dir) / "cli.db")


@pytest.fixture
def populated(db_path):
    _, service = cli.build_service(Settings(database_path=db_path, wal_mode=False))
    service.scope_provider.database.initialize()
    folder = service.create_container("Lists")
    data_type = DataTypeDefinition(
        name="Dropdown", parent_id=folder.id, property_editor_alias="dropdown"
    )
    service.save_with_pre_values(
        data_type, {"items": PreValue(value="a,b"), "multiple": PreValue(value="0")}
    )
    return folder, data_type


class TestCli:
    """Tests for main()."""

    def test_init(self, db_path, capsys):
        assert cli.main(["--database", db_path, "init"]) == 0

        assert Path(db_path).exists()
        assert "Initialized" in capsys.readouterr().out

    def test_tree(self, db_path, populated, capsys):
        folder, data_type = populated

        assert cli.main(["--database", db_path, "tree"]) == 0

        lines = capsys.readouterr().out.splitlines()
        assert lines == [
            f"Lists/ (id={folder.id})",
            f"  Dropdown [dropdown] (id={data_type.id})",
        ]

    def test_empty_tree(self, db_path, capsys):
        assert cli.main(["--database", db_path, "tree"]) == 0

        assert capsys.readouterr().out.strip() == "(empty)"

    def test_prevalues(self, db_path, populated, capsys):
        _, data_type = populated

        assert cli.main(["--database", db_path, "prevalues", str(data_type.id)]) == 0

        body = json.loads(capsys.readouterr().out)
        assert list(body) == ["items", "multiple"]
        assert body["items"]["value"] == "a,b"
        assert body["multiple"]["sort_order"] == 2

    def test_prevalues_unknown_data_type(self, db_path, capsys):
        assert cli.main(["--database", db_path, "prevalues", "42"]) == 1

        assert "No data type with id 42" in capsys.readouterr().err

    def test_settings_from_environment(self, monkeypatch):
        monkeypatch.setenv("DATATYPE_STORE_DATABASE_PATH", "/tmp/other.db")
        monkeypatch.setenv("DATATYPE_STORE_CACHE_TTL_SECONDS", "60")
        monkeypatch.setenv("DATATYPE_STORE_LOG_FORMAT", "text")

        settings = Settings()

        assert settings.database_path == "/tmp/other.db"
        assert settings.cache_ttl_seconds == 60
        assert settings.log_format == "text"
        assert settings.busy_timeout_ms == 5000
