"""Tests for table creation from entity types."""

from __future__ import annotations

from objectspine.core.connection import SqliteConnection
from objectspine.core.dialect import SQLiteDialect
from objectspine.core.repository import BaseRepository
from objectspine.model.schema import create_entity_tables


def _columns(repo: BaseRepository, table: str) -> list[str]:
    return [row["name"] for row in repo.query(f"PRAGMA table_info({table})")]


class TestCreateEntityTables:
    def test_primary_and_join_tables(self, repo, asset_type):
        tables = {row["name"] for row in repo.query("SELECT name FROM sqlite_master WHERE type = 'table'")}
        assert {"objects_asset", "objects_part", "objects_sensor", "objects_asset_parts"} <= tables

    def test_standard_and_inner_columns(self, repo):
        columns = _columns(repo, "objects_asset")
        assert columns[:10] == [
            "id",
            "name",
            "status",
            "parent_id",
            "guid",
            "create_user",
            "create_date",
            "change_user",
            "change_date",
            "attachments",
        ]
        assert {"label", "tags", "location"} <= set(columns)
        assert "parts" not in columns
        assert "sensors" not in columns

    def test_reverse_fk_column_on_target(self, repo):
        assert "asset_id" in _columns(repo, "objects_sensor")

    def test_join_table_columns(self, repo):
        assert _columns(repo, "objects_asset_parts") == ["object_id", "related_id"]

    def test_idempotent(self, repo, asset_type, part_type):
        with repo.transaction():
            create_entity_tables(repo, [part_type, asset_type])
        assert _columns(repo, "objects_asset_parts") == ["object_id", "related_id"]

    def test_reverse_column_added_to_existing_table(self, asset_type, sensor_type):
        repo = BaseRepository(SqliteConnection(), SQLiteDialect())
        with repo.transaction():
            create_entity_tables(repo, [sensor_type])
        assert "asset_id" not in _columns(repo, "objects_sensor")
        with repo.transaction():
            touched = create_entity_tables(repo, [asset_type])
        assert "objects_sensor" in touched
        assert "asset_id" in _columns(repo, "objects_sensor")

    def test_missing_reverse_target_is_skipped(self, asset_type):
        repo = BaseRepository(SqliteConnection(), SQLiteDialect())
        with repo.transaction():
            touched = create_entity_tables(repo, [asset_type])
        assert "objects_sensor" not in touched
        assert "objects_asset" in touched
