"""
Tests for the TICK.md backup store.
"""

import pytest

from tickmd.core.exceptions import BackupNotFoundError, NotFoundError
from tickmd.store.backup_store import BackupStore, hash_content

FIRST = "2026-01-01T00:00:00.000Z"
SECOND = "2026-01-02T08:30:15.250Z"
THIRD = "2026-01-03T00:00:00.000Z"


@pytest.fixture
def source(tmp_path):
    path = tmp_path / "TICK.md"
    path.write_text("---\nproject: demo\n---\n", encoding="utf-8")
    return path


@pytest.fixture
def backups(tmp_path):
    return BackupStore(tmp_path / ".tick" / "backup")


class TestCreate:
    def test_copies_content(self, backups, source):
        """Test a backup is a byte-for-byte copy named after its timestamp."""
        info = backups.create(source, now=SECOND)

        assert info.filename == "TICK-2026-01-02T08-30-15-250Z.md"
        assert info.path.read_bytes() == source.read_bytes()
        assert info.size == len(source.read_bytes())
        assert info.hash == hash_content(source.read_bytes())

    def test_same_millisecond_gets_suffix(self, backups, source):
        first = backups.create(source, now=FIRST)
        source.write_text("---\nproject: changed\n---\n", encoding="utf-8")
        second = backups.create(source, now=FIRST)

        assert first.filename == "TICK-2026-01-01T00-00-00-000Z.md"
        assert second.filename == "TICK-2026-01-01T00-00-00-000Z-1.md"
        assert second.sequence == 1
        assert backups.get(0).filename == second.filename

    def test_missing_source(self, backups, tmp_path):
        with pytest.raises(NotFoundError):
            backups.create(tmp_path / "absent.md")

    def test_old_backups_pruned(self, tmp_path, source):
        """Test only max_backups copies are kept after each create."""
        backups = BackupStore(tmp_path / "backup", max_backups=2)
        for now in (FIRST, SECOND, THIRD):
            backups.create(source, now=now)

        assert [b.timestamp for b in backups.list_backups()] == [THIRD, SECOND]

    def test_no_temp_files_left(self, backups, source):
        backups.create(source, now=FIRST)
        assert [p.name for p in backups.backup_dir.iterdir()] == ["TICK-2026-01-01T00-00-00-000Z.md"]


class TestLookup:
    @pytest.fixture
    def populated(self, backups, source):
        for now in (FIRST, SECOND, THIRD):
            backups.create(source, now=now)
        return backups

    def test_list_newest_first(self, populated):
        assert [b.timestamp for b in populated.list_backups()] == [THIRD, SECOND, FIRST]

    def test_list_ignores_other_files(self, populated):
        (populated.backup_dir / "notes.txt").write_text("not a backup")
        assert len(populated.list_backups()) == 3

    def test_list_missing_directory(self, tmp_path):
        assert BackupStore(tmp_path / "nowhere").list_backups() == []

    @pytest.mark.parametrize(
        "identifier,expected",
        [(0, THIRD), ("2", FIRST), ("2026-01-02", SECOND), ("TICK-2026-01-01", FIRST)],
    )
    def test_get(self, populated, identifier, expected):
        assert populated.get(identifier).timestamp == expected

    @pytest.mark.parametrize("identifier", ["3", "2025-12-31", "latest"])
    def test_get_unknown(self, populated, identifier):
        with pytest.raises(BackupNotFoundError, match="Backup not found"):
            populated.get(identifier)

    def test_read(self, populated, source):
        assert populated.read(populated.get(0)) == source.read_text(encoding="utf-8")


class TestClean:
    def test_keeps_newest(self, backups, source):
        for now in (FIRST, SECOND, THIRD):
            backups.create(source, now=now)

        assert backups.clean(1) == 2
        assert [b.timestamp for b in backups.list_backups()] == [THIRD]

    def test_nothing_to_remove(self, backups, source):
        backups.create(source, now=FIRST)
        assert backups.clean(5) == 0

    def test_negative_keep(self, backups):
        with pytest.raises(ValueError):
            backups.clean(-1)
