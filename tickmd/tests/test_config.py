"""
Tests for project configuration and path helpers.
"""

import yaml

from tickmd.config import TickConfig, load_config, write_default_config
from tickmd.support.paths import ProjectPaths, find_project_root


class TestLoadConfig:
    """Loading .tick/config.yml over defaults."""

    def test_missing_file_gives_defaults(self, tmp_path):
        """Test defaults when no config file exists."""
        config = load_config(tmp_path / "config.yml")

        assert config.git.auto_commit is True
        assert config.git.commit_prefix == "[tick]"
        assert config.git.push_on_sync is False
        assert config.locking.enabled is True
        assert config.locking.timeout == 300
        assert config.agents.default_trust == "restricted"
        assert config.agents.require_registration is False
        assert config.store.allow_symlink_writes is False

    def test_partial_file_overrides_named_keys(self, tmp_path):
        """Test a partial file only changes what it names."""
        path = tmp_path / "config.yml"
        path.write_text("git:\n  auto_commit: false\nlocking:\n  timeout: 60\n", encoding="utf-8")

        config = load_config(path)

        assert config.git.auto_commit is False
        assert config.git.commit_prefix == "[tick]"
        assert config.locking.timeout == 60
        assert config.locking.enabled is True

    def test_unknown_keys_ignored(self, tmp_path):
        """Test unknown sections and keys do not break loading."""
        path = tmp_path / "config.yml"
        path.write_text("git:\n  colour: blue\nextras:\n  a: 1\n", encoding="utf-8")

        assert load_config(path) == TickConfig()

    def test_invalid_yaml_gives_defaults(self, tmp_path):
        """Test an unparseable file falls back to defaults."""
        path = tmp_path / "config.yml"
        path.write_text("git: [unclosed\n", encoding="utf-8")

        assert load_config(path) == TickConfig()

    def test_section_must_be_mapping(self, tmp_path):
        """Test a scalar section falls back to defaults."""
        path = tmp_path / "config.yml"
        path.write_text("git: yes\n", encoding="utf-8")

        assert load_config(path) == TickConfig()

    def test_write_default_config(self, tmp_path):
        """Test the written default config loads back as defaults."""
        path = tmp_path / ".tick" / "config.yml"
        write_default_config(path)

        assert yaml.safe_load(path.read_text(encoding="utf-8"))["git"]["commit_prefix"] == "[tick]"
        assert load_config(path) == TickConfig()


class TestProjectPaths:
    """Side file locations."""

    def test_side_files_under_tick_dir(self, tmp_path):
        """Test every side file lives under .tick/."""
        paths = ProjectPaths(tmp_path)

        assert paths.tick_file == tmp_path.resolve() / "TICK.md"
        assert paths.lock_file == tmp_path.resolve() / ".tick" / "lock"
        assert paths.queue_file.name == "webhook-queue.json"
        assert paths.config_file.name == "config.yml"
        assert paths.notify_config_file.name == "notify.json"
        assert paths.backup_dir == tmp_path.resolve() / ".tick" / "backup"
        assert paths.archive_file == tmp_path.resolve() / "ARCHIVE.md"

    def test_ensure_tick_dir(self, tmp_path):
        """Test the directory and an empty lock file are created."""
        paths = ProjectPaths(tmp_path)
        paths.ensure_tick_dir()
        paths.ensure_tick_dir()

        assert paths.lock_file.read_text() == ""

    def test_find_project_root(self, tmp_path):
        """Test the root is found from a nested directory."""
        (tmp_path / "TICK.md").write_text("---\nproject: x\n---\n", encoding="utf-8")
        nested = tmp_path / "src" / "pkg"
        nested.mkdir(parents=True)

        assert find_project_root(nested) == tmp_path.resolve()

    def test_find_project_root_missing(self, tmp_path):
        """Test None is returned when no ancestor holds TICK.md."""
        assert find_project_root(tmp_path) is None
