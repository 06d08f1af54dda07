"""
Tests for configuration loading and validation.
"""
import pytest
from pathlib import Path

from pydantic import ValidationError

from drive_inventory.core.config import (
    CheckpointBackend,
    Config,
    CrawlConfig,
    InventoryProfile,
    get_config,
)


class TestDefaults:
    """Test default values."""

    def test_crawl_defaults(self):
        """Test the batch loop defaults."""
        crawl = CrawlConfig()
        assert crawl.batch_size == 100
        assert crawl.max_runtime_seconds == 300
        assert crawl.save_interval == 0
        assert crawl.max_listing_retries == 3
        assert crawl.profile == InventoryProfile.ALL

    def test_checkpoint_defaults(self):
        """Test checkpoints default to the database backend with a 2 MiB ceiling."""
        config = Config()
        assert config.checkpoint.backend == CheckpointBackend.DATABASE
        assert config.checkpoint.max_state_bytes == 2 * 1024 * 1024
        assert config.analysis.large_file_threshold_bytes == 50 * 1024 * 1024


class TestValidation:
    """Test rejected values."""

    @pytest.mark.parametrize("values", [
        {"crawl": {"batch_size": 0}},
        {"crawl": {"batch_size": 1001}},
        {"crawl": {"memory_limit_mb": 0}},
        {"analysis": {"top_k": 0}},
        {"analysis": {"high_risk_threshold": 101}},
        {"checkpoint": {"max_state_bytes": 10}},
        {"inventory_name": ""},
    ])
    def test_out_of_range(self, values):
        """Test out-of-range settings raise ValidationError."""
        with pytest.raises(ValidationError):
            Config(**values)

    def test_memory_limit_can_be_disabled(self):
        """Test None turns the memory budget off."""
        assert CrawlConfig(memory_limit_mb=None).memory_limit_mb is None


class TestSources:
    """Test YAML files and environment variables."""

    def test_yaml_round_trip(self, tmp_path):
        """Test a saved configuration loads back unchanged."""
        config = Config(inventory_name="team-drive", crawl={"batch_size": 250, "memory_limit_mb": None})
        path = tmp_path / "nested" / "config.yaml"
        config.to_yaml(path)

        loaded = Config.from_yaml(path)
        assert loaded.inventory_name == "team-drive"
        assert loaded.crawl == config.crawl
        assert loaded.analysis == config.analysis
        assert loaded.checkpoint.database_path == config.checkpoint.database_path

    def test_yaml_expands_environment(self, tmp_path, monkeypatch):
        """Test ${VAR} references in YAML values are expanded."""
        monkeypatch.setenv("INVENTORY_ROOT", str(tmp_path))
        path = tmp_path / "config.yaml"
        path.write_text(
            "output_directory: ${INVENTORY_ROOT}/reports\n"
            "checkpoint:\n"
            "  backend: memory\n"
            "  database_path: ${INVENTORY_ROOT}/state.db\n"
        )
        config = Config.from_yaml(path)
        assert config.output_directory == tmp_path / "reports"
        assert config.checkpoint.database_path == tmp_path / "state.db"
        assert config.checkpoint.backend == CheckpointBackend.MEMORY

    def test_missing_yaml(self, tmp_path):
        """Test a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            Config.from_yaml(tmp_path / "absent.yaml")

    def test_empty_yaml_gives_defaults(self, tmp_path):
        """Test an empty file is a default configuration."""
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert Config.from_yaml(path).crawl == CrawlConfig()

    def test_environment_override(self, monkeypatch):
        """Test nested settings can be overridden from the environment."""
        monkeypatch.setenv("DRIVE_INVENTORY_CRAWL__BATCH_SIZE", "250")
        monkeypatch.setenv("DRIVE_INVENTORY_INVENTORY_NAME", "from-env")
        config = Config()
        assert config.crawl.batch_size == 250
        assert config.inventory_name == "from-env"

    def test_home_expansion(self):
        """Test ~ is expanded in directory settings."""
        config = Config(output_directory="~/reports")
        assert config.output_directory == Path.home() / "reports"

    def test_ensure_directories(self, config):
        """Test output, log and checkpoint directories are created."""
        config.checkpoint.database_path = config.output_directory.parent / "db" / "state.db"
        config.ensure_directories()
        assert config.output_directory.is_dir()
        assert config.log_directory.is_dir()
        assert config.checkpoint.database_path.parent.is_dir()

    def test_get_config_reads_project_file(self, tmp_path, monkeypatch):
        """Test get_config picks up config/drive_inventory.yaml."""
        monkeypatch.chdir(tmp_path)
        (tmp_path / "config").mkdir()
        (tmp_path / "config" / "drive_inventory.yaml").write_text("inventory_name: project-file\n")
        get_config.cache_clear()
        try:
            assert get_config().inventory_name == "project-file"
        finally:
            get_config.cache_clear()
