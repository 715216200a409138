# tests/paradise/test_config_management.py
import json
import logging

import pytest
from pydantic import ValidationError

from paradise.core.managers.config_manager import ConfigManager
from paradise.core.utils.configure_logging import LogWithTqdm, configure_logger, configure_from_settings
from paradise.core.utils.path_utils import PathUtils
from paradise.model import AnalysisConfig

# A small, predictable configuration for the tests
MOCK_SETTINGS_CONTENT = {
    "logging": {
        "level": "WARNING",
        "module_levels": {"semantics.resolution": "DEBUG"},
        "silenced": {"noisy.library": "ERROR"},
    },
    "completeness": {
        "step": 0.2,
        "floor": 0.2,
        "bonus": 0.1
    },
    "fuzzy": {
        "min_distance": 1,
        "length_divisor": 4,
        "max_suggestions": 2
    },
    "engine": {
        "max_workers": 2,
        "enabled_analyzers": ["reference-integrity"],
        "strict": False
    }
}


@pytest.fixture
def config_env(tmp_path, monkeypatch):
    """
    Sets up an isolated environment for the ConfigManager:
    - a temporary package root holding a mock 'settings.json',
    - PathUtils monkeypatched to point at it.
    The shared singleton is reloaded from the real file afterwards.
    """
    package_root = tmp_path / "paradise"
    package_root.mkdir()
    (package_root / "settings.json").write_text(json.dumps(MOCK_SETTINGS_CONTENT))

    monkeypatch.setattr(PathUtils, 'get_package_root', lambda: package_root)

    manager = ConfigManager()
    manager.reset()  # Force a reload from the mock file
    yield manager

    monkeypatch.undo()
    manager.reset()


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


# --- ConfigManager ---

def test_config_manager_is_a_singleton(config_env):
    """Test that every instantiation returns the shared manager."""
    assert ConfigManager() is config_env


def test_config_manager_load(config_env):
    """Test that the manager loads the configuration file."""
    assert PathUtils.get_settings_file().parent.name == "paradise"
    config = config_env.get_all()
    assert config["logging"]["level"] == "WARNING"
    assert config["completeness"]["step"] == 0.2


def test_config_manager_get_nested(config_env):
    """Test retrieving nested values."""
    assert config_env.get_nested("fuzzy.length_divisor") == 4
    assert config_env.get_nested("non.existent.key", "default") == "default"
    assert config_env.get_nested("fuzzy.min_distance.deeper", "default") == "default"


def test_config_manager_set_nested(config_env):
    """Test in-memory modifications and type casting."""
    config_env.set_nested("logging.level", "INFO")
    assert config_env.get_nested("logging.level") == "INFO"

    # A new key is stored as given
    config_env.set_nested("reports.directory", "out")
    assert config_env.get_nested("reports.directory") == "out"

    # The original value is an int, so the string '5' becomes an int
    config_env.set_nested("fuzzy.max_suggestions", "5")
    assert config_env.get_nested("fuzzy.max_suggestions") == 5
    assert isinstance(config_env.get_nested("fuzzy.max_suggestions"), int)

    # Booleans are parsed, not truth-tested
    config_env.set_nested("engine.strict", "true")
    assert config_env.get_nested("engine.strict") is True
    config_env.set_nested("engine.strict", "off")
    assert config_env.get_nested("engine.strict") is False

    # An uncastable value is stored as given
    config_env.set_nested("fuzzy.min_distance", "many")
    assert config_env.get_nested("fuzzy.min_distance") == "many"


def test_config_manager_reset(config_env):
    """Test that reset() discards in-memory changes."""
    config_env.set_nested("completeness.floor", "0.5")
    assert config_env.get_nested("completeness.floor") == 0.5
    config_env.reset()
    assert config_env.get_nested("completeness.floor") == 0.2


def test_missing_settings_file(tmp_path, monkeypatch):
    """Test that a missing settings.json yields an empty configuration."""
    monkeypatch.setattr(PathUtils, 'get_package_root', lambda: tmp_path)
    manager = ConfigManager()
    try:
        manager.reset()
        assert manager.get_all() == {}
    finally:
        monkeypatch.undo()
        manager.reset()


def test_shipped_settings_are_valid():
    """Test that the packaged settings.json builds a valid configuration."""
    config = AnalysisConfig.from_settings(ConfigManager())
    assert config == AnalysisConfig()


# --- AnalysisConfig ---

def test_analysis_config_from_settings(config_env):
    """Test that AnalysisConfig reads the live configuration."""
    config = AnalysisConfig.from_settings(config_env)
    assert config.completeness_step == 0.2
    assert config.completeness_floor == 0.2
    assert config.max_suggestions == 2
    assert config.max_workers == 2
    assert config.enabled_analyzers == ["reference-integrity"]
    # Keys absent from the file keep their defaults
    assert config.opacity_threshold == 0.05


def test_analysis_config_overrides(config_env):
    """Test that explicit keyword arguments win over the settings."""
    config = AnalysisConfig.from_settings(config_env, max_workers=8, completeness_bonus=None)
    assert config.max_workers == 8
    assert config.completeness_bonus == 0.1


def test_analysis_config_validation():
    """Test rejected values and the empty analyzer list."""
    with pytest.raises(ValidationError):
        AnalysisConfig(completeness_floor=0.95)
    with pytest.raises(ValidationError):
        AnalysisConfig(max_workers=0)
    assert AnalysisConfig(enabled_analyzers=[]).enabled_analyzers is None


@pytest.mark.parametrize("missing, threshold", [
    ("lbel", 2),
    ("sumbitButton", 4),
    ("a-very-long-identifier", 7),
])
def test_suggestion_threshold(missing, threshold):
    """Test the maximum edit distance for suggestions."""
    assert AnalysisConfig().suggestion_threshold(missing) == threshold


# --- Logging ---

def test_configure_logger(restore_logging):
    """Test the tqdm-aware root handler and per-module levels."""
    configure_logger("warning", {"auditor.engine": "DEBUG"}, {"noisy.library": "ERROR"})
    root = logging.getLogger()
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0], LogWithTqdm)
    assert root.level == logging.WARNING
    assert logging.getLogger("auditor.engine").level == logging.DEBUG
    assert logging.getLogger("noisy.library").level == logging.ERROR


def test_configure_from_settings(config_env, restore_logging):
    """Test applying the 'logging' section of the settings."""
    configure_from_settings()
    assert logging.getLogger().level == logging.WARNING
    assert logging.getLogger("semantics.resolution").level == logging.DEBUG


def test_tqdm_handler_writes_to_stderr(restore_logging, capsys):
    """Test that log records are routed through tqdm.write."""
    configure_logger("INFO")
    logging.getLogger("paradise.test").info("hello from the engine")
    assert "hello from the engine" in capsys.readouterr().err
