"""
Configuration System Tests
==========================
Verifies defaults, serialization and environment overrides.
"""

import os
import sys
import tempfile
from unittest.mock import patch

# Add parent to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(__file__))))

from ballot.config import (
    AppConfig,
    get_config,
    set_config,
    reset_config,
    apply_environment_overrides,
    get_development_config,
    get_production_config,
)


def test_default_config():
    """Test that default configuration is created correctly."""
    reset_config()
    config = get_config()

    assert config is not None
    assert config.gemini.model_name == "gemini-2.0-flash"
    assert config.gemini.temperature == 0.55
    assert config.gemini.max_output_tokens == 7000
    assert config.transcription.chunk_seconds == 30
    assert config.integrity.repeat_threshold == 3
    assert config.rubric.max_priorities == 3
    assert config.media.max_video_seconds == 180.0
    assert config.flask.port == 5000

    print("[PASS] Default configuration test passed")


def test_config_singleton():
    """Test that get_config returns the same instance."""
    reset_config()
    config1 = get_config()
    config2 = get_config()

    assert config1 is config2

    custom = AppConfig()
    set_config(custom)
    assert get_config() is custom
    reset_config()

    print("[PASS] Singleton test passed")


def test_rubric_windows():
    """Length windows and readiness thresholds."""
    rubric = AppConfig().rubric

    assert rubric.insufficient_length_seconds == 180.0
    assert rubric.optimal_min_seconds == 240.0
    assert rubric.max_length_seconds == 420.0
    assert rubric.ready_min_overall == 7.5
    assert rubric.ready_min_category == 7.0
    assert rubric.pacing_min_wpm == 130
    assert rubric.pacing_max_wpm == 170

    print("[PASS] Rubric windows test passed")


def test_config_serialization():
    """Test configuration save and load."""
    config = AppConfig()
    config.logging.session_name = "test_session"
    config.rubric.filler_rate_floor = 4.0

    with tempfile.NamedTemporaryFile(mode='w', suffix='.json', delete=False) as f:
        temp_path = f.name

    try:
        config.save(temp_path)
        loaded_config = AppConfig.load(temp_path)

        assert loaded_config.logging.session_name == "test_session"
        assert loaded_config.rubric.filler_rate_floor == 4.0
        assert loaded_config.gemini.model_name == config.gemini.model_name

        print("[PASS] Serialization test passed")
    finally:
        os.unlink(temp_path)


def test_config_to_dict_hides_secrets():
    """The API key and Flask secret never appear in exported config."""
    config = AppConfig()
    config.gemini.api_key = "secret-key-value"

    config_dict = config.to_dict()
    assert isinstance(config_dict, dict)
    assert config_dict['gemini']['api_key'] is None
    assert 'secret_key' not in config_dict['flask']

    with_secrets = config.to_dict(include_secrets=True)
    assert with_secrets['gemini']['api_key'] == "secret-key-value"

    print("[PASS] Config to_dict test passed")


def test_environment_overrides():
    """Shortcut and prefixed environment variables are applied with their types."""
    env = {
        'GEMINI_MODEL': 'gemini-1.5-pro',
        'JUDGE_TEMPERATURE': '0.4',
        'INCLUDE_VIDEO_IN_ANALYSIS': 'false',
        'TRANSCRIBE_CHUNK_SECONDS': '20',
        'BALLOT_RUBRIC_MAX_PRIORITIES': '2',
        'BALLOT_LOGGING_LOG_LEVEL': 'DEBUG',
    }
    with patch.dict(os.environ, env):
        config = apply_environment_overrides(AppConfig())

    assert config.gemini.model_name == 'gemini-1.5-pro'
    assert config.gemini.temperature == 0.4
    assert config.media.include_video is False
    assert config.transcription.chunk_seconds == 20
    assert config.rubric.max_priorities == 2
    assert config.logging.log_level == 'DEBUG'

    print("[PASS] Environment overrides test passed")


def test_invalid_override_is_ignored():
    """A value that cannot be coerced leaves the default in place."""
    with patch.dict(os.environ, {'JUDGE_TOP_P': 'not-a-number'}):
        config = apply_environment_overrides(AppConfig())

    assert config.gemini.top_p == 0.92

    print("[PASS] Invalid override test passed")


def test_presets():
    """Development and production presets."""
    dev = get_development_config()
    assert dev.flask.debug is True
    assert dev.logging.log_level == "DEBUG"

    prod = get_production_config()
    assert prod.flask.debug is False
    assert prod.logging.session_name == "production"

    print("[PASS] Presets test passed")


def test_paths_created():
    """Test that directories are created."""
    config = AppConfig()

    assert config.paths.uploads.exists()
    assert config.paths.temp.exists()
    assert config.paths.logs.exists()

    print("[PASS] Path creation test passed")


def run_all_tests():
    """Run all configuration tests."""
    print("\n" + "="*60)
    print("CONFIGURATION SYSTEM TESTS")
    print("="*60 + "\n")

    test_default_config()
    test_config_singleton()
    test_rubric_windows()
    test_config_serialization()
    test_config_to_dict_hides_secrets()
    test_environment_overrides()
    test_invalid_override_is_ignored()
    test_presets()
    test_paths_created()

    print("\n" + "="*60)
    print("ALL CONFIGURATION TESTS PASSED")
    print("="*60 + "\n")


if __name__ == "__main__":
    run_all_tests()
