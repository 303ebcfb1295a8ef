"""Unit tests for VoiceNotesConfig class."""

import pytest
from pathlib import Path

from voicenotes.config import VoiceNotesConfig


@pytest.mark.unit
class TestVoiceNotesConfig:
    """Test cases for VoiceNotesConfig class."""

    def test_defaults_without_file(self):
        config = VoiceNotesConfig()

        assert config.get('storage.index_key') == "voice_notes"
        assert config.get('storage.index_write_attempts') == 2
        assert config.get('playback.default_rate') == 1.0
        assert config.get('audio.poll_interval_ms') == 100
        # Capture always uses the fixed high-quality preset
        assert config.get('audio.sample_rate') is None

    def test_missing_file(self, temp_data_dir):
        with pytest.raises(FileNotFoundError):
            VoiceNotesConfig(str(Path(temp_data_dir) / "missing.yaml"))

    def test_merges_over_defaults(self, temp_data_dir):
        config_path = Path(temp_data_dir) / "config.yaml"
        config_path.write_text(
            "storage:\n"
            "  index_write_attempts: 5\n"
            "playback:\n"
            "  default_rate: 1.5\n"
        )

        config = VoiceNotesConfig(str(config_path))

        assert config.get('storage.index_write_attempts') == 5
        assert config.get('storage.index_key') == "voice_notes"
        assert config.get('playback.default_rate') == 1.5
        assert config.get('playback.status_interval_ms') == 100

    def test_relative_paths_resolve_against_config_dir(self, temp_data_dir):
        config_path = Path(temp_data_dir) / "config.yaml"
        config_path.write_text(
            "storage:\n"
            "  data_directory: notes\n"
            "logging:\n"
            "  file_path: logs/app.log\n"
        )

        config = VoiceNotesConfig(str(config_path))

        assert config.get_data_directory() == str((Path(temp_data_dir) / "notes").absolute())
        assert config.get_recordings_directory() == str((Path(temp_data_dir) / "notes" / "recordings").absolute())
        assert config.get_index_path() == str((Path(temp_data_dir) / "notes" / "storage.json").absolute())
        assert config.get('logging.file_path') == str(Path(temp_data_dir) / "logs" / "app.log")

    def test_empty_file_uses_defaults(self, temp_data_dir):
        config_path = Path(temp_data_dir) / "config.yaml"
        config_path.write_text("")

        config = VoiceNotesConfig(str(config_path))

        assert config.get('audio.chunk_size') == 1024

    def test_invalid_yaml(self, temp_data_dir):
        config_path = Path(temp_data_dir) / "config.yaml"
        config_path.write_text("storage: [unclosed")

        with pytest.raises(ValueError):
            VoiceNotesConfig(str(config_path))

    def test_non_mapping(self, temp_data_dir):
        config_path = Path(temp_data_dir) / "config.yaml"
        config_path.write_text("- just\n- a list\n")

        with pytest.raises(ValueError):
            VoiceNotesConfig(str(config_path))

    def test_get_and_set(self):
        config = VoiceNotesConfig()

        config.set('playback.default_rate', 2.0)
        config.set('extra.nested.value', 42)

        assert config.get('playback.default_rate') == 2.0
        assert config.get('extra.nested.value') == 42
        assert config.get('nonexistent.key', 'fallback') == 'fallback'

    def test_defaults_are_not_shared(self):
        first = VoiceNotesConfig()
        first.set('storage.index_key', 'changed')

        assert VoiceNotesConfig().get('storage.index_key') == "voice_notes"
