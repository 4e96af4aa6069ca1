import pytest

from native_llama.core.config_manager import ConfigManager, DEFAULT_BASE_URL

SETTINGS = """
ollama:
  base_url: http://gpu-box:11434/
  request_timeout: 5
  stream_read_timeout: 60
  server_command: ollama serve --verbose
storage:
  directory: /var/lib/native-llama
  key: chats
throughput:
  update_interval: 1.0
  debounce: 0.1
stream:
  max_buffer_size: 4096
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("OLLAMA_BASE_URL", "NATIVE_LLAMA_DATA_DIR", "STORAGE_KEY", "DEBUG"):
        monkeypatch.delenv(name, raising=False)


class TestConfigManager:
    def test_defaults_without_settings_file(self, tmp_path):
        config = ConfigManager(config_dir=str(tmp_path))

        assert config.get_config() == {}
        assert config.ollama_base_url == DEFAULT_BASE_URL
        assert config.request_timeout == 15.0
        assert config.stream_read_timeout == 30.0
        assert config.server_command == ["ollama", "serve"]
        assert config.storage_dir == "data"
        assert config.storage_key == "chat-storage"
        assert config.speed_update_interval == 0.5
        assert config.speed_debounce == 0.2
        assert config.max_line_buffer_size == 1024 * 1024
        assert not config.is_debug_enabled

    def test_values_from_settings_file(self, tmp_path):
        (tmp_path / "settings.yaml").write_text(SETTINGS, encoding="utf-8")
        config = ConfigManager(config_dir=str(tmp_path))

        assert config.ollama_base_url == "http://gpu-box:11434"
        assert config.request_timeout == 5.0
        assert config.stream_read_timeout == 60.0
        assert config.server_command == ["ollama", "serve", "--verbose"]
        assert config.storage_dir == "/var/lib/native-llama"
        assert config.storage_key == "chats"
        assert config.speed_update_interval == 1.0
        assert config.speed_debounce == 0.1
        assert config.max_line_buffer_size == 4096

    def test_environment_overrides_file(self, tmp_path, monkeypatch):
        (tmp_path / "settings.yaml").write_text(SETTINGS, encoding="utf-8")
        monkeypatch.setenv("OLLAMA_BASE_URL", "http://127.0.0.1:9999")
        monkeypatch.setenv("NATIVE_LLAMA_DATA_DIR", str(tmp_path / "data"))
        monkeypatch.setenv("STORAGE_KEY", "other")
        monkeypatch.setenv("DEBUG", "true")

        config = ConfigManager(config_dir=str(tmp_path))

        assert config.ollama_base_url == "http://127.0.0.1:9999"
        assert config.storage_dir == str(tmp_path / "data")
        assert config.storage_key == "other"
        assert config.is_debug_enabled

    def test_invalid_yaml_is_ignored(self, tmp_path):
        (tmp_path / "settings.yaml").write_text("ollama: [unclosed", encoding="utf-8")
        config = ConfigManager(config_dir=str(tmp_path))
        assert config.get_config() == {}

    def test_non_mapping_yaml_is_ignored(self, tmp_path):
        (tmp_path / "settings.yaml").write_text("- a\n- b\n", encoding="utf-8")
        config = ConfigManager(config_dir=str(tmp_path))
        assert config.get_config() == {}
        assert config.ollama_base_url == DEFAULT_BASE_URL

    def test_reload_config(self, tmp_path):
        config = ConfigManager(config_dir=str(tmp_path))
        (tmp_path / "settings.yaml").write_text("storage:\n  key: reloaded\n", encoding="utf-8")

        config.reload_config()

        assert config.storage_key == "reloaded"
