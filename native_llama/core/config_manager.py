import yaml
import os
from typing import Dict, Any, List

from .logging import logger

DEFAULT_BASE_URL = "http://localhost:11434"


class ConfigManager:
    """
    Settings for the chat engine.

    Values come from ``<config_dir>/settings.yaml`` (optional) and are
    overridden by environment variables.
    """

    def __init__(self, config_dir: str = "config"):
        self.config_dir = config_dir
        self.settings_path = os.path.join(config_dir, "settings.yaml")
        self.config = self._load_config()

        # Загружаем переменные окружения
        self.debug = os.getenv("DEBUG", "false").lower() == "true"
        self.log_level = os.getenv("LOG_LEVEL", "INFO")

        logger.info("Configuration manager initialized", config={
            "config_dir": config_dir,
            "debug_enabled": self.debug,
            "log_level": self.log_level,
            "settings_exists": os.path.exists(self.settings_path),
            "ollama_base_url": self.ollama_base_url,
            "storage_dir": self.storage_dir,
        })

    def _load_config(self) -> Dict[str, Any]:
        config = {}
        try:
            with open(self.settings_path, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f) or {}
            if not isinstance(config, dict):
                logger.warning("Settings file must contain a mapping, ignoring it", config={
                    "file_path": self.settings_path
                })
                config = {}
        except FileNotFoundError as e:
            logger.warning(f"Configuration file not found: {e}", config={
                "error_type": "file_not_found",
                "file_path": self.settings_path
            })
        except yaml.YAMLError as e:
            logger.error(f"Error parsing YAML file: {e}", config={
                "error_type": "yaml_parse_error",
                "file_path": self.settings_path
            })
        return config

    def get_config(self) -> Dict[str, Any]:
        return self.config

    def _section(self, name: str) -> Dict[str, Any]:
        section = self.config.get(name) or {}
        return section if isinstance(section, dict) else {}

    @property
    def is_debug_enabled(self) -> bool:
        """Возвращает True если включен режим отладки"""
        return self.debug

    @property
    def ollama_base_url(self) -> str:
        url = os.getenv("OLLAMA_BASE_URL") or self._section("ollama").get("base_url") or DEFAULT_BASE_URL
        return url.rstrip("/")

    @property
    def request_timeout(self) -> float:
        return float(self._section("ollama").get("request_timeout", 15.0))

    @property
    def stream_read_timeout(self) -> float:
        """Max seconds between two stream chunks."""
        return float(self._section("ollama").get("stream_read_timeout", 30.0))

    @property
    def server_command(self) -> List[str]:
        command = self._section("ollama").get("server_command", ["ollama", "serve"])
        if isinstance(command, str):
            command = command.split()
        return list(command)

    @property
    def storage_dir(self) -> str:
        return os.getenv("NATIVE_LLAMA_DATA_DIR") or self._section("storage").get("directory") or "data"

    @property
    def storage_key(self) -> str:
        return os.getenv("STORAGE_KEY") or self._section("storage").get("key") or "chat-storage"

    @property
    def speed_update_interval(self) -> float:
        return float(self._section("throughput").get("update_interval", 0.5))

    @property
    def speed_debounce(self) -> float:
        return float(self._section("throughput").get("debounce", 0.2))

    @property
    def max_line_buffer_size(self) -> int:
        return int(self._section("stream").get("max_buffer_size", 1024 * 1024))

    def reload_config(self):
        logger.info("Reloading configuration", config={
            "operation": "reload_config",
            "config_dir": self.config_dir
        })
        self.config = self._load_config()
