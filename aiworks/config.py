from __future__ import annotations

import logging
from configparser import ConfigParser
from pathlib import Path

import yaml


class AppConfig:
    def __init__(self, config_path: Path | None = None, prompts_path: Path | None = None) -> None:
        parser = ConfigParser()
        package_root = Path(__file__).resolve().parent.parent
        parser.read(config_path or package_root / "config.ini")
        if not parser.sections():
            parser.read(Path("config.ini"))
        self._parser = parser
        self._prompts = self._load_prompts(prompts_path or package_root / "prompts.yaml")

    def llm_settings(self) -> dict[str, object]:
        return {
            "base_url": self._get_str(
                "llm", "base_url", "https://generativelanguage.googleapis.com/v1beta"
            ),
            "model": self._get_str("llm", "model", "gemini-1.5-flash"),
            "temperature": self._get_float("llm", "temperature", 0.7),
            "max_output_tokens": self._get_int("llm", "max_output_tokens", 1024),
            "timeout": self._get_float("llm", "timeout", 60.0),
        }

    def executor_settings(self) -> dict[str, object]:
        return {
            "error_policy": self._get_str("executor", "error_policy", "continue"),
            "validate_api_key": self._get_bool("executor", "validate_api_key", False),
        }

    def storage_settings(self) -> dict[str, object]:
        return {"db_path": self._get_str("storage", "db_path", "data/workflows.db")}

    def logging_settings(self) -> dict[str, object]:
        return {
            "level": self._get_str("logging", "level", "INFO"),
            "format": self._get_str(
                "logging", "format", "%(asctime)s %(levelname)s [%(name)s] %(message)s"
            ),
        }

    def prompt(self, name: str, fallback: str, key: str = "template") -> str:
        """Return the prompt template registered under ``name`` in prompts.yaml."""
        section = self._prompts.get(name)
        if isinstance(section, dict):
            template = section.get(key)
            if isinstance(template, str) and template:
                return template
        if isinstance(section, str) and section:
            return section
        return fallback

    def prompt_options(self, name: str, key: str) -> dict[str, str]:
        section = self._prompts.get(name)
        if not isinstance(section, dict):
            return {}
        options = section.get(key)
        if not isinstance(options, dict):
            return {}
        return {str(k): str(v) for k, v in options.items()}

    def _get_str(self, section: str, key: str, fallback: str) -> str:
        return self._parser.get(section, key, fallback=fallback)

    def _get_int(self, section: str, key: str, fallback: int) -> int:
        return self._parser.getint(section, key, fallback=fallback)

    def _get_float(self, section: str, key: str, fallback: float) -> float:
        return self._parser.getfloat(section, key, fallback=fallback)

    def _get_bool(self, section: str, key: str, fallback: bool) -> bool:
        return self._parser.getboolean(section, key, fallback=fallback)

    def _load_prompts(self, path: Path) -> dict[str, object]:
        if not path.exists():
            return {}
        try:
            raw = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError):
            return {}
        return raw if isinstance(raw, dict) else {}


def configure_logging(config: AppConfig | None = None) -> None:
    settings = (config or app_config).logging_settings()
    logging.basicConfig(level=str(settings["level"]).upper(), format=str(settings["format"]))


app_config = AppConfig()
