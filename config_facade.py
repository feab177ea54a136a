from pathlib import Path

import config_persistence
from config import Config


def get_config_dir() -> Path:
    return config_persistence.get_config_dir()


def get_config_file() -> Path:
    return config_persistence.get_config_file()


def save_config(config: Config) -> bool:
    return config_persistence.save_config(config)


def load_config() -> Config:
    return config_persistence.load_config()


class ThemeSetting:
    """Dark/light theme flag: read once at construction, written on every toggle.

    Has no bearing on audio; kept beside the config it persists into.
    """

    def __init__(self, config: Config, save=save_config):
        self._config = config
        self._save = save
        self._dark = bool(config.dark_theme)

    @property
    def dark(self) -> bool:
        return self._dark

    def toggle(self) -> bool:
        self._dark = not self._dark
        self._config.dark_theme = self._dark
        self._save(self._config)
        return self._dark
