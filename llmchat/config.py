# config.py
# Description: TOML configuration loading, defaults and path helpers for llmchat
#
# Imports
import copy
import os
import tomllib
from pathlib import Path
from typing import Any, Dict, Optional
#
# Third-party imports
from loguru import logger
#
# Local imports
from llmchat.Utils.atomic_file_ops import atomic_write_text
#
#######################################################################################################################
#
# Constants:

CONFIG_ENV_VAR = "LLMCHAT_CONFIG"
DEFAULT_CONFIG_PATH = Path.home() / ".config" / "llmchat" / "config.toml"
BASE_DATA_DIR = Path.home() / ".local" / "share" / "llmchat"

DEFAULT_PROVIDER = "openai"
DEFAULT_CONVERSATION_TITLE = "New Chat"
DEFAULT_SYSTEM_PROMPT = "You are a helpful, concise assistant."
DEFAULT_MODEL_CACHE_TTL_SECONDS = 3600

CONFIG_TOML_CONTENT = """
# Configuration for llmchat
[general]
log_level = "INFO"
log_file = "~/.local/share/llmchat/llmchat.log"
log_to_console = false

[api_settings.openai]
base_url = "https://api.openai.com/v1/"
timeout = 60.0
streaming = true
keyring_service = "llmchat.APIKey"

[chat_defaults]
default_title = "New Chat"
system_prompt = "You are a helpful, concise assistant."
model_cache_ttl_seconds = 3600

[database]
path = "~/.local/share/llmchat/llmchat.db"
"""

DEFAULT_CONFIG_FROM_TOML: Dict[str, Any] = tomllib.loads(CONFIG_TOML_CONTENT)

_CONFIG_CACHE: Optional[Dict[str, Any]] = None

#
#######################################################################################################################
#
# Functions:

def get_config_path() -> Path:
    """Config file location, honouring the LLMCHAT_CONFIG override."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return DEFAULT_CONFIG_PATH


def deep_merge_dicts(base: Dict, update: Dict) -> Dict:
    """Recursively merge `update` on top of a copy of `base`."""
    merged = copy.deepcopy(base)
    for key, value in update.items():
        if isinstance(value, dict) and key in merged and isinstance(merged[key], dict):
            merged[key] = deep_merge_dicts(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_cli_config_and_ensure_existence(force_reload: bool = False) -> Dict[str, Any]:
    """
    Loads settings from the config file, creating it from CONFIG_TOML_CONTENT on first run.
    User values are merged over the programmatic defaults, so a partial file is fine.
    """
    global _CONFIG_CACHE
    if _CONFIG_CACHE is not None and not force_reload:
        return _CONFIG_CACHE

    config_path = get_config_path()
    loaded_config = copy.deepcopy(DEFAULT_CONFIG_FROM_TOML)

    if not config_path.exists():
        logger.info(f"Config file not found at {config_path}. Creating it with default values.")
        try:
            atomic_write_text(config_path, CONFIG_TOML_CONTENT)
            loaded_config["_first_run"] = True
        except OSError as e:
            logger.error(f"Could not create default config file {config_path}: {e}. Using internal defaults.")
    else:
        logger.info(f"Loading config from: {config_path}")
        try:
            with open(config_path, "rb") as f:
                user_config_from_file = tomllib.load(f)
            loaded_config = deep_merge_dicts(loaded_config, user_config_from_file)
        except tomllib.TOMLDecodeError as e:
            logger.error(f"Error decoding TOML config file {config_path}: {e}. Using internal defaults.")
        except OSError as e:
            logger.error(f"Could not read config file {config_path}: {e}. Using internal defaults.")

    _CONFIG_CACHE = loaded_config
    logger.debug(f"Config loaded with top-level keys: {list(loaded_config.keys())}")
    return _CONFIG_CACHE


def get_cli_setting(section: str, key: str, default: Any = None) -> Any:
    """
    Helper to get a specific setting from the loaded configuration.

    `section` may be dotted ("api_settings.openai") to reach nested tables.
    """
    section_data: Any = load_cli_config_and_ensure_existence()
    for part in section.split("."):
        if not isinstance(section_data, dict):
            return default
        section_data = section_data.get(part)
    if isinstance(section_data, dict):
        return section_data.get(key, default)
    return default


def reset_config_cache() -> None:
    """Drop the cached config so the next access reads the file again."""
    global _CONFIG_CACHE
    _CONFIG_CACHE = None


def _expand(path_value: str) -> Path:
    return Path(os.path.expandvars(path_value)).expanduser()


def get_database_path() -> Path:
    """Location of the SQLite key-value store."""
    return _expand(get_cli_setting("database", "path", str(BASE_DATA_DIR / "llmchat.db")))


def get_log_file_path() -> Path:
    """Location of the rotating log file."""
    return _expand(get_cli_setting("general", "log_file", str(BASE_DATA_DIR / "llmchat.log")))


def get_provider_settings(provider: str = DEFAULT_PROVIDER) -> Dict[str, Any]:
    """Settings table for a provider under [api_settings]."""
    providers = load_cli_config_and_ensure_existence().get("api_settings", {})
    settings = providers.get(provider.lower(), {}) if isinstance(providers, dict) else {}
    return dict(settings) if isinstance(settings, dict) else {}

#
# End of config.py
#######################################################################################################################
