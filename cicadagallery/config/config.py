"""
This module encapsulates the reading and processing of the CicadaGallery
config file and provides callers with a mechanism to access the various
properties specified therein.

The license verification key and product identifier are build-time constants
(see cicadagallery.licensing.public_key) and are not read from
this file.
"""

import os
import sys
from pathlib import Path

import yaml

DEFAULT_ISSUANCE_URL = "https://license.cicadagallery.app"
DEFAULT_LICENSE_TIMEOUT = 30
DEFAULT_LOG_LEVELS = "INFO|WARNING|ERROR|CRITICAL"
DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_data_dir() -> Path:
    """
    Get the per-user directory CicadaGallery keeps its settings in.
    """
    if os.name == "nt":  # Windows
        base = os.environ.get("APPDATA") or str(Path.home() / "AppData" / "Roaming")
        return Path(base) / "CicadaGallery"
    # Unix-like (Linux, macOS, BSD)
    base = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / "cicadagallery"


def _find_config_path() -> str:
    """Locate the config file: env override, per-user file, then dev file."""
    env_path = os.environ.get("CICADAGALLERY_CONFIG")
    if env_path:
        return env_path

    user_path = get_data_dir() / "cicadagallery.yaml"
    if user_path.exists():
        return str(user_path)

    # Fallback to development config in the working directory
    if os.path.exists("cicadagallery-dev.yaml"):
        return "cicadagallery-dev.yaml"
    return str(user_path)


def apply_defaults(loaded) -> dict:
    """
    Fill in every setting the file leaves out with its default value.
    """
    cfg = loaded if isinstance(loaded, dict) else {}

    # License settings
    if not isinstance(cfg.get("license"), dict):
        cfg["license"] = {}
    if not "issuance_url" in cfg["license"].keys():
        cfg["license"]["issuance_url"] = DEFAULT_ISSUANCE_URL
    if not "timeout" in cfg["license"].keys():
        cfg["license"]["timeout"] = DEFAULT_LICENSE_TIMEOUT
    if not cfg["license"].get("state_file"):
        cfg["license"]["state_file"] = str(get_data_dir() / "license.key")

    # Logging settings
    if not isinstance(cfg.get("logging"), dict):
        cfg["logging"] = {}
    if not "level" in cfg["logging"].keys():
        cfg["logging"]["level"] = DEFAULT_LOG_LEVELS
    if not "format" in cfg["logging"].keys():
        cfg["logging"]["format"] = DEFAULT_LOG_FORMAT

    # Reference issuance service settings
    if not isinstance(cfg.get("issuance"), dict):
        cfg["issuance"] = {}
    if not "host" in cfg["issuance"].keys():
        cfg["issuance"]["host"] = "127.0.0.1"
    if not "port" in cfg["issuance"].keys():
        cfg["issuance"]["port"] = 8710
    if not "signing_key_file" in cfg["issuance"].keys():
        cfg["issuance"]["signing_key_file"] = ""

    return cfg


def load_config(path: str) -> dict:
    """
    Read the YAML file at path and apply defaults.

    A missing file yields the default configuration.

    Raises:
        yaml.YAMLError: If the file exists but cannot be parsed
    """
    if not os.path.exists(path):
        return apply_defaults({})
    with open(path, "r", encoding="utf-8") as file:
        return apply_defaults(yaml.safe_load(file))


CONFIG_PATH = _find_config_path()

try:
    config = load_config(CONFIG_PATH)
except yaml.YAMLError as exc:
    if hasattr(exc, "problem_mark"):
        mark = exc.problem_mark
        print(
            f"Error in configuration file {CONFIG_PATH} at line {mark.line + 1}, "
            f"column {mark.column + 1}",
            file=sys.stderr,
        )
    else:
        print(f"Error reading configuration file {CONFIG_PATH}", file=sys.stderr)
    sys.exit(1)


def get_config():
    """
    This function allows a caller to retrieve the config object.
    """
    return config


def get_license_config():
    """
    Get the license section of the configuration.
    """
    return config["license"]


def get_issuance_url():
    """
    Get the base URL of the license issuance service.
    """
    return config["license"]["issuance_url"]


def get_license_timeout():
    """
    Get the activation request timeout in seconds.
    """
    return config["license"]["timeout"]


def get_license_state_file():
    """
    Get the path of the file holding the activated license string.
    """
    return config["license"]["state_file"]


def get_log_levels():
    """
    Get the pipe-separated logging levels configuration.
    """
    return config["logging"]["level"]


def get_log_format():
    """
    Get the logging format string.
    """
    return config["logging"]["format"]


def get_issuance_config():
    """
    Get the settings of the reference issuance service.
    """
    return config["issuance"]
