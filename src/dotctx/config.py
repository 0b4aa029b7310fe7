"""Paths and configuration for dotctx."""

import copy
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

import typer

# Constants
CANVAS_DIR_NAME = ".canvas"
CONFIG_DIR_NAME = "config"
INDEX_FILENAME = "dotfiles.json"
CONFIG_FILENAME = "canvas-cli.json"
REMOTES_FILENAME = "remotes.json"
SESSION_FILENAME = "session-cli.json"
DOTFILES_DIR_NAME = "dotfiles"
HOME_PLACEHOLDER = "{{HOME}}"

# Default configuration
DEFAULT_CONFIG: Dict[str, Any] = {
    "server": {
        "url": "http://localhost:8001/rest/v2",
        "auth": {
            "type": "token",
            "token": "",  # legacy global token, used when a remote has none
        },
    },
    "git": {
        "defaultBranch": "main",
        "userName": "dotctx",
        "userEmail": "dotctx@localhost",
    },
}


# ============================================================================
# PATH MANAGEMENT
# ============================================================================


def get_home_dir() -> Path:
    """Get the home directory, respecting environment variables for testing."""
    if "HOME" in os.environ:
        return Path(os.environ["HOME"])
    return Path.home()


def get_canvas_home(home_dir: Optional[Path] = None) -> Path:
    """Get the installation root, honouring CANVAS_USER_HOME."""
    override = os.environ.get("CANVAS_USER_HOME")
    if override:
        return Path(override).expanduser()
    if home_dir is None:
        home_dir = get_home_dir()
    return home_dir / CANVAS_DIR_NAME


def get_paths(home_dir: Optional[Path] = None) -> Dict[str, Path]:
    """Get all dotctx-related paths based on home directory."""
    if home_dir is None:
        home_dir = get_home_dir()

    canvas_home = get_canvas_home(home_dir)
    config_dir = canvas_home / CONFIG_DIR_NAME

    return {
        "home": home_dir,
        "canvas_home": canvas_home,
        "config_dir": config_dir,
        "index_file": config_dir / INDEX_FILENAME,
        "config_file": config_dir / CONFIG_FILENAME,
        "remotes_file": config_dir / REMOTES_FILENAME,
        "session_file": config_dir / SESSION_FILENAME,
    }


def workspace_clone_dir(canvas_home: Path, remote_key: str, workspace: str) -> Path:
    """Local clone directory of a workspace's dotfiles repository."""
    return canvas_home / remote_key / workspace / DOTFILES_DIR_NAME


# ============================================================================
# CONFIGURATION MANAGEMENT
# ============================================================================


def load_config(config_file: Path) -> Dict[str, Any]:
    """Load configuration from config file, or return default if not exists."""
    if not config_file.exists():
        return copy.deepcopy(DEFAULT_CONFIG)

    try:
        with open(config_file, "r") as f:
            config = json.load(f)

        # Merge with defaults to ensure all keys exist
        merged_config = copy.deepcopy(DEFAULT_CONFIG)
        for key, value in config.items():
            if isinstance(value, dict) and isinstance(merged_config.get(key), dict):
                merged_config[key].update(value)
            else:
                merged_config[key] = value

        return merged_config
    except (json.JSONDecodeError, OSError, AttributeError) as e:
        typer.secho(
            f"Warning: Error reading config file: {e}. Using defaults.",
            fg=typer.colors.YELLOW,
            err=True,
        )
        return copy.deepcopy(DEFAULT_CONFIG)


def save_config(config: Dict[str, Any], config_file: Path) -> None:
    """Save configuration to config file."""
    config_file.parent.mkdir(parents=True, exist_ok=True)
    with open(config_file, "w") as f:
        json.dump(config, f, indent=2)


def get_config_value(config: Dict[str, Any], key_path: str, default: Any = None) -> Any:
    """Get a configuration value by key path (e.g., 'server.auth.token')."""
    value: Any = config
    try:
        for key in key_path.split("."):
            value = value[key]
        return value
    except (KeyError, TypeError):
        return default
