"""Read-only view of the remotes registry and the CLI session."""

import json
from pathlib import Path
from typing import Any, Dict, Optional

import typer

from .address import resource_id
from .config import get_config_value


def _read_json(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with open(path, "r") as f:
            data = json.load(f)
        return data if isinstance(data, dict) else {}
    except (json.JSONDecodeError, OSError) as e:
        typer.secho(
            f"Warning: Could not read {path.name}: {e}",
            fg=typer.colors.YELLOW,
            err=True,
        )
        return {}


class SessionRegistry:
    """Resolves the bound remote and context and per-remote credentials."""

    def __init__(
        self, remotes_file: Path, session_file: Path, config: Dict[str, Any]
    ) -> None:
        self.remotes_file = remotes_file
        self.session_file = session_file
        self.config = config
        self._remotes: Optional[Dict[str, Any]] = None
        self._session: Optional[Dict[str, Any]] = None

    @property
    def remotes(self) -> Dict[str, Any]:
        if self._remotes is None:
            self._remotes = _read_json(self.remotes_file)
        return self._remotes

    @property
    def session(self) -> Dict[str, Any]:
        if self._session is None:
            self._session = _read_json(self.session_file)
        return self._session

    def bound_remote(self) -> Optional[str]:
        return self.session.get("boundRemote") or None

    def bound_context(self) -> Optional[str]:
        """Id of the bound context, with any ``user@remote:`` prefix removed."""
        context = self.session.get("boundContext")
        if not context:
            return None
        return resource_id(context)

    def get_remote(self, remote_key: str) -> Optional[Dict[str, Any]]:
        remote = self.remotes.get(remote_key)
        return remote if isinstance(remote, dict) else None

    def resolve_token(self, remote_key: str) -> Optional[str]:
        """Token for a remote: its own auth token first, then the legacy global one."""
        remote = self.get_remote(remote_key) or {}
        token = get_config_value(remote, "auth.token")
        if token:
            return token
        return get_config_value(self.config, "server.auth.token") or None

    def remote_base_url(self, remote_key: str) -> Optional[str]:
        """Base URL of a remote without its API prefix."""
        remote = self.get_remote(remote_key)
        if remote and remote.get("url"):
            return remote["url"]
        return None

    def api_base_url(self, remote_key: str) -> Optional[str]:
        """Base URL for REST calls, e.g. ``https://host/rest/v2``."""
        base = self.remote_base_url(remote_key)
        if base is None:
            return None
        remote = self.get_remote(remote_key) or {}
        api_base = remote.get("apiBase", "/rest/v2")
        base = base.rstrip("/")
        if base.endswith(api_base.rstrip("/")):
            return base
        return base + "/" + api_base.strip("/")
