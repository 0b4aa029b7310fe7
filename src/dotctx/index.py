"""Local index of tracked dotfiles, one entry per workspace."""

import json
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import typer

from .activation import canonical_source
from .address import ResourceAddress
from .config import workspace_clone_dir
from .exceptions import DotfilesIndexDict, FileEntryDict, WorkspaceConfigDict

# Workspace statuses
STATUS_INACTIVE = "inactive"
STATUS_INITIALIZED = "initialized"
STATUS_CLONED = "cloned"
STATUS_ACTIVE = "active"

# File entry types
TYPE_FILE = "file"
TYPE_FOLDER = "folder"


class IndexStore:
    """Persists the dotfiles index as a single JSON document.

    There is no locking: two concurrent invocations can lose updates
    (last write wins).
    """

    def __init__(self, index_file: Path, canvas_home: Path) -> None:
        self.index_file = index_file
        self.canvas_home = canvas_home

    def load(self) -> DotfilesIndexDict:
        """Load the index; a missing or unreadable file yields an empty index."""
        if not self.index_file.exists():
            return {}
        try:
            with open(self.index_file, "r") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            typer.secho(
                f"Warning: Could not load dotfiles index ({e}), using empty index",
                fg=typer.colors.YELLOW,
                err=True,
            )
            return {}
        if not isinstance(data, dict):
            typer.secho(
                "Warning: Dotfiles index is not a JSON object, using empty index",
                fg=typer.colors.YELLOW,
                err=True,
            )
            return {}
        return data

    def save(self, index: DotfilesIndexDict) -> None:
        self.index_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.index_file, "w") as f:
            json.dump(index, f, indent=2)

    def clone_dir(self, address: ResourceAddress) -> Path:
        return workspace_clone_dir(
            self.canvas_home, address.remote_key, address.resource
        )

    def new_workspace(self, address: ResourceAddress) -> WorkspaceConfigDict:
        return {
            "path": str(self.clone_dir(address)),
            "status": STATUS_INACTIVE,
            "files": [],
        }

    def upsert_workspace(
        self, address: ResourceAddress, updates: Optional[Mapping[str, Any]] = None
    ) -> WorkspaceConfigDict:
        """Create the workspace entry if absent, then shallow-merge ``updates``."""
        index = self.load()
        key = address.workspace_key
        if key not in index:
            index[key] = self.new_workspace(address)
        if updates:
            index[key].update(updates)  # type: ignore[typeddict-item]
        self.save(index)
        return index[key]


def find_entry(files: List[FileEntryDict], dst: str) -> Optional[FileEntryDict]:
    """First entry whose repository path is ``dst``."""
    dst = dst.strip("/")
    for entry in files:
        if entry["dst"] == dst:
            return entry
    return None


def find_entry_by_src(
    files: List[FileEntryDict], src: str, home: Path
) -> Optional[FileEntryDict]:
    """First entry whose canonical source path equals ``src``."""
    wanted = canonical_source(src, home)
    for entry in files:
        if canonical_source(entry["src"], home) == wanted:
            return entry
    return None


def summarize(index: DotfilesIndexDict) -> Dict[str, int]:
    """Count workspaces, tracked files and active files."""
    files = [entry for config in index.values() for entry in config.get("files", [])]
    return {
        "workspaces": len(index),
        "files": len(files),
        "active": sum(1 for entry in files if entry.get("active")),
    }
