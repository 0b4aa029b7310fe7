"""Activation engine: link tracked dotfiles into place, back up, restore.

Each index entry moves between three states:

* unlinked (``active`` is false, the source path is absent or a plain file),
* active (the source path is a symlink into the workspace clone),
* active with backup (as above, with the previous content moved aside to
  ``<source>.backup.<suffix>``).
"""

import fnmatch
import os
import shutil
import time
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import typer

from .config import HOME_PLACEHOLDER
from .exceptions import DotctxSymlinkError, FileEntryDict, RepoFileMissingError

BACKUP_MARKER = ".backup"


# ============================================================================
# PATH HELPERS
# ============================================================================


def resolve_source(src: str, home: Path) -> Path:
    """Expand the home placeholder (or ``~``) of a canonical source path."""
    if src.startswith(HOME_PLACEHOLDER):
        return Path(str(home) + src[len(HOME_PLACEHOLDER):])
    if src == "~" or src.startswith("~/"):
        return Path(str(home) + src[1:])
    return Path(src)


def to_portable(path: Path, home: Path) -> str:
    """Express a filesystem path with the home placeholder where possible."""
    path = Path(os.path.abspath(path))
    try:
        rel = path.relative_to(home)
    except ValueError:
        return path.as_posix()
    if rel == Path("."):
        return HOME_PLACEHOLDER
    return f"{HOME_PLACEHOLDER}/{rel.as_posix()}"


def canonical_source(src: str, home: Path) -> str:
    """Normalize any spelling of a source path to its portable form."""
    return to_portable(resolve_source(src, home), home)


def is_linked(target: Path, repo_file: Path) -> bool:
    """True if ``target`` is a symlink resolving to ``repo_file``."""
    if not target.is_symlink():
        return False
    return os.path.realpath(target) == os.path.realpath(repo_file)


def remove_path(path: Path) -> None:
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.is_dir():
        shutil.rmtree(path)


def _timestamp_suffix() -> str:
    return str(int(time.time() * 1000))


# ============================================================================
# STATE TRANSITIONS
# ============================================================================


def activate(
    entry: FileEntryDict, clone_dir: Path, home: Path, quiet: bool = False
) -> Optional[Path]:
    """Replace the entry's source path with a symlink into the clone.

    Returns the backup path if existing content had to be moved aside.
    Raises RepoFileMissingError if the clone has no file for the entry and
    DotctxSymlinkError if the link itself cannot be created.
    """
    target = resolve_source(entry["src"], home)
    repo_file = clone_dir / entry["dst"]

    if not repo_file.exists():
        raise RepoFileMissingError(f"Dotfile not found: {repo_file}")

    if is_linked(target, repo_file):
        entry["active"] = True
        return None

    backup_path = None
    if target.exists() or target.is_symlink():
        suffix = entry.get("docId") or _timestamp_suffix()
        backup_path = target.with_name(f"{target.name}{BACKUP_MARKER}.{suffix}")
        if backup_path.exists() or backup_path.is_symlink():
            remove_path(backup_path)
        shutil.move(str(target), str(backup_path))
        entry["backupPath"] = str(backup_path)
        entry["backupCreatedAt"] = datetime.now().isoformat()
        if not quiet:
            typer.secho(
                f"Backed up existing file to: {backup_path}", fg=typer.colors.YELLOW
            )
    else:
        target.parent.mkdir(parents=True, exist_ok=True)

    try:
        target.symlink_to(repo_file)
    except OSError as e:
        raise DotctxSymlinkError(f"Cannot link {target} to {repo_file}: {e}") from e
    entry["active"] = True
    return backup_path


def deactivate(entry: FileEntryDict, clone_dir: Path, home: Path) -> bool:
    """Replace the entry's symlink with a plain copy of the repository file.

    A source path that is not our symlink is left alone; the entry is
    considered deactivated either way. Returns True if a copy was materialized.
    """
    target = resolve_source(entry["src"], home)
    repo_file = clone_dir / entry["dst"]
    entry["active"] = False

    if not is_linked(target, repo_file):
        return False

    target.unlink()
    if repo_file.is_dir():
        shutil.copytree(repo_file, target, symlinks=True)
    else:
        shutil.copy2(repo_file, target)
    return True


def list_backups(entry: FileEntryDict, home: Path) -> List[Path]:
    """Backups of the entry's source path, in lexicographic order of name."""
    target = resolve_source(entry["src"], home)
    if not target.parent.is_dir():
        return []
    pattern = f"{target.name}{BACKUP_MARKER}*"
    backups = [
        item
        for item in target.parent.iterdir()
        if fnmatch.fnmatchcase(item.name, pattern)
    ]
    return sorted(backups, key=lambda item: item.name)


def restore(entry: FileEntryDict, home: Path, quiet: bool = False) -> Optional[Path]:
    """Move the newest backup back over the source path.

    "Newest" is the lexicographically greatest backup name, which is only
    chronological for timestamp suffixes; document-id suffixes do not sort.
    """
    backups = list_backups(entry, home)
    if not backups:
        if not quiet:
            typer.secho(
                f"Warning: No backups found for {entry['src']}",
                fg=typer.colors.YELLOW,
                err=True,
            )
        return None

    target = resolve_source(entry["src"], home)
    chosen = backups[-1]
    if target.exists() or target.is_symlink():
        remove_path(target)
    shutil.move(str(chosen), str(target))

    entry["active"] = False
    if entry.get("backupPath") == str(chosen):
        entry.pop("backupPath", None)
        entry.pop("backupCreatedAt", None)
    return chosen
