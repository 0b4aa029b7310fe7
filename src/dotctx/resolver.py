"""Context resolver: swap the active dotfile set when the context changes."""

from datetime import datetime
from pathlib import Path
from typing import Dict, List, Set, Tuple

import typer

from .activation import (
    activate,
    canonical_source,
    deactivate,
    is_linked,
    resolve_source,
)
from .address import ResourceAddress
from .exceptions import (
    CloneMissingError,
    ContextSwitchResultDict,
    DotctxSymlinkError,
    DotfilesIndexDict,
    FileEntryDict,
    RemoteUnavailableError,
)
from .index import STATUS_ACTIVE, TYPE_FILE, TYPE_FOLDER, find_entry_by_src
from .metadata import RemoteDotfile
from .runtime import Runtime

Owners = Dict[str, List[Tuple[str, FileEntryDict]]]


def _warn(message: str, quiet: bool) -> None:
    if not quiet:
        typer.secho(f"Warning: {message}", fg=typer.colors.YELLOW, err=True)


def fetch_context_dotfiles(
    runtime: Runtime, address: ResourceAddress, context_path: str
) -> List[RemoteDotfile]:
    """Dotfile documents of the bound context whose repoPath matches the path.

    Only the bound context is queried; documents are filtered by whether their
    ``repoPath`` contains the normalized ``context_path`` segment.
    """
    context_id = runtime.session.bound_context()
    if not context_id:
        _warn("No context bound, no remote dotfiles to activate", runtime.quiet)
        return []

    try:
        with runtime.metadata_client(address.remote_key) as client:
            documents = client.get_dotfiles_by_context(context_id)
    except RemoteUnavailableError as e:
        _warn(f"Could not fetch context dotfiles: {e}", runtime.quiet)
        return []

    segment = context_path.strip("/")
    return [
        doc
        for doc in documents
        if doc.local_path
        and doc.repo_path
        and (not segment or segment in doc.repo_path or doc.repo_path.endswith(segment))
    ]


def build_owner_map(index: DotfilesIndexDict, home: Path) -> Owners:
    """Map canonical source path to every active entry claiming it."""
    owners: Owners = {}
    for key, config in index.items():
        for entry in config.get("files", []):
            if entry.get("active"):
                src = canonical_source(entry["src"], home)
                owners.setdefault(src, []).append((key, entry))
    return owners


def deactivate_owners(
    index: DotfilesIndexDict,
    claims: Dict[str, Path],
    workspace_key: str,
    home: Path,
) -> List[str]:
    """Deactivate every active entry owning one of the claimed source paths.

    ``claims`` maps canonical source paths to the repository file the
    workspace is about to link there. An entry of that workspace already
    linked to the claimed file is left alone. Returns ``"<key>/<dst>"`` for
    each entry deactivated.
    """
    released: List[str] = []
    owners = build_owner_map(index, home)
    for src, repo_file in claims.items():
        for owner_key, entry in owners.pop(src, []):
            if owner_key == workspace_key and is_linked(
                resolve_source(entry["src"], home), repo_file
            ):
                continue
            deactivate(entry, Path(index[owner_key]["path"]), home)
            released.append(f"{owner_key}/{entry['dst']}")
    return released


def activate_for_context(
    runtime: Runtime, address: ResourceAddress, context_path: str
) -> ContextSwitchResultDict:
    """Activate the dotfiles of a context in a workspace.

    Entries of any workspace that currently own one of the target source
    paths are deactivated first; the targets are then activated in
    descending priority. When several targets share a source path the
    first one activated wins. The index is saved once at the end.
    """
    home = runtime.home
    result: ContextSwitchResultDict = {
        "activated": [],
        "deactivated": [],
        "skipped": [],
    }

    index = runtime.index.load()
    key = address.workspace_key
    workspace = index.get(key) or runtime.index.new_workspace(address)
    clone_dir = Path(workspace["path"])
    if not clone_dir.is_dir():
        raise CloneMissingError(
            f"Workspace {key} is not cloned locally. Run 'dotctx clone' first."
        )

    targets = fetch_context_dotfiles(runtime, address, context_path)
    if not targets:
        return result
    index[key] = workspace
    targets = sorted(targets, key=lambda doc: doc.priority, reverse=True)

    claims: Dict[str, Path] = {}
    for target in targets:
        src = canonical_source(target.local_path, home)
        repo_file = clone_dir / target.repo_path
        if src not in claims or (not claims[src].exists() and repo_file.exists()):
            claims[src] = repo_file
    result["deactivated"] = deactivate_owners(index, claims, key, home)

    seen: Set[str] = set()
    for target in targets:
        repo_file = clone_dir / target.repo_path
        if not repo_file.exists():
            _warn(f"Dotfile not found in repository: {target.repo_path}", runtime.quiet)
            result["skipped"].append(target.repo_path)
            continue

        src = canonical_source(target.local_path, home)
        if src in seen:
            result["skipped"].append(target.repo_path)
            continue

        entry = find_entry_by_src(workspace["files"], src, home)
        if entry is None:
            entry = {
                "src": src,
                "dst": target.repo_path,
                "type": TYPE_FILE,
                "active": False,
                "addedAt": datetime.now().isoformat(),
            }
            workspace["files"].append(entry)
        entry["dst"] = target.repo_path
        entry["type"] = TYPE_FOLDER if repo_file.is_dir() else TYPE_FILE
        if target.doc_id:
            entry["docId"] = target.doc_id

        try:
            activate(entry, clone_dir, home, quiet=runtime.quiet)
        except (DotctxSymlinkError, OSError) as e:
            _warn(f"Could not activate {src}: {e}", runtime.quiet)
            result["skipped"].append(target.repo_path)
            continue
        seen.add(src)
        result["activated"].append(src)

    if result["activated"]:
        workspace["status"] = STATUS_ACTIVE
    runtime.index.save(index)
    return result
