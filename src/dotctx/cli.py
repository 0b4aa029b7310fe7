"""CLI commands for dotctx - a context-aware dotfiles manager."""

import os
import shutil
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterator, List, Optional

import typer
from rich.console import Console
from typing_extensions import Annotated

from .activation import (
    activate as activate_entry,
    canonical_source,
    deactivate as deactivate_entry,
    is_linked,
    remove_path,
    resolve_source,
    restore as restore_entry,
    to_portable,
)
from .address import ResourceAddress, parse_address
from .encryption import mark_encrypted, unmark_encrypted
from .exceptions import (
    CloneMissingError,
    DotctxConfigurationError,
    DotctxError,
    DotctxSymlinkError,
    DotctxValidationError,
    DotfilesIndexDict,
    FileEntryDict,
    OperationResultDict,
    RemoteUnavailableError,
    RepoFileMissingError,
    WorkspaceConfigDict,
)
from .hooks import install_hooks as install_pre_commit_hook
from .index import (
    STATUS_ACTIVE,
    STATUS_CLONED,
    STATUS_INACTIVE,
    STATUS_INITIALIZED,
    TYPE_FILE,
    TYPE_FOLDER,
    find_entry,
    summarize,
)
from .metadata import RemoteDotfile
from .resolver import activate_for_context, deactivate_owners
from .runtime import Runtime, build_runtime
from .vcs import build_auth_url, build_remote_url

DEFAULT_COMMIT_MESSAGE = "Update dotfiles"

# Global app and console instances
app = typer.Typer(help="dotctx - a context-aware dotfiles manager")
console = Console(stderr=True)

AddressArg = Annotated[
    str, typer.Argument(help="Dotfile address: [user@remote:]workspace[/path]")
]


# ============================================================================
# UTILITY FUNCTIONS
# ============================================================================


@app.callback()
def main(
    ctx: typer.Context,
    debug: Annotated[
        bool,
        typer.Option(
            "--debug", envvar="DOTCTX_DEBUG", help="Print tracebacks on failure"
        ),
    ] = False,
    quiet: Annotated[
        bool, typer.Option("--quiet", "-q", help="Suppress output")
    ] = False,
) -> None:
    """Track dotfiles in per-workspace repositories and link them into place."""
    if ctx.obj is None:
        ctx.obj = build_runtime(quiet=quiet, debug=debug)
    else:
        ctx.obj.quiet = ctx.obj.quiet or quiet
        ctx.obj.debug = ctx.obj.debug or debug


@contextmanager
def handle_errors(runtime: Runtime) -> Iterator[None]:
    """Turn failures into a red message and exit code 1."""
    try:
        yield
    except (typer.Exit, typer.Abort):
        raise
    except DotctxError as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        if runtime.debug:
            console.print_exception()
        raise typer.Exit(code=1)
    except Exception as e:
        typer.secho(f"Unexpected error: {e}", fg=typer.colors.RED, err=True)
        if runtime.debug:
            console.print_exception()
        raise typer.Exit(code=1)


def _echo(runtime: Runtime, message: str, color: Optional[str] = None) -> None:
    if not runtime.quiet:
        typer.secho(message, fg=color)


def _warn(runtime: Runtime, message: str) -> None:
    if not runtime.quiet:
        typer.secho(f"Warning: {message}", fg=typer.colors.YELLOW, err=True)


def _address(runtime: Runtime, text: str) -> ResourceAddress:
    return parse_address(text, runtime.session.bound_remote())


def _require_path(address: ResourceAddress) -> str:
    if not address.rel_path:
        raise DotctxValidationError(
            f"Address must include a dotfile path: {address.full}/<path>"
        )
    return address.rel_path


def _clone_dir(runtime: Runtime, address: ResourceAddress) -> Path:
    workspace = runtime.index.load().get(address.workspace_key)
    if workspace and workspace.get("path"):
        return Path(workspace["path"])
    return runtime.index.clone_dir(address)


def _require_clone(runtime: Runtime, address: ResourceAddress) -> Path:
    clone_dir = _clone_dir(runtime, address)
    if not (clone_dir / ".git").exists():
        raise CloneMissingError(
            f"Workspace {address.workspace_key} is not cloned locally. "
            "Run 'dotctx clone' first."
        )
    return clone_dir


def _require_workspace(
    index: DotfilesIndexDict, address: ResourceAddress
) -> WorkspaceConfigDict:
    workspace = index.get(address.workspace_key)
    if workspace is None:
        raise DotctxValidationError(
            f"No dotfiles tracked for workspace {address.workspace_key}"
        )
    return workspace


def _require_entry(workspace: WorkspaceConfigDict, rel_path: str) -> FileEntryDict:
    entry = find_entry(workspace["files"], rel_path)
    if entry is None:
        raise DotctxValidationError(f"Dotfile not tracked: {rel_path}")
    return entry


def _remote_url(runtime: Runtime, address: ResourceAddress) -> str:
    base_url = runtime.session.remote_base_url(address.remote_key)
    if base_url is None:
        raise DotctxConfigurationError(f"Remote not configured: {address.remote_key}")
    return build_remote_url(base_url, address.resource)


def _best_effort_hooks(runtime: Runtime, clone_dir: Path, force: bool = False) -> None:
    try:
        hook = install_pre_commit_hook(clone_dir, force=force)
    except (DotctxError, OSError) as e:
        _warn(runtime, f"Could not install git hooks: {e}")
        return
    _echo(runtime, f"Installed pre-commit hook: {hook}", typer.colors.GREEN)


# ============================================================================
# WORKSPACE COMMANDS
# ============================================================================


@app.command("list")
def list_dotfiles(
    ctx: typer.Context,
    address: Annotated[
        Optional[str], typer.Argument(help="Only show this workspace")
    ] = None,
) -> None:
    """List tracked dotfiles per workspace."""
    runtime: Runtime = ctx.obj
    with handle_errors(runtime):
        index = runtime.index.load()
        if address:
            key = _address(runtime, address).workspace_key
            index = {key: index[key]} if key in index else {}

        if not index:
            typer.secho("No dotfiles tracked.", fg=typer.colors.YELLOW)
            return

        for key, workspace in index.items():
            typer.secho(
                f"{key} [{workspace.get('status', STATUS_INACTIVE)}]",
                fg=typer.colors.CYAN,
                bold=True,
            )
            for entry in workspace.get("files", []):
                marker = "*" if entry.get("active") else " "
                suffix = "/" if entry.get("type") == TYPE_FOLDER else ""
                typer.echo(f"  {marker} {entry['src']}{suffix} -> {entry['dst']}")

        totals = summarize(index)
        typer.echo(
            f"\n{totals['files']} file(s) in {totals['workspaces']} workspace(s), "
            f"{totals['active']} active"
        )


@app.command()
def init(ctx: typer.Context, address: AddressArg) -> None:
    """Initialize the dotfiles repository of a workspace on its remote."""
    runtime: Runtime = ctx.obj
    with handle_errors(runtime):
        target = _address(runtime, address)
        with runtime.metadata_client(target.remote_key) as client:
            client.init_dotfiles(target.resource)
        runtime.index.upsert_workspace(target, {"status": STATUS_INITIALIZED})
        _echo(
            runtime,
            f"Initialized dotfiles repository for {target.workspace_key}",
            typer.colors.GREEN,
        )


@app.command()
def clone(
    ctx: typer.Context,
    address: AddressArg,
    token_prompt: Annotated[
        bool,
        typer.Option("--token-prompt", help="Ask for the access token instead"),
    ] = False,
) -> None:
    """Clone the dotfiles repository of a workspace."""
    runtime: Runtime = ctx.obj
    with handle_errors(runtime):
        target = _address(runtime, address)
        clone_dir = _clone_dir(runtime, target)
        if (clone_dir / ".git").exists():
            _warn(runtime, f"Already cloned at {clone_dir}, use 'dotctx pull'")
            return

        if token_prompt:
            token = runtime.secret_reader.read_secret("Access token")
        else:
            token = runtime.session.resolve_token(target.remote_key)
        url = _remote_url(runtime, target)

        _echo(runtime, f"Cloning {target.workspace_key} into {clone_dir}...")
        runtime.vcs.clone(build_auth_url(url, token), clone_dir, token=token)
        _best_effort_hooks(runtime, clone_dir)
        runtime.index.upsert_workspace(
            target,
            {
                "path": str(clone_dir),
                "status": STATUS_CLONED,
                "clonedAt": datetime.now().isoformat(),
            },
        )
        _echo(runtime, f"Cloned {target.workspace_key}", typer.colors.GREEN)


@app.command()
def add(
    ctx: typer.Context,
    source: Annotated[Path, typer.Argument(help="File or folder to track")],
    address: AddressArg,
    priority: Annotated[
        int, typer.Option(help="Activation priority within a context")
    ] = 0,
    encrypt: Annotated[
        bool, typer.Option("--encrypt", help="Keep the file out of plaintext git")
    ] = False,
) -> None:
    """Copy a dotfile into a workspace repository and track it."""
    runtime: Runtime = ctx.obj
    with handle_errors(runtime):
        target = _address(runtime, address)
        clone_dir = _require_clone(runtime, target)
        source_path = resolve_source(str(source), runtime.home)
        source_path = Path(os.path.abspath(source_path))
        if not (source_path.exists() or source_path.is_symlink()):
            raise DotctxValidationError(f"Path not found: {source}")

        dst = target.rel_path or source_path.name.lstrip(".") or source_path.name
        repo_file = clone_dir / dst
        is_folder = source_path.is_dir()

        if not is_linked(source_path, repo_file):
            if repo_file.exists() or repo_file.is_symlink():
                remove_path(repo_file)
            repo_file.parent.mkdir(parents=True, exist_ok=True)
            if is_folder:
                shutil.copytree(source_path, repo_file, symlinks=True)
            else:
                shutil.copy2(source_path, repo_file)

        src = to_portable(source_path, runtime.home)
        entry: FileEntryDict = {
            "src": src,
            "dst": dst,
            "type": TYPE_FOLDER if is_folder else TYPE_FILE,
            "active": is_linked(source_path, repo_file),
            "addedAt": datetime.now().isoformat(),
        }

        try:
            with runtime.metadata_client(target.remote_key) as client:
                doc_id = client.create_dotfile(
                    target.resource,
                    RemoteDotfile(None, src, dst, entry["type"], priority),
                    context_spec=runtime.session.bound_context(),
                )
            if doc_id:
                entry["docId"] = doc_id
        except RemoteUnavailableError as e:
            _warn(runtime, f"Could not register dotfile on remote: {e}")

        index = runtime.index.load()
        workspace = index.get(target.workspace_key) or runtime.index.new_workspace(
            target
        )
        workspace["files"] = [
            existing
            for existing in workspace["files"]
            if existing["dst"] != dst
            and resolve_source(existing["src"], runtime.home) != source_path
        ]
        workspace["files"].append(entry)
        index[target.workspace_key] = workspace
        runtime.index.save(index)

        if encrypt:
            try:
                mark_encrypted(clone_dir, dst)
            except OSError as e:
                _warn(runtime, f"Could not mark {dst} as encrypted: {e}")

        _echo(
            runtime, f"Added {src} -> {target.workspace_key}/{dst}", typer.colors.GREEN
        )


# ============================================================================
# VERSION CONTROL COMMANDS
# ============================================================================


@app.command()
def commit(
    ctx: typer.Context,
    address: AddressArg,
    message: Annotated[
        str, typer.Option("--message", "-m", help="Commit message")
    ] = DEFAULT_COMMIT_MESSAGE,
) -> None:
    """Commit every change in a workspace repository."""
    runtime: Runtime = ctx.obj
    with handle_errors(runtime):
        clone_dir = _require_clone(runtime, _address(runtime, address))
        if runtime.vcs.commit_all(clone_dir, message):
            _echo(runtime, "Changes committed", typer.colors.GREEN)
        else:
            _echo(runtime, "Nothing to commit")


@app.command()
def push(ctx: typer.Context, address: AddressArg) -> None:
    """Push a workspace repository to its remote."""
    runtime: Runtime = ctx.obj
    with handle_errors(runtime):
        target = _address(runtime, address)
        clone_dir = _require_clone(runtime, target)
        runtime.vcs.push(
            clone_dir,
            _remote_url(runtime, target),
            token=runtime.session.resolve_token(target.remote_key),
        )
        _echo(runtime, "Push completed successfully", typer.colors.GREEN)


@app.command()
def pull(ctx: typer.Context, address: AddressArg) -> None:
    """Pull the latest changes of a workspace repository."""
    runtime: Runtime = ctx.obj
    with handle_errors(runtime):
        target = _address(runtime, address)
        clone_dir = _require_clone(runtime, target)
        runtime.vcs.pull(
            clone_dir,
            _remote_url(runtime, target),
            token=runtime.session.resolve_token(target.remote_key),
        )
        _echo(runtime, "Pull completed successfully", typer.colors.GREEN)


@app.command()
def sync(
    ctx: typer.Context,
    address: AddressArg,
    message: Annotated[
        str, typer.Option("--message", "-m", help="Commit message")
    ] = DEFAULT_COMMIT_MESSAGE,
) -> None:
    """Commit local changes, pull, then push."""
    runtime: Runtime = ctx.obj
    with handle_errors(runtime):
        target = _address(runtime, address)
        clone_dir = _require_clone(runtime, target)
        url = _remote_url(runtime, target)
        token = runtime.session.resolve_token(target.remote_key)

        if runtime.vcs.commit_all(clone_dir, message):
            _echo(runtime, "Changes committed")
        runtime.vcs.pull(clone_dir, url, token=token)
        runtime.vcs.push(clone_dir, url, token=token)
        _echo(runtime, "Sync completed successfully", typer.colors.GREEN)


@app.command()
def status(ctx: typer.Context, address: AddressArg) -> None:
    """Show repository changes and activation state of a workspace."""
    runtime: Runtime = ctx.obj
    with handle_errors(runtime):
        target = _address(runtime, address)
        workspace = runtime.index.load().get(target.workspace_key)
        clone_dir = _clone_dir(runtime, target)

        typer.secho(
            f"Workspace {target.workspace_key}", fg=typer.colors.WHITE, bold=True
        )
        typer.echo(
            f"  Status: {workspace['status'] if workspace else STATUS_INACTIVE}"
        )
        typer.echo(f"  Clone:  {clone_dir}")

        if (clone_dir / ".git").exists():
            changes = runtime.vcs.status(clone_dir).splitlines()
            if changes:
                typer.secho("Uncommitted changes:", fg=typer.colors.YELLOW)
                for line in changes:
                    typer.echo(f"  {line}")
            else:
                typer.secho("Working tree clean", fg=typer.colors.GREEN)
        else:
            typer.secho("Not cloned locally", fg=typer.colors.YELLOW)

        for entry in workspace["files"] if workspace else []:
            linked = is_linked(
                resolve_source(entry["src"], runtime.home), clone_dir / entry["dst"]
            )
            state = "active" if linked else "inactive"
            if linked != bool(entry.get("active")):
                state += " (index out of date)"
            typer.echo(f"  {entry['dst']}: {state}")

        try:
            with runtime.metadata_client(target.remote_key) as client:
                remote_status = client.dotfiles_status(target.resource)
        except RemoteUnavailableError as e:
            _warn(runtime, f"Remote status unavailable: {e}")
            return
        for key, value in remote_status.items():
            typer.echo(f"  remote {key}: {value}")


# ============================================================================
# ACTIVATION COMMANDS
# ============================================================================


def _release_owners(
    runtime: Runtime,
    index: DotfilesIndexDict,
    address: ResourceAddress,
    clone_dir: Path,
    entries: List[FileEntryDict],
) -> None:
    """Deactivate whoever else owns the source paths about to be linked."""
    claims: Dict[str, Path] = {}
    for entry in entries:
        repo_file = clone_dir / entry["dst"]
        if repo_file.exists():
            claims.setdefault(canonical_source(entry["src"], runtime.home), repo_file)
    released = deactivate_owners(index, claims, address.workspace_key, runtime.home)
    for item in released:
        _echo(runtime, f"Deactivated {item}", typer.colors.YELLOW)


@app.command()
def activate(
    ctx: typer.Context,
    address: AddressArg,
    context: Annotated[
        Optional[str],
        typer.Option("--context", help="Activate the dotfiles of this context path"),
    ] = None,
) -> None:
    """Link tracked dotfiles into place, backing up what is there."""
    runtime: Runtime = ctx.obj
    with handle_errors(runtime):
        target = _address(runtime, address)

        if context is not None:
            try:
                result = activate_for_context(runtime, target, context)
            except CloneMissingError as e:
                _warn(runtime, str(e))
                return
            for item in result["deactivated"]:
                _echo(runtime, f"Deactivated {item}", typer.colors.YELLOW)
            for item in result["activated"]:
                _echo(runtime, f"Activated {item}", typer.colors.GREEN)
            _echo(
                runtime,
                f"{len(result['activated'])} activated, "
                f"{len(result['deactivated'])} deactivated, "
                f"{len(result['skipped'])} skipped",
            )
            return

        index = runtime.index.load()
        workspace = _require_workspace(index, target)
        clone_dir = _require_clone(runtime, target)

        if target.rel_path:
            entry = _require_entry(workspace, target.rel_path)
            _release_owners(runtime, index, target, clone_dir, [entry])
            activate_entry(entry, clone_dir, runtime.home, quiet=runtime.quiet)
            workspace["status"] = STATUS_ACTIVE
            runtime.index.save(index)
            _echo(runtime, f"Activated {entry['src']}", typer.colors.GREEN)
            return

        _release_owners(runtime, index, target, clone_dir, workspace["files"])
        counts: OperationResultDict = {"success": 0, "failed": 0}
        for entry in workspace["files"]:
            try:
                activate_entry(entry, clone_dir, runtime.home, quiet=runtime.quiet)
                counts["success"] += 1
            except (RepoFileMissingError, DotctxSymlinkError, OSError) as e:
                _warn(runtime, f"Skipping {entry['dst']}: {e}")
                counts["failed"] += 1
        if counts["success"]:
            workspace["status"] = STATUS_ACTIVE
        runtime.index.save(index)
        _echo(
            runtime,
            f"Activated {counts['success']} dotfile(s), {counts['failed']} failed",
            typer.colors.GREEN if not counts["failed"] else typer.colors.YELLOW,
        )


@app.command()
def deactivate(ctx: typer.Context, address: AddressArg) -> None:
    """Replace dotfile symlinks with plain copies of the repository files."""
    runtime: Runtime = ctx.obj
    with handle_errors(runtime):
        target = _address(runtime, address)
        index = runtime.index.load()
        workspace = _require_workspace(index, target)
        clone_dir = Path(workspace["path"])

        if target.rel_path:
            entries: List[FileEntryDict] = [_require_entry(workspace, target.rel_path)]
        else:
            entries = workspace["files"]

        counts: OperationResultDict = {"success": 0, "failed": 0}
        for entry in entries:
            try:
                deactivate_entry(entry, clone_dir, runtime.home)
                counts["success"] += 1
            except OSError as e:
                _warn(runtime, f"Could not deactivate {entry['dst']}: {e}")
                counts["failed"] += 1

        if not any(entry.get("active") for entry in workspace["files"]):
            workspace["status"] = (
                STATUS_CLONED if (clone_dir / ".git").exists() else STATUS_INACTIVE
            )
        runtime.index.save(index)
        _echo(
            runtime, f"Deactivated {counts['success']} dotfile(s)", typer.colors.GREEN
        )
        if counts["failed"]:
            raise typer.Exit(code=1)


@app.command()
def restore(ctx: typer.Context, address: AddressArg) -> None:
    """Move the latest backup of a dotfile back into place."""
    runtime: Runtime = ctx.obj
    with handle_errors(runtime):
        target = _address(runtime, address)
        index = runtime.index.load()
        workspace = _require_workspace(index, target)
        entry = _require_entry(workspace, _require_path(target))

        restored = restore_entry(entry, runtime.home, quiet=runtime.quiet)
        if restored is None:
            return
        runtime.index.save(index)
        _echo(runtime, f"Restored {entry['src']} from {restored}", typer.colors.GREEN)


# ============================================================================
# REMOVAL COMMANDS
# ============================================================================


@app.command()
def remove(ctx: typer.Context, address: AddressArg) -> None:
    """Stop tracking a dotfile, leaving a plain copy in place."""
    runtime: Runtime = ctx.obj
    with handle_errors(runtime):
        target = _address(runtime, address)
        index = runtime.index.load()
        workspace = _require_workspace(index, target)
        entry = _require_entry(workspace, _require_path(target))

        deactivate_entry(entry, Path(workspace["path"]), runtime.home)
        workspace["files"].remove(entry)
        runtime.index.save(index)

        context_id = runtime.session.bound_context()
        if entry.get("docId") and context_id:
            try:
                with runtime.metadata_client(target.remote_key) as client:
                    client.remove_dotfile(context_id, entry["docId"])
            except RemoteUnavailableError as e:
                _warn(runtime, f"Could not remove dotfile from context: {e}")

        _echo(runtime, f"Removed {entry['src']}", typer.colors.GREEN)


@app.command()
def delete(
    ctx: typer.Context,
    address: AddressArg,
    yes: Annotated[
        bool, typer.Option("--yes", "-y", help="Do not ask for confirmation")
    ] = False,
) -> None:
    """Delete a dotfile from the workspace repository and stop tracking it."""
    runtime: Runtime = ctx.obj
    with handle_errors(runtime):
        target = _address(runtime, address)
        index = runtime.index.load()
        workspace = _require_workspace(index, target)
        entry = _require_entry(workspace, _require_path(target))

        if not yes and not typer.confirm(f"Delete {target.full}?"):
            typer.secho("Deletion cancelled.", fg=typer.colors.YELLOW)
            return

        clone_dir = Path(workspace["path"])
        deactivate_entry(entry, clone_dir, runtime.home)
        repo_file = clone_dir / entry["dst"]
        if repo_file.exists() or repo_file.is_symlink():
            remove_path(repo_file)
        workspace["files"].remove(entry)
        runtime.index.save(index)

        if entry.get("docId"):
            try:
                with runtime.metadata_client(target.remote_key) as client:
                    client.delete_dotfile(target.resource, entry["docId"])
            except RemoteUnavailableError as e:
                _warn(runtime, f"Could not delete dotfile document: {e}")

        _echo(runtime, f"Deleted {target.full}", typer.colors.GREEN)


# ============================================================================
# REPOSITORY HELPERS
# ============================================================================


@app.command()
def install_hooks(
    ctx: typer.Context,
    address: AddressArg,
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Overwrite an existing hook")
    ] = False,
) -> None:
    """Install the pre-commit hook that blocks encrypted paths."""
    runtime: Runtime = ctx.obj
    with handle_errors(runtime):
        clone_dir = _clone_dir(runtime, _address(runtime, address))
        _best_effort_hooks(runtime, clone_dir, force=force)


@app.command()
def encrypt(ctx: typer.Context, address: AddressArg) -> None:
    """Mark a dotfile as encrypted so it is never committed in plaintext."""
    runtime: Runtime = ctx.obj
    with handle_errors(runtime):
        target = _address(runtime, address)
        rel_path = _require_path(target)
        try:
            changed = mark_encrypted(_clone_dir(runtime, target), rel_path)
        except OSError as e:
            _warn(runtime, f"Could not mark {rel_path} as encrypted: {e}")
            return
        if changed:
            _echo(runtime, f"Marked {rel_path} as encrypted", typer.colors.GREEN)
        else:
            _echo(runtime, f"{rel_path} is already marked as encrypted")


@app.command()
def decrypt(ctx: typer.Context, address: AddressArg) -> None:
    """Remove the encrypted mark of a dotfile."""
    runtime: Runtime = ctx.obj
    with handle_errors(runtime):
        target = _address(runtime, address)
        rel_path = _require_path(target)
        try:
            changed = unmark_encrypted(_clone_dir(runtime, target), rel_path)
        except OSError as e:
            _warn(runtime, f"Could not unmark {rel_path}: {e}")
            return
        if changed:
            _echo(runtime, f"Unmarked {rel_path}", typer.colors.GREEN)
        else:
            _echo(runtime, f"{rel_path} is not marked as encrypted")


@app.command()
def cd(ctx: typer.Context, address: AddressArg) -> None:
    """Print the local clone directory of a workspace."""
    runtime: Runtime = ctx.obj
    with handle_errors(runtime):
        target = _address(runtime, address)
        typer.echo(str(_clone_dir(runtime, target) / target.rel_path))


if __name__ == "__main__":
    app()
