"""
Fakes and repository fixtures for dotctx tests.

The fakes stand in for collaborators that would otherwise talk to a
terminal or a remote service; git is always real.
"""

import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from git import Repo

from dotctx.exceptions import RemoteUnavailableError
from dotctx.metadata import RemoteDotfile
from dotctx.vcs import build_remote_url


class FakeSecretReader:
    """Secret reader returning a fixed value and recording the prompts."""

    def __init__(self, secret: str):
        self.secret = secret
        self.prompts: List[str] = []

    def read_secret(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.secret


class FakeMetadataClient:
    """In-memory metadata service.

    ``factory`` has the signature of the runtime's client factory and always
    hands out this instance, so tests can inspect what was called.
    """

    def __init__(self):
        self.context_documents: Dict[str, List[RemoteDotfile]] = {}
        self.error: Optional[RemoteUnavailableError] = None
        self.next_doc_id: Optional[str] = None
        self.connections: List[Tuple[str, Optional[str]]] = []
        self.created: List[Tuple[str, RemoteDotfile, Optional[str]]] = []
        self.removed: List[Tuple[str, str]] = []
        self.deleted: List[Tuple[str, str]] = []
        self.initialized: List[str] = []

    def factory(self, base_url: str, token: Optional[str]) -> "FakeMetadataClient":
        self.connections.append((base_url, token))
        return self

    def __enter__(self) -> "FakeMetadataClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        pass

    def _check(self) -> None:
        if self.error is not None:
            raise self.error

    def get_dotfiles_by_context(self, context_id: str) -> List[RemoteDotfile]:
        self._check()
        return list(self.context_documents.get(context_id, []))

    def create_dotfile(
        self,
        workspace: str,
        dotfile: RemoteDotfile,
        context_spec: Optional[str] = None,
    ) -> Optional[str]:
        self._check()
        self.created.append((workspace, dotfile, context_spec))
        return self.next_doc_id

    def remove_dotfile(self, context_id: str, doc_id: str) -> None:
        self._check()
        self.removed.append((context_id, doc_id))

    def delete_dotfile(self, workspace: str, doc_id: str) -> None:
        self._check()
        self.deleted.append((workspace, doc_id))

    def init_dotfiles(self, workspace: str) -> Dict[str, Any]:
        self._check()
        self.initialized.append(workspace)
        return {"status": "success"}

    def dotfiles_status(self, workspace: str) -> Dict[str, Any]:
        self._check()
        return {"branch": "main"}


def configure_identity(repo: Repo) -> None:
    with repo.config_writer() as git_config:
        git_config.set_value("user", "name", "Test User")
        git_config.set_value("user", "email", "test@example.com")


def create_temp_git_repo(path: Optional[Path] = None) -> Path:
    """Create a Git repository with one commit on ``main``."""
    repo_dir = path or Path(tempfile.mkdtemp())
    repo = Repo.init(repo_dir, initial_branch="main")
    configure_identity(repo)

    readme = repo_dir / "README.md"
    readme.write_text("# Dotfiles")
    repo.index.add(["README.md"])
    repo.index.commit("Initial commit")
    return repo_dir


def create_bare_remote(remote_root: Path, workspace: str) -> Path:
    """Create the bare repository a workspace URL under ``remote_root`` points to."""
    bare_dir = Path(build_remote_url(str(remote_root), workspace))
    Repo.init(bare_dir, bare=True, initial_branch="main")

    seed_dir = create_temp_git_repo(remote_root / f".seed-{workspace}")
    seed = Repo(seed_dir)
    seed.create_remote("origin", str(bare_dir))
    seed.remote("origin").push("main")
    return bare_dir


def make_workspace(runtime: Any, address: Any, files: Dict[str, str]) -> Path:
    """Record a workspace whose clone directory holds ``files``; no git."""
    clone_dir = runtime.index.clone_dir(address)
    clone_dir.mkdir(parents=True, exist_ok=True)
    for rel_path, content in files.items():
        repo_file = clone_dir / rel_path
        repo_file.parent.mkdir(parents=True, exist_ok=True)
        repo_file.write_text(content)
    runtime.index.upsert_workspace(address, {"status": "cloned"})
    return clone_dir
