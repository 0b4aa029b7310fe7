"""Thin wrapper around the git binary for workspace dotfile clones."""

import os
from pathlib import Path
from typing import List, NamedTuple, Optional, Sequence, Tuple, Union
from urllib.parse import urlsplit

from git import Git
from git.exc import GitCommandNotFound

from .exceptions import (
    DotctxValidationError,
    VcsError,
    VcsNotFoundError,
    VcsPermissionError,
)

DEFAULT_BRANCH = "main"
REMOTE_NAME = "origin"
DOTFILES_GIT_PATH = "rest/v2/workspaces/{workspace}/dotfiles/git/"
NOTHING_TO_PUSH_MARKERS = ("nothing to push", "up-to-date", "up to date")

PathLike = Union[str, Path]


class VcsResult(NamedTuple):
    stdout: str
    stderr: str


# ============================================================================
# URL HELPERS
# ============================================================================


def build_remote_url(base_url: str, workspace: str) -> str:
    """Git URL of a workspace's dotfiles repository on a remote."""
    base = base_url.rstrip("/")
    if base.endswith("/rest/v2"):
        base = base[: -len("/rest/v2")]
    return f"{base}/{DOTFILES_GIT_PATH.format(workspace=workspace)}"


def build_auth_url(url: str, token: Optional[str]) -> str:
    """Embed ``user:<token>`` credentials right after the scheme separator."""
    if not token:
        return url
    scheme = urlsplit(url).scheme.lower()
    if scheme not in ("http", "https"):
        raise DotctxValidationError(f"Only http(s) remotes are supported: {url}")
    return url.replace("://", f"://user:{token}@", 1)


def redact(text: str, token: Optional[str]) -> str:
    if token:
        return text.replace(token, "***")
    return text


def _redacted(error: VcsError, token: Optional[str]) -> VcsError:
    return type(error)(
        redact(str(error), token), code=error.code, stderr=redact(error.stderr, token)
    )


# ============================================================================
# GATEWAY
# ============================================================================


class VcsGateway:
    """Runs git subcommands and builds the dotfile workflows on top of them."""

    def __init__(
        self,
        default_branch: str = DEFAULT_BRANCH,
        user_name: str = "dotctx",
        user_email: str = "dotctx@localhost",
    ) -> None:
        self.default_branch = default_branch
        self.user_name = user_name
        self.user_email = user_email

    def _execute(
        self, subcommand: str, args: Sequence[str], cwd: Optional[PathLike]
    ) -> Tuple[int, str, str]:
        if cwd is not None:
            if not os.path.isdir(cwd):
                raise VcsNotFoundError(f"Working directory not found: {cwd}")
            if not os.access(cwd, os.R_OK | os.X_OK):
                raise VcsPermissionError(f"Working directory not accessible: {cwd}")

        git = Git(str(cwd) if cwd is not None else None)
        try:
            status, stdout, stderr = git.execute(
                ["git", subcommand, *args],
                with_extended_output=True,
                with_exceptions=False,
                env={"GIT_TERMINAL_PROMPT": "0"},
            )
        except GitCommandNotFound as e:
            raise VcsNotFoundError(f"git executable not found: {e}") from e
        except PermissionError as e:
            raise VcsPermissionError(f"Cannot execute git: {e}") from e
        return status, stdout, stderr

    def run(
        self,
        subcommand: str,
        args: Sequence[str] = (),
        cwd: Optional[PathLike] = None,
    ) -> VcsResult:
        """Run ``git <subcommand> <args>``; raise VcsError on a non-zero exit."""
        status, stdout, stderr = self._execute(subcommand, args, cwd)
        if status != 0:
            raise VcsError(
                f"Git command failed ({status}): {stderr.strip()}",
                code=status,
                stderr=stderr,
            )
        return VcsResult(stdout, stderr)

    def clone(
        self, url: str, target_dir: PathLike, token: Optional[str] = None
    ) -> None:
        target = Path(target_dir)
        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            self.run("clone", [url, str(target)])
        except VcsError as e:
            raise _redacted(e, token) from None
        self.run("config", ["user.name", self.user_name], cwd=target)
        self.run("config", ["user.email", self.user_email], cwd=target)

    def commit_all(self, repo_dir: PathLike, message: str) -> bool:
        """Stage everything and commit; return False if nothing was staged."""
        self.run("add", ["-A"], cwd=repo_dir)
        status, _, stderr = self._execute("diff", ["--cached", "--quiet"], repo_dir)
        if status == 0:
            return False
        if status != 1:
            raise VcsError(
                f"Git command failed ({status}): {stderr.strip()}",
                code=status,
                stderr=stderr,
            )
        self.run("commit", ["-m", message], cwd=repo_dir)
        return True

    def current_branch(self, repo_dir: PathLike) -> Optional[str]:
        status, stdout, _ = self._execute(
            "symbolic-ref", ["--short", "-q", "HEAD"], repo_dir
        )
        branch = stdout.strip()
        if status != 0 or not branch:
            return None
        return branch

    def remotes(self, repo_dir: PathLike) -> List[str]:
        return self.run("remote", cwd=repo_dir).stdout.split()

    def set_remote_url(self, repo_dir: PathLike, url: str) -> None:
        if REMOTE_NAME in self.remotes(repo_dir):
            self.run("remote", ["set-url", REMOTE_NAME, url], cwd=repo_dir)
        else:
            self.run("remote", ["add", REMOTE_NAME, url], cwd=repo_dir)

    def push(
        self,
        repo_dir: PathLike,
        remote_url: str,
        branch: Optional[str] = None,
        token: Optional[str] = None,
    ) -> None:
        self.set_remote_url(repo_dir, build_auth_url(remote_url, token))
        branch = branch or self.current_branch(repo_dir) or self.default_branch
        try:
            self.run("push", [REMOTE_NAME, branch], cwd=repo_dir)
        except VcsError as e:
            message = str(e).lower()
            if any(marker in message for marker in NOTHING_TO_PUSH_MARKERS):
                return
            raise _redacted(e, token) from None

    def pull(
        self,
        repo_dir: PathLike,
        remote_url: str,
        branch: Optional[str] = None,
        token: Optional[str] = None,
    ) -> None:
        self.set_remote_url(repo_dir, build_auth_url(remote_url, token))
        branch = branch or self.current_branch(repo_dir) or self.default_branch
        try:
            self.run("pull", [REMOTE_NAME, branch], cwd=repo_dir)
        except VcsError as e:
            raise _redacted(e, token) from None

    def status(self, repo_dir: PathLike) -> str:
        return self.run("status", ["--porcelain"], cwd=repo_dir).stdout
