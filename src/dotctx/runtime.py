"""Per-invocation runtime shared by every subcommand."""

from pathlib import Path
from typing import Any, Callable, Dict, Optional

import typer
from typing_extensions import Protocol

from .config import get_config_value, get_paths, load_config
from .exceptions import RemoteUnavailableError
from .index import IndexStore
from .metadata import MetadataClient
from .session import SessionRegistry
from .vcs import DEFAULT_BRANCH, VcsGateway


class SecretReader(Protocol):
    def read_secret(self, prompt: str) -> str: ...


class PromptSecretReader:
    """Reads secrets from the terminal without echoing them."""

    def read_secret(self, prompt: str) -> str:
        return typer.prompt(prompt, hide_input=True)


MetadataFactory = Callable[[str, Optional[str]], MetadataClient]


class Runtime:
    """Paths, configuration and collaborators for one CLI invocation."""

    def __init__(
        self,
        paths: Dict[str, Path],
        config: Dict[str, Any],
        secret_reader: Optional[SecretReader] = None,
        metadata_factory: Optional[MetadataFactory] = None,
        quiet: bool = False,
        debug: bool = False,
    ) -> None:
        self.paths = paths
        self.config = config
        self.home = paths["home"]
        self.canvas_home = paths["canvas_home"]
        self.index = IndexStore(paths["index_file"], self.canvas_home)
        self.session = SessionRegistry(
            paths["remotes_file"], paths["session_file"], config
        )
        self.vcs = VcsGateway(
            default_branch=get_config_value(config, "git.defaultBranch")
            or DEFAULT_BRANCH,
            user_name=get_config_value(config, "git.userName", "dotctx"),
            user_email=get_config_value(config, "git.userEmail", "dotctx@localhost"),
        )
        self.secret_reader = secret_reader or PromptSecretReader()
        self.metadata_factory = metadata_factory or MetadataClient
        self.quiet = quiet
        self.debug = debug

    def metadata_client(self, remote_key: str) -> MetadataClient:
        """REST client for a configured remote."""
        base_url = self.session.api_base_url(remote_key)
        if base_url is None:
            raise RemoteUnavailableError(f"Remote not configured: {remote_key}")
        return self.metadata_factory(base_url, self.session.resolve_token(remote_key))


def build_runtime(
    home: Optional[Path] = None,
    secret_reader: Optional[SecretReader] = None,
    metadata_factory: Optional[MetadataFactory] = None,
    quiet: bool = False,
    debug: bool = False,
) -> Runtime:
    paths = get_paths(home)
    config = load_config(paths["config_file"])
    return Runtime(
        paths,
        config,
        secret_reader=secret_reader,
        metadata_factory=metadata_factory,
        quiet=quiet,
        debug=debug,
    )
