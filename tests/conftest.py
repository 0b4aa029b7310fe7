"""Shared pytest fixtures and configuration."""

import json
import tempfile
from pathlib import Path
from typing import Generator

import pytest
from helpers.mocks import FakeMetadataClient, FakeSecretReader, create_bare_remote

from dotctx.address import ResourceAddress
from dotctx.runtime import Runtime, build_runtime


@pytest.fixture
def temp_home(monkeypatch: pytest.MonkeyPatch) -> Generator[Path, None, None]:
    """Create a temporary home directory and point $HOME at it."""
    with tempfile.TemporaryDirectory() as tmpdir:
        home = Path(tmpdir).resolve()
        monkeypatch.setenv("HOME", str(home))
        monkeypatch.delenv("CANVAS_USER_HOME", raising=False)
        monkeypatch.delenv("DOTCTX_DEBUG", raising=False)
        yield home


@pytest.fixture
def remote_root(temp_home: Path) -> Path:
    """Directory standing in for the remote server; repos live below it."""
    root = temp_home / "server"
    root.mkdir()
    return root


@pytest.fixture
def address() -> ResourceAddress:
    return ResourceAddress("alice", "host", "work")


@pytest.fixture
def metadata() -> FakeMetadataClient:
    return FakeMetadataClient()


@pytest.fixture
def secret_reader() -> FakeSecretReader:
    return FakeSecretReader("s3cret")


@pytest.fixture
def runtime(
    temp_home: Path,
    remote_root: Path,
    metadata: FakeMetadataClient,
    secret_reader: FakeSecretReader,
) -> Runtime:
    """Runtime bound to alice@host with a local directory as its remote."""
    config_dir = temp_home / ".canvas" / "config"
    config_dir.mkdir(parents=True)
    (config_dir / "remotes.json").write_text(
        json.dumps({"alice@host": {"url": str(remote_root)}})
    )
    (config_dir / "session-cli.json").write_text(
        json.dumps({"boundRemote": "alice@host", "boundContext": "alice@host:ctx1"})
    )
    return build_runtime(
        home=temp_home,
        secret_reader=secret_reader,
        metadata_factory=metadata.factory,
        quiet=True,
    )


@pytest.fixture
def bare_remote(remote_root: Path, address: ResourceAddress) -> Path:
    """Bare repository for the workspace, holding one initial commit."""
    return create_bare_remote(remote_root, address.resource)


@pytest.fixture
def cloned_workspace(
    runtime: Runtime, address: ResourceAddress, bare_remote: Path
) -> Path:
    """Clone the workspace repository and record it in the index."""
    clone_dir = runtime.index.clone_dir(address)
    runtime.vcs.clone(str(bare_remote), clone_dir)
    runtime.index.upsert_workspace(address, {"status": "cloned"})
    return clone_dir
