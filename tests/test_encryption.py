"""Tests for the encrypted-path index."""

from pathlib import Path

import pytest

from dotctx.encryption import (
    encrypted_index_file,
    list_encrypted,
    mark_encrypted,
    unmark_encrypted,
)


@pytest.fixture
def clone_dir(tmp_path: Path) -> Path:
    return tmp_path / "dotfiles"


class TestMarkEncrypted:
    def test_mark_adds_to_index_and_gitignore(self, clone_dir: Path):
        assert mark_encrypted(clone_dir, "/ssh/config/") is True

        assert list_encrypted(clone_dir) == ["ssh/config"]
        assert (clone_dir / ".gitignore").read_text() == "ssh/config\n"

    def test_mark_is_idempotent(self, clone_dir: Path):
        mark_encrypted(clone_dir, "secrets.env")

        assert mark_encrypted(clone_dir, "secrets.env") is False

        assert list_encrypted(clone_dir) == ["secrets.env"]
        assert (clone_dir / ".gitignore").read_text().count("secrets.env") == 1

    def test_existing_gitignore_is_preserved(self, clone_dir: Path):
        clone_dir.mkdir()
        (clone_dir / ".gitignore").write_text("# local\n*.swp\n")

        mark_encrypted(clone_dir, "token")

        assert (clone_dir / ".gitignore").read_text() == "# local\n*.swp\ntoken\n"


class TestUnmarkEncrypted:
    def test_unmark_keeps_ignore_rule(self, clone_dir: Path):
        mark_encrypted(clone_dir, "a")
        mark_encrypted(clone_dir, "b")

        assert unmark_encrypted(clone_dir, "a") is True

        assert list_encrypted(clone_dir) == ["b"]
        assert "a" in (clone_dir / ".gitignore").read_text().splitlines()

    def test_unmark_unknown_path(self, clone_dir: Path):
        assert unmark_encrypted(clone_dir, "never") is False
        assert not encrypted_index_file(clone_dir).exists()

    def test_missing_index_is_empty(self, clone_dir: Path):
        assert list_encrypted(clone_dir) == []
