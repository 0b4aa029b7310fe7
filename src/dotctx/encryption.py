"""Encryption marker: paths kept out of plaintext version control.

The encrypted index is a newline-delimited list of repository-relative paths
stored inside the clone. Marking a path also adds it to the clone's
``.gitignore``; unmarking leaves the ignore rule in place.
"""

from pathlib import Path
from typing import List

ENCRYPTED_INDEX_PATH = Path(".dotctx") / "encrypted"
IGNORE_FILENAME = ".gitignore"


def _read_lines(path: Path) -> List[str]:
    if not path.exists():
        return []
    return [line.strip() for line in path.read_text().splitlines() if line.strip()]


def _write_lines(path: Path, lines: List[str]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("".join(f"{line}\n" for line in lines))


def _normalize(rel_path: str) -> str:
    return Path(rel_path.strip()).as_posix().strip("/")


def encrypted_index_file(clone_dir: Path) -> Path:
    return clone_dir / ENCRYPTED_INDEX_PATH


def list_encrypted(clone_dir: Path) -> List[str]:
    return _read_lines(encrypted_index_file(clone_dir))


def _add_line(path: Path, value: str) -> bool:
    # Existing lines are kept verbatim; comments and blanks in .gitignore survive
    lines = path.read_text().splitlines() if path.exists() else []
    if value in (line.strip() for line in lines):
        return False
    lines.append(value)
    _write_lines(path, lines)
    return True


def mark_encrypted(clone_dir: Path, rel_path: str) -> bool:
    """Add a path to the encrypted index and the ignore file.

    Returns True if the encrypted index changed.
    """
    value = _normalize(rel_path)
    added = _add_line(encrypted_index_file(clone_dir), value)
    _add_line(clone_dir / IGNORE_FILENAME, value)
    return added


def unmark_encrypted(clone_dir: Path, rel_path: str) -> bool:
    """Remove a path from the encrypted index; the ignore rule stays."""
    value = _normalize(rel_path)
    index_file = encrypted_index_file(clone_dir)
    lines = _read_lines(index_file)
    if value not in lines:
        return False
    _write_lines(index_file, [line for line in lines if line != value])
    return True
