"""
dotctx - a context-aware dotfiles manager.

dotctx tracks configuration files per remote workspace in a local git clone,
links them into place, and swaps the active set when the working context
changes.
"""

__version__ = "0.1.0"
__license__ = "GPL-3.0-or-later"

from .activation import activate, deactivate, restore
from .encryption import list_encrypted, mark_encrypted, unmark_encrypted
from .index import IndexStore
from .resolver import activate_for_context
from .runtime import Runtime, build_runtime
from .vcs import VcsGateway, build_auth_url, build_remote_url

__all__ = [
    "IndexStore",
    "VcsGateway",
    "build_auth_url",
    "build_remote_url",
    "activate",
    "deactivate",
    "restore",
    "activate_for_context",
    # Encryption marker
    "mark_encrypted",
    "unmark_encrypted",
    "list_encrypted",
    # Runtime
    "Runtime",
    "build_runtime",
]
