"""Resource address parsing.

Addresses have the form ``user@remote:workspace[/path]``. The short form
``workspace[/path]`` is completed with the session's bound remote.
"""

import re
from typing import NamedTuple, Optional, Tuple

from .exceptions import DotctxValidationError

ADDRESS_RE = re.compile(r"^([^@]+)@([^:]+):([^/]+)(.*)$")


class ResourceAddress(NamedTuple):
    user: str
    remote: str
    resource: str
    path: str = ""

    @property
    def remote_key(self) -> str:
        return f"{self.user}@{self.remote}"

    @property
    def workspace_key(self) -> str:
        """Key of the workspace in the dotfiles index."""
        return f"{self.remote_key}:{self.resource}"

    @property
    def rel_path(self) -> str:
        """Path inside the workspace without the leading slash."""
        return self.path.strip("/")

    @property
    def full(self) -> str:
        return f"{self.workspace_key}{self.path}"


def parse_full_address(text: str) -> Optional[ResourceAddress]:
    """Parse ``user@remote:resource[/path]``; return None if malformed."""
    match = ADDRESS_RE.match(text.strip())
    if not match:
        return None
    user, remote, resource, path = (part.strip() for part in match.groups())
    if not user or not remote or not resource:
        return None
    return ResourceAddress(user, remote, resource, path)


def parse_remote_key(remote_key: str) -> Optional[Tuple[str, str]]:
    """Split ``user@remote`` into its two parts."""
    parts = remote_key.split("@")
    if len(parts) != 2 or not parts[0].strip() or not parts[1].strip():
        return None
    return parts[0].strip(), parts[1].strip()


def parse_address(
    text: Optional[str], bound_remote: Optional[str] = None
) -> ResourceAddress:
    """Parse a dotfile address, falling back to the bound remote for short forms."""
    if not text:
        raise DotctxValidationError("Address is required")

    if "@" in text and ":" in text:
        address = parse_full_address(text)
        if address is None:
            raise DotctxValidationError(f"Invalid address format: {text}")
        return address

    if not bound_remote:
        raise DotctxValidationError(
            "No remote bound. Use the full address format user@remote:workspace "
            "or bind a remote first."
        )
    remote = parse_remote_key(bound_remote)
    if remote is None:
        raise DotctxValidationError(f"Invalid bound remote: {bound_remote}")

    workspace, _, rest = text.strip().partition("/")
    if not workspace:
        raise DotctxValidationError(f"Invalid address format: {text}")
    return ResourceAddress(remote[0], remote[1], workspace, f"/{rest}" if rest else "")


def resource_id(address_or_id: str) -> str:
    """Extract the bare resource id from an address, or return the id unchanged."""
    address = parse_full_address(address_or_id) if "@" in address_or_id else None
    return address.resource if address else address_or_id
