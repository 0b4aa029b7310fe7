"""Git hooks installed into workspace clones."""

import stat
from pathlib import Path

from .encryption import ENCRYPTED_INDEX_PATH
from .exceptions import CloneMissingError

HOOK_MARKER = "# managed by dotctx"

PRE_COMMIT_HOOK = f"""#!/bin/sh
{HOOK_MARKER}
# Refuse to commit paths listed in the encrypted index.
index="$(git rev-parse --show-toplevel)/{ENCRYPTED_INDEX_PATH.as_posix()}"
[ -f "$index" ] || exit 0
status=0
while IFS= read -r path; do
    [ -n "$path" ] || continue
    if grep -Fxq -- "$path" "$index"; then
        echo "dotctx: refusing to commit encrypted path: $path" >&2
        status=1
    fi
done <<STAGED
$(git -c core.quotepath=off diff --cached --name-only --diff-filter=ACMR)
STAGED
exit $status
"""


def install_hooks(clone_dir: Path, force: bool = False) -> Path:
    """Write the pre-commit hook into the clone and return its path.

    An existing hook not written by dotctx is kept unless ``force`` is set.
    """
    hooks_dir = clone_dir / ".git" / "hooks"
    if not (clone_dir / ".git").is_dir():
        raise CloneMissingError(f"Not a git clone: {clone_dir}")

    hook = hooks_dir / "pre-commit"
    if hook.exists() and not force and HOOK_MARKER not in hook.read_text():
        raise FileExistsError(f"A pre-commit hook already exists: {hook}")

    hooks_dir.mkdir(parents=True, exist_ok=True)
    hook.write_text(PRE_COMMIT_HOOK)
    hook.chmod(hook.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return hook
