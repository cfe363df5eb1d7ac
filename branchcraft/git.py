"""Git repository helpers: detection, file listing and branch creation."""

import re
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence

from .config import DEFAULT_EXTENSIONS, EXTENSIONS_FILE_NAME
from .console import console
from .errors import GitError


def _git(args: List[str], root: Path) -> subprocess.CompletedProcess:
    return subprocess.run(["git", *args], cwd=str(root), capture_output=True, text=True)


def is_git_repo(root: Optional[Path] = None) -> bool:
    try:
        res = _git(["rev-parse", "--is-inside-work-tree"], root or Path.cwd())
    except FileNotFoundError:
        return False
    return res.returncode == 0 and res.stdout.strip() == "true"


def read_extensions(root: Optional[Path] = None) -> List[str]:
    """
    Read the extension allow-list from the repository's .ext file.

    Extensions may be one per line or comma separated; '#' starts a comment and
    a missing leading dot is added. Without a .ext file the defaults are used.

    Returns:
        Lower-cased extensions such as ['.py', '.ts']
    """
    ext_path = (root or Path.cwd()) / EXTENSIONS_FILE_NAME
    try:
        text = ext_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return list(DEFAULT_EXTENSIONS)

    extensions: List[str] = []
    for line in text.splitlines():
        line = line.split("#", 1)[0]
        for item in line.split(","):
            item = item.strip().lower()
            if not item:
                continue
            if not item.startswith("."):
                item = "." + item
            if item not in extensions:
                extensions.append(item)
    return extensions or list(DEFAULT_EXTENSIONS)


def list_repo_files(root: Optional[Path] = None, extensions: Optional[Sequence[str]] = None) -> List[str]:
    """
    List tracked files whose extension is in the allow-list.

    Raises:
        GitError: If git ls-files fails
    """
    root = root or Path.cwd()
    extensions = tuple(ext.lower() for ext in (extensions if extensions is not None else read_extensions(root)))
    try:
        res = _git(["ls-files"], root)
    except FileNotFoundError as e:
        raise GitError(f"git is not installed: {e}") from e
    if res.returncode != 0:
        raise GitError(f"git ls-files failed: {res.stderr.strip()}")
    return [line for line in res.stdout.splitlines() if line and line.lower().endswith(extensions)]


def suggest_branch_name(feature: str) -> str:
    slug = re.sub(r"\s+", "-", feature.strip()).lower()
    return f"feature/{slug}"


def create_branch(branch_name: str, root: Optional[Path] = None) -> None:
    """
    Create and switch to a new branch.

    Raises:
        GitError: If the branch name is empty or git refuses the checkout
    """
    if not branch_name.strip():
        raise GitError("Branch name empty.")
    try:
        res = _git(["checkout", "-b", branch_name], root or Path.cwd())
    except FileNotFoundError as e:
        raise GitError(f"git is not installed: {e}") from e
    if res.returncode != 0:
        raise GitError(f"Could not create branch '{branch_name}': {res.stderr.strip()}")
    console.print(f"[green]✓ Created & switched to new branch '{branch_name}'[/green]")
