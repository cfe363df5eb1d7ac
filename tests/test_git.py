"""Tests for the git helpers against a throwaway repository."""

from __future__ import annotations

import shutil
import subprocess

import pytest

from branchcraft.errors import GitError
from branchcraft.git import create_branch, is_git_repo, list_repo_files, read_extensions, suggest_branch_name

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


def test_suggest_branch_name() -> None:
    assert suggest_branch_name("Add a  health\tcheck") == "feature/add-a-health-check"


def test_read_extensions(tmp_path) -> None:
    assert read_extensions(tmp_path) == [".js", ".ts", ".py"]
    (tmp_path / ".ext").write_text("# sources\npy\n.TS, .tsx\n\n.py\n", encoding="utf-8")
    assert read_extensions(tmp_path) == [".py", ".ts", ".tsx"]


@pytest.fixture
def repo(tmp_path):
    def git(*args: str) -> None:
        subprocess.run(["git", *args], cwd=tmp_path, check=True, capture_output=True)

    git("init", "-q")
    git("config", "user.email", "dev@example.com")
    git("config", "user.name", "Dev")
    (tmp_path / "src").mkdir()
    for name in ("src/app.py", "src/view.ts", "README.md"):
        (tmp_path / name).write_text("x\n", encoding="utf-8")
    git("add", ".")
    git("commit", "-q", "-m", "init")
    return tmp_path


@requires_git
def test_list_repo_files_filters_by_extension(repo) -> None:
    assert is_git_repo(repo)
    assert list_repo_files(repo, [".py"]) == ["src/app.py"]
    assert sorted(list_repo_files(repo)) == ["src/app.py", "src/view.ts"]


@requires_git
def test_create_branch(repo) -> None:
    create_branch("feature/health", repo)
    current = subprocess.run(["git", "branch", "--show-current"], cwd=repo, capture_output=True, text=True)
    assert current.stdout.strip() == "feature/health"

    with pytest.raises(GitError):
        create_branch("feature/health", repo)


@requires_git
def test_not_a_repo(tmp_path) -> None:
    assert not is_git_repo(tmp_path)
    with pytest.raises(GitError):
        list_repo_files(tmp_path, [".py"])


def test_empty_branch_name_is_rejected(tmp_path) -> None:
    with pytest.raises(GitError):
        create_branch("  ", tmp_path)
