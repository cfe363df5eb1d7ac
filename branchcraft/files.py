"""Reading the repository snapshot and writing edit suggestions back to disk."""

import asyncio
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, Field
from thefuzz import fuzz, process as fuzzy_process

from .config import MIN_FUZZY_SCORE
from .console import console
from .errors import PartialApplyError
from .models import EditSuggestion, FileRecord

# -----------------------------------------------------------------------------
# SNAPSHOT
# -----------------------------------------------------------------------------


def is_binary_file(file_path: Path, peek_size: int = 1024) -> bool:
    """Check if a file is binary by looking for null bytes."""
    with open(file_path, "rb") as f:
        chunk = f.read(peek_size)
    return b"\0" in chunk


def _read_record(root: Path, path: str) -> Optional[FileRecord]:
    full_path = root / path
    try:
        if is_binary_file(full_path):
            console.print(f"[dim]Skipping binary file {path}[/dim]")
            return None
        return FileRecord(path=path, content=full_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as e:
        console.print(f"[yellow]⚠ Could not read '{path}': {e}[/yellow]")
        return None


async def load_snapshot(root: Path, paths: Iterable[str]) -> Dict[str, FileRecord]:
    """
    Read every candidate file concurrently.

    Unreadable and binary files are left out of the snapshot.

    Args:
        root: Repository root the paths are relative to
        paths: Candidate file paths

    Returns:
        Mapping of path to FileRecord, in the order the paths were given
    """
    paths = list(paths)
    records = await asyncio.gather(*(asyncio.to_thread(_read_record, root, path) for path in paths))
    return {record.path: record for record in records if record is not None}


def find_best_matching_path(requested: str, known_paths: Iterable[str], min_score: int = MIN_FUZZY_SCORE) -> Optional[str]:
    """
    Map a (possibly mangled) path from a reply onto a known snapshot path.

    Args:
        requested: Path as written by the model
        known_paths: Paths present in the snapshot
        min_score: The minimum fuzzy match score to consider a match

    Returns:
        The best known path, or None if no good match is found
    """
    known_paths = list(known_paths)
    if not requested or not known_paths:
        return None
    normalized = requested[2:] if requested.startswith("./") else requested
    if normalized in known_paths:
        return normalized
    best = fuzzy_process.extractOne(normalized, known_paths, scorer=fuzz.ratio, score_cutoff=min_score)
    return best[0] if best else None


# -----------------------------------------------------------------------------
# SUGGESTION APPLIER
# -----------------------------------------------------------------------------


class ApplyReport(BaseModel):
    written: List[str] = Field(default_factory=list)
    errors: List[Tuple[str, str]] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def raise_for_errors(self) -> None:
        if self.errors:
            raise PartialApplyError(list(self.errors))


def _resolve_target(root: Path, file_path: str) -> Path:
    path = Path(file_path)
    if any(part.startswith("~") for part in path.parts):
        raise ValueError("Home directory references not allowed")
    resolved_root = root.resolve()
    target = (resolved_root / path).resolve()
    if target != resolved_root and resolved_root not in target.parents:
        raise ValueError("Path escapes the repository root")
    return target


def apply_suggestions(suggestions: Iterable[EditSuggestion], root: Optional[Path] = None) -> ApplyReport:
    """
    Write each suggestion to disk in order, overwriting existing files.

    Items are independent: a suggestion without content, or one that cannot be
    written, is recorded in the report and the batch continues. Nothing is
    rolled back.

    Args:
        suggestions: Edit suggestions in the order the model returned them
        root: Directory relative paths are resolved against (default: cwd)

    Returns:
        ApplyReport listing written paths and (path, reason) failures
    """
    root = root or Path.cwd()
    report = ApplyReport()

    for suggestion in suggestions:
        file_path = suggestion.file_path
        if not suggestion.file_content:
            console.print(f"[bold red]✗[/bold red] No file content received for '[bright_cyan]{file_path}[/bright_cyan]'")
            report.errors.append((file_path, "no file content received"))
            continue
        try:
            target = _resolve_target(root, file_path)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(suggestion.file_content, encoding="utf-8")
        except (OSError, ValueError) as e:
            console.print(f"[bold red]✗[/bold red] Could not write '[bright_cyan]{file_path}[/bright_cyan]': {e}")
            report.errors.append((file_path, str(e)))
            continue
        console.print(f"[bold blue]✓[/bold blue] Wrote file '[bright_cyan]{file_path}[/bright_cyan]'")
        report.written.append(file_path)

    return report
