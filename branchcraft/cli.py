"""Interactive entry point: collect the request, create the branch, run the conversation."""

import asyncio
import sys
from pathlib import Path
from typing import List

from prompt_toolkit import PromptSession
from prompt_toolkit.styles import Style as PromptStyle
from rich.panel import Panel
from rich.table import Table

from .config import Settings, ensure_settings
from .console import console
from .errors import BranchcraftError, MalformedReplyError, PartialApplyError, TransportError
from .files import apply_suggestions
from .gateway import ModelGateway
from .git import create_branch, is_git_repo, list_repo_files, suggest_branch_name
from .models import BranchRequest, CodeBlock, EditSuggestion
from .orchestrator import Orchestrator
from .selection import (
    BlockSelectionPolicy,
    ConfirmEachPolicy,
    FileSelectionPolicy,
    SendAllPolicy,
    TruncatePolicy,
)

PROMPT_STYLE = PromptStyle.from_dict({
    'prompt': '#0066ff bold',
})

POLICY_CHOICES = ("all", "confirm", "truncate", "blocks")


def _is_yes(answer: str, default: bool = True) -> bool:
    answer = answer.strip().lower()
    if not answer:
        return default
    return answer in ("y", "yes")


def parse_block_selection(answer: str, count: int) -> List[int]:
    """Turn '1,3' (1-based, blank meaning all) into zero-based block indices."""
    if not answer.strip():
        return list(range(count))
    chosen: List[int] = []
    for item in answer.split(","):
        item = item.strip()
        if item.isdigit() and 1 <= int(item) <= count and int(item) - 1 not in chosen:
            chosen.append(int(item) - 1)
    return chosen


def show_suggestions(suggestions: List[EditSuggestion]) -> None:
    table = Table(title="📝 Suggested Files", show_header=True, header_style="bold bright_blue", border_style="blue")
    table.add_column("File Path", style="bright_cyan", no_wrap=True)
    table.add_column("Lines", justify="right")
    for suggestion in suggestions:
        lines = str(len(suggestion.file_content.splitlines())) if suggestion.file_content else "[red]missing[/red]"
        table.add_row(suggestion.file_path, lines)
    console.print(table)


def build_policy(choice: str, session: PromptSession, gateway: ModelGateway) -> FileSelectionPolicy:
    async def confirm(path: str) -> bool:
        answer = await session.prompt_async(f"🔵 Send '{path}' to the model? (y/n, default y): ", default="y")
        return _is_yes(answer)

    async def choose(path: str, blocks: List[CodeBlock]) -> List[int]:
        table = Table(title=f"Blocks in {path}", show_header=True, header_style="bold bright_blue", border_style="blue")
        table.add_column("#", justify="right")
        table.add_column("Label", style="bright_cyan")
        table.add_column("Lines", justify="right")
        for i, block in enumerate(blocks, start=1):
            table.add_row(str(i), block.label, str(len(block.body.splitlines())))
        console.print(table)
        answer = await session.prompt_async("🔵 Blocks to keep (comma separated numbers, blank for all): ")
        return parse_block_selection(answer, len(blocks))

    if choice == "confirm":
        return ConfirmEachPolicy(confirm)
    if choice == "truncate":
        return TruncatePolicy()
    if choice == "blocks":
        return BlockSelectionPolicy(gateway, choose)
    return SendAllPolicy()


async def run_branch(session: PromptSession, settings: Settings, root: Path) -> int:
    feature = await session.prompt_async("What kind of content do you want your new branch to include? ")
    if not feature.strip():
        console.print("[yellow]Nothing requested. Bye.[/yellow]")
        return 0
    languages = await session.prompt_async("In what language(s) should the code be written? (comma separated) ")
    instructions = await session.prompt_async(
        "Is there anything special the model should know before generating the code? (Leave blank if not) "
    )

    suggested = suggest_branch_name(feature)
    branch_name = await session.prompt_async(
        f"Suggested branch name is \"{suggested}\". Press Enter to accept or type a new name: ", default=suggested
    )
    if not _is_yes(await session.prompt_async("Do you want to create this new branch? (y/n, default y): ")):
        console.print("[yellow]Branch creation cancelled.[/yellow]")
        return 0
    create_branch(branch_name.strip(), root)

    choice = (await session.prompt_async(
        f"How should requested files be sent? [{'/'.join(POLICY_CHOICES)}] (default all): "
    )).strip().lower() or "all"
    if choice not in POLICY_CHOICES:
        console.print(f"[yellow]⚠ Unknown choice '{choice}', sending files whole.[/yellow]")
        choice = "all"

    gateway = ModelGateway.from_settings(settings, log_dir=root)
    orchestrator = Orchestrator(
        gateway,
        settings.token_limit,
        policy=build_policy(choice, session, gateway),
        root=root,
        log_dir=root,
    )
    request = BranchRequest(feature=feature, languages=languages, special_instructions=instructions)
    candidates = list_repo_files(root)
    console.print(f"[dim]{len(candidates)} candidate file(s) in the repository[/dim]")

    result = await orchestrator.run(request, candidates)
    console.print(
        f"[dim]{result.request_count} model request(s), files sent with the '{result.policy}' policy[/dim]"
    )

    if result.missing_files:
        console.print(f"[yellow]⚠ Not found locally: {', '.join(result.missing_files)}[/yellow]")
    if not result.suggestions:
        console.print("[yellow]The model returned no suggestions.[/yellow]")
        return 0

    show_suggestions(result.suggestions)
    report = apply_suggestions(result.suggestions, root)
    console.print(f"[bold blue]✓[/bold blue] {len(report.written)} file(s) written on branch '{branch_name}'")
    report.raise_for_errors()
    return 0


def report_error(error: BranchcraftError) -> None:
    if isinstance(error, MalformedReplyError):
        console.print(f"[bold red]✗[/bold red] {error}")
        console.print(Panel(error.raw_reply or "(empty reply)", title="Raw reply", border_style="yellow"))
    elif isinstance(error, PartialApplyError):
        table = Table(title="Suggestions not applied", show_header=True, header_style="bold red", border_style="red")
        table.add_column("File Path", style="bright_cyan")
        table.add_column("Reason")
        for path, reason in error.failures:
            table.add_row(path or "<no path>", reason)
        console.print(table)
    elif isinstance(error, TransportError):
        console.print(f"[bold red]✗ Model request failed:[/bold red] {error}")
    else:
        console.print(f"[bold red]✗[/bold red] {error}")


def main() -> None:
    """Application entry point."""
    console.print(Panel.fit(
        "[bold bright_blue]🌱 branchcraft[/bold bright_blue]\n"
        "[dim]Describe a feature, get a new branch with the code for it.[/dim]",
        border_style="bright_blue"
    ))

    root = Path.cwd()
    if not is_git_repo(root):
        console.print("[bold red]✗[/bold red] The current directory is not a Git repository.")
        sys.exit(1)

    session: PromptSession = PromptSession(style=PROMPT_STYLE)
    try:
        settings = ensure_settings(lambda question: session.prompt(question))
        code = asyncio.run(run_branch(session, settings, root))
    except BranchcraftError as e:
        report_error(e)
        sys.exit(1)
    except (KeyboardInterrupt, EOFError):
        console.print("\n[yellow]⚠ Interrupted.[/yellow]")
        sys.exit(130)
    sys.exit(code)


if __name__ == "__main__":
    main()
