"""
File selection policies.

A policy decides how much of a requested file reaches the transcript: all of
it, nothing (declined by the user), a prefix, or a subset of labelled blocks.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Awaitable, Callable, List, Optional

from .config import BLOCK_SPLIT_THRESHOLD_CHARS, CHARS_PER_TOKEN, DEFAULT_TRUNCATE_CHARS
from .console import console
from .models import CodeBlock, FileRecord, Message
from .parsers import extract_code_blocks
from .prompts import SYSTEM_PROMPT, split_file_prompt
from .tokens import estimate_tokens

if TYPE_CHECKING:
    from .gateway import ModelGateway

ConfirmCallback = Callable[[str], Awaitable[bool]]
BlockChooser = Callable[[str, List[CodeBlock]], Awaitable[List[int]]]


class FileSelectionPolicy(ABC):
    name: str = ""

    @abstractmethod
    async def select(self, record: FileRecord, token_limit: int) -> Optional[str]:
        """Return the content to transmit for record, or None to skip the file."""


class SendAllPolicy(FileSelectionPolicy):
    name = "send-all"

    async def select(self, record: FileRecord, token_limit: int) -> Optional[str]:
        return record.content


class ConfirmEachPolicy(FileSelectionPolicy):
    name = "confirm-each"

    def __init__(self, confirm: ConfirmCallback):
        self.confirm = confirm

    async def select(self, record: FileRecord, token_limit: int) -> Optional[str]:
        if await self.confirm(record.path):
            return record.content
        console.print(f"[dim]Skipped {record.path}[/dim]")
        return None


class TruncatePolicy(FileSelectionPolicy):
    name = "truncate"

    def __init__(self, max_chars: int = DEFAULT_TRUNCATE_CHARS):
        self.max_chars = max_chars

    async def select(self, record: FileRecord, token_limit: int) -> Optional[str]:
        if len(record.content) <= self.max_chars:
            return record.content
        console.print(f"[dim]Truncated {record.path} to {self.max_chars} of {len(record.content)} characters[/dim]")
        return record.content[: self.max_chars] + "\n... (truncated)"


def split_to_fit(content: str, max_chars: int) -> List[str]:
    """Cut content into pieces of at most max_chars, breaking on line ends where possible."""
    pieces: List[str] = []
    current = ""
    for line in content.splitlines(keepends=True):
        while len(line) > max_chars:
            if current:
                pieces.append(current)
                current = ""
            pieces.append(line[:max_chars])
            line = line[max_chars:]
        if len(current) + len(line) > max_chars:
            pieces.append(current)
            current = ""
        current += line
    if current:
        pieces.append(current)
    return pieces


class BlockSelectionPolicy(FileSelectionPolicy):
    """
    Cut large files into labelled blocks and keep only the chosen ones.

    The split is requested in a throwaway conversation, so the full file never
    enters the run transcript. Files at or below threshold are sent whole. A
    file too large for one split request within token_limit is split in parts,
    one side request each, and the blocks of all parts are offered together.
    """

    name = "blocks"

    def __init__(
        self,
        gateway: "ModelGateway",
        choose: BlockChooser,
        threshold: int = BLOCK_SPLIT_THRESHOLD_CHARS,
    ):
        self.gateway = gateway
        self.choose = choose
        self.threshold = threshold

    async def select(self, record: FileRecord, token_limit: int) -> Optional[str]:
        if len(record.content) <= self.threshold:
            return record.content

        # Tokens left for file content once the persona and split instructions are counted
        content_budget = (
            token_limit - estimate_tokens(SYSTEM_PROMPT) - estimate_tokens(split_file_prompt(record.path, ""))
        )
        if content_budget <= 0:
            console.print(
                f"[yellow]⚠ Token budget too small to split {record.path}, "
                f"sending its first {self.threshold} characters.[/yellow]"
            )
            return record.content[: self.threshold] + "\n... (truncated)"

        parts = split_to_fit(record.content, content_budget * CHARS_PER_TOKEN)
        if len(parts) > 1:
            console.print(f"[dim]{record.path} is too large for one split request, sending it in {len(parts)} parts[/dim]")

        blocks: List[CodeBlock] = []
        for part in parts:
            side_transcript: List[Message] = [Message(role="system", content=SYSTEM_PROMPT)]
            await self.gateway.ask(side_transcript, split_file_prompt(record.path, part), token_limit)
            blocks.extend(extract_code_blocks(self.gateway.last_raw_reply).value or [])

        if not blocks:
            console.print(f"[yellow]⚠ Could not split {record.path} into blocks, sending it whole.[/yellow]")
            return record.content

        chosen = await self.choose(record.path, blocks)
        kept = [blocks[i].body for i in chosen if 0 <= i < len(blocks)]
        if not kept:
            console.print(f"[dim]No blocks kept for {record.path}[/dim]")
            return None
        return "\n".join(kept)
