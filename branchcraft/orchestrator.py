"""
Conversation orchestration for one branch-creation run.

The run moves through INIT -> FILE_DISCOVERY -> FILE_TRANSMISSION ->
SUGGESTION_REQUEST -> DONE exactly once. The Orchestrator instance owns the
transcript; nothing is shared between runs.
"""

from pathlib import Path
from typing import Dict, List, Optional

from .config import CONVERSATION_LOG_NAME
from .console import console
from .errors import MalformedReplyError, MissingFileContentError
from .files import find_best_matching_path, load_snapshot
from .gateway import ModelGateway
from .models import (
    BranchRequest,
    EditSuggestion,
    FileRecord,
    Message,
    OrchestrationResult,
    OrchestrationState,
)
from .parsers import extract_file_list, extract_suggestions
from .prompts import (
    SENDING_FILES_PROMPT,
    SYSTEM_PROMPT,
    feature_prompt,
    file_content_prompt,
    file_list_prompt,
    instruction_prompt,
    suggestions_prompt,
)
from .selection import FileSelectionPolicy, SendAllPolicy


class Orchestrator:
    def __init__(
        self,
        gateway: ModelGateway,
        token_limit: int,
        policy: Optional[FileSelectionPolicy] = None,
        root: Optional[Path] = None,
        log_dir: Optional[Path] = None,
        acknowledge_each: bool = True,
    ):
        self.gateway = gateway
        self.token_limit = token_limit
        self.policy = policy or SendAllPolicy()
        self.root = root or Path.cwd()
        self.log_path = (log_dir or Path.cwd()) / CONVERSATION_LOG_NAME
        self.acknowledge_each = acknowledge_each

        self.state = OrchestrationState.INIT
        self.transcript: List[Message] = []
        self.snapshot: Dict[str, FileRecord] = {}
        self.requested_files: List[str] = []
        self.missing: List[MissingFileContentError] = []
        self._file_list_message: Optional[Message] = None
        self._feature_message: Optional[Message] = None

    async def run(self, request: BranchRequest, candidate_files: List[str]) -> OrchestrationResult:
        """
        Drive the whole conversation and return the parsed edit suggestions.

        Args:
            request: What the new branch should contain
            candidate_files: Repository paths the model may ask for

        Returns:
            OrchestrationResult with suggestions in the order the model gave them

        Raises:
            TransportError: If any model request fails
            MalformedReplyError: If the final reply holds no valid suggestion array
        """
        if self.state is not OrchestrationState.INIT or self.transcript:
            raise RuntimeError("An Orchestrator instance can only run once")

        self.snapshot = await load_snapshot(self.root, candidate_files)
        self._seed_transcript(request, candidate_files)

        self.state = OrchestrationState.FILE_DISCOVERY
        requested = await self._discover_files()

        self.state = OrchestrationState.FILE_TRANSMISSION
        await self._transmit_files(requested)
        self._purge_file_list()

        self.state = OrchestrationState.SUGGESTION_REQUEST
        reply, suggestions = await self._request_suggestions(request)

        self.state = OrchestrationState.DONE
        self.write_conversation_log(reply)
        return OrchestrationResult(
            suggestions=suggestions,
            requested_files=list(self.requested_files),
            missing_files=[error.path for error in self.missing],
            raw_reply=reply,
            policy=self.policy.name,
            request_count=self.gateway.request_count,
        )

    def _seed_transcript(self, request: BranchRequest, candidate_files: List[str]) -> None:
        self.transcript.append(Message(role="system", content=SYSTEM_PROMPT))
        if request.special_instructions.strip():
            self.transcript.append(Message(role="user", content=instruction_prompt(request.special_instructions)))
        self._feature_message = Message(role="user", content=feature_prompt(request.feature))
        self.transcript.append(self._feature_message)
        self._file_list_message = Message(role="user", content=file_list_prompt(candidate_files))
        self.transcript.append(self._file_list_message)

    async def _discover_files(self) -> List[str]:
        reply = await self.gateway.send(self.transcript, self.token_limit, anchor=self._feature_message)
        result = extract_file_list(reply)
        if not result.value:
            console.print(f"[yellow]⚠ {result.diagnostic} Continuing without file contents.[/yellow]")
            return []
        # Keep first occurrence order, drop repeats
        self.requested_files = list(dict.fromkeys(result.value))
        console.print(f"[dim]Model requested {len(self.requested_files)} file(s): {', '.join(self.requested_files)}[/dim]")
        return self.requested_files

    def _lookup(self, requested: str) -> Optional[FileRecord]:
        if requested in self.snapshot:
            return self.snapshot[requested]
        match = find_best_matching_path(requested, self.snapshot.keys())
        if match:
            console.print(f"[dim]Resolved '{requested}' to '{match}'[/dim]")
            return self.snapshot[match]
        return None

    async def _transmit_files(self, requested: List[str]) -> None:
        records: Dict[str, FileRecord] = {}
        for path in requested:
            record = self._lookup(path)
            if record is None:
                error = MissingFileContentError(path)
                console.print(f"[yellow]⚠ {error}, skipping[/yellow]")
                self.missing.append(error)
                continue
            # Two requested names can resolve to the same file
            records.setdefault(record.path, record)

        if not records:
            return

        if self.acknowledge_each:
            await self.gateway.ask(
                self.transcript, SENDING_FILES_PROMPT, self.token_limit, anchor=self._feature_message
            )

        for record in records.values():
            content = await self.policy.select(record, self.token_limit)
            if content is None:
                continue
            prompt = file_content_prompt(record.path, content, acknowledge=self.acknowledge_each)
            if self.acknowledge_each:
                console.print(f"[dim]Sending file content for {record.path}[/dim]")
                await self.gateway.ask(self.transcript, prompt, self.token_limit, anchor=self._feature_message)
            else:
                self.transcript.append(Message(role="user", content=prompt))

    def _purge_file_list(self) -> None:
        if self._file_list_message is None:
            return
        self.transcript = [msg for msg in self.transcript if msg is not self._file_list_message]
        self._file_list_message = None

    async def _request_suggestions(self, request: BranchRequest):
        prompt = suggestions_prompt(request.feature, request.languages)
        await self.gateway.ask(self.transcript, prompt, self.token_limit, anchor=self._feature_message)
        # The transcript copy of the reply has its backslashes collapsed
        reply = self.gateway.last_raw_reply
        result = extract_suggestions(reply)
        if result.value is None:
            self.write_conversation_log(reply)
            raise MalformedReplyError(result.diagnostic.split("\n", 1)[0], raw_reply=reply)
        suggestions: List[EditSuggestion] = result.value
        return reply, suggestions

    def write_conversation_log(self, final_reply: str) -> None:
        sections = [f"[{msg.role}]\n{msg.content}" for msg in self.transcript]
        sections.append(f"[final reply]\n{final_reply}")
        sections.append("[requested files]\n" + "\n".join(self.requested_files))
        self.log_path.write_text("\n\n".join(sections) + "\n", encoding="utf-8")
