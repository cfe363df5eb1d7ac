"""Single point of contact with the remote chat-completion service."""

import json
from pathlib import Path
from typing import Any, List, Optional

from openai import AsyncOpenAI, OpenAIError

from .config import DEFAULT_MODEL, DEFAULT_TEMPERATURE, TRANSCRIPT_LOG_NAME, Settings
from .console import console
from .errors import TransportError
from .models import Message, transcript_to_wire
from .tokens import estimate_transcript_tokens, trim_transcript


def unquote_reply(text: str) -> str:
    """Strip surrounding whitespace and one pair of enclosing double quotes."""
    text = text.strip()
    if len(text) >= 2 and text.startswith('"') and text.endswith('"'):
        text = text[1:-1]
    return text


def normalize_reply(text: str) -> str:
    """
    Clean up a raw reply before it is stored in the transcript.

    On top of unquote_reply, escaped backslashes are collapsed. JSON payloads
    must be parsed from the unquoted text instead, where `\\\\` is still a
    valid escape.
    """
    return unquote_reply(text.strip().replace("\\\\", "\\"))


class ModelGateway:
    """
    Sends transcripts to the model and records every exchange.

    The transcript passed in is the authoritative history: it is trimmed only
    for transmission, and the normalized reply is appended to it as an
    assistant message. The reply before backslash collapsing is kept in
    last_raw_reply.
    """

    def __init__(
        self,
        client: Any,
        model: str = DEFAULT_MODEL,
        temperature: float = DEFAULT_TEMPERATURE,
        log_dir: Optional[Path] = None,
    ):
        self.client = client
        self.model = model
        self.temperature = temperature
        self.log_path = (log_dir or Path.cwd()) / TRANSCRIPT_LOG_NAME
        self.request_count = 0
        self.last_raw_reply = ""

    @classmethod
    def from_settings(cls, settings: Settings, log_dir: Optional[Path] = None) -> "ModelGateway":
        client = AsyncOpenAI(api_key=settings.api_key, base_url=settings.base_url)
        return cls(client, model=settings.model, log_dir=log_dir)

    async def ask(
        self, transcript: List[Message], prompt: str, token_limit: int, anchor: Optional[Message] = None
    ) -> str:
        transcript.append(Message(role="user", content=prompt))
        return await self.send(transcript, token_limit, anchor=anchor)

    async def send(self, transcript: List[Message], token_limit: int, anchor: Optional[Message] = None) -> str:
        """
        Send the transcript (trimmed to token_limit) and return the normalized reply.

        Args:
            transcript: Conversation history, extended in place with the reply
            token_limit: Maximum estimated tokens per request
            anchor: Message trimming must keep, defaults to the first user message

        Returns:
            Normalized reply text

        Raises:
            TransportError: If the request fails for any reason
        """
        outgoing = trim_transcript(transcript, token_limit, anchor=anchor)
        if outgoing is not transcript:
            console.print(
                f"[dim]Context trimmed: {len(transcript)} → {len(outgoing)} messages, "
                f"~{estimate_transcript_tokens(transcript)} → ~{estimate_transcript_tokens(outgoing)} tokens[/dim]"
            )

        self.request_count += 1
        try:
            with console.status(f"[bold yellow]{self.model} is thinking...[/bold yellow]", spinner="dots"):
                response = await self.client.chat.completions.create(
                    model=self.model,
                    messages=transcript_to_wire(outgoing),
                    temperature=self.temperature,
                )
        except OpenAIError as e:
            raise TransportError(f"Request to {self.model} failed: {e}") from e

        content = response.choices[0].message.content or ""
        self.last_raw_reply = unquote_reply(content)
        text = normalize_reply(content)
        transcript.append(Message(role="assistant", content=text))
        self.write_log(transcript)
        return text

    def write_log(self, transcript: List[Message]) -> None:
        self.log_path.write_text(json.dumps(transcript_to_wire(transcript), indent=2), encoding="utf-8")
