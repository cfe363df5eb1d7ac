"""Token estimation and budget trimming for conversation transcripts."""

import math
from typing import List, Optional

from .config import CHARS_PER_TOKEN
from .models import Message


def estimate_tokens(text: str) -> int:
    """Approximate token count: characters divided by CHARS_PER_TOKEN, rounded up."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def estimate_transcript_tokens(messages: List[Message]) -> int:
    return sum(estimate_tokens(msg.content) for msg in messages)


def trim_transcript(
    messages: List[Message], token_limit: int, anchor: Optional[Message] = None
) -> List[Message]:
    """
    Reduce a transcript so its estimated size fits within token_limit.

    The anchor message (by default the first user message) is always kept. The rest are
    considered from newest to oldest and kept while they fit; a message that
    does not fit is dropped whole and older, smaller ones may still be kept.

    Args:
        messages: Conversation in wire order
        token_limit: Maximum estimated tokens for the result
        anchor: Message that must survive trimming, matched by identity

    Returns:
        The input list itself when it already fits, otherwise a new list with
        the kept messages in their original order
    """
    if estimate_transcript_tokens(messages) <= token_limit:
        return messages

    if anchor is not None:
        anchor_index: Optional[int] = next((i for i, msg in enumerate(messages) if msg is anchor), None)
    else:
        anchor_index = next((i for i, msg in enumerate(messages) if msg.role == "user"), None)

    kept_indices: List[int] = []
    current_tokens = 0
    if anchor_index is not None:
        kept_indices.append(anchor_index)
        current_tokens = estimate_tokens(messages[anchor_index].content)

    for i in range(len(messages) - 1, -1, -1):
        if i == anchor_index:
            continue
        msg_tokens = estimate_tokens(messages[i].content)
        if current_tokens + msg_tokens <= token_limit:
            current_tokens += msg_tokens
            kept_indices.append(i)

    return [messages[i] for i in sorted(kept_indices)]
