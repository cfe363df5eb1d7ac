"""
Best-effort extractors for model replies.

Replies are free-form text from a non-deterministic source, so none of these
functions raise on bad input. Each returns an ExtractionResult and callers
decide what a missing value means for their step.
"""

import json
import re
from typing import List

from pydantic import ValidationError

from .models import CodeBlock, EditSuggestion, ExtractionResult

FENCE = "```"

_FENCED_BLOCK_RE = re.compile(r"```([\s\S]*?)```")
_JSON_SPAN_RE = re.compile(r"(\{[\s\S]*\}|\[[\s\S]*\])")
_LABEL_RE = re.compile(r"^([^(]*)\(")

# Wrapping characters models like to put around file names
_ENTRY_NOISE = "`'\" "


def extract_file_list(text: str) -> ExtractionResult:
    """
    Split a "which files are relevant" reply on commas.

    Entries are not checked against the repository; unknown paths surface later
    when they are looked up in the file snapshot.
    """
    # A closing period is sentence punctuation, not part of the file name
    entries = [entry.strip().rstrip(".").strip(_ENTRY_NOISE) for entry in text.split(",")]
    files = [entry for entry in entries if entry]
    if not files:
        return ExtractionResult(value=[], diagnostic="Reply did not name any files.", raw=text)
    return ExtractionResult(value=files, raw=text)


def extract_code_blocks(text: str) -> ExtractionResult:
    """
    Split a reply into its fenced blocks, in document order.

    The first line inside each fence (normally a language tag) is dropped. A
    reply without fences yields an empty list, not a failure.

    Args:
        text: Raw reply text

    Returns:
        ExtractionResult whose value is a list of CodeBlock
    """
    blocks: List[CodeBlock] = []
    for match in _FENCED_BLOCK_RE.finditer(text):
        inner = match.group(1)
        body = inner.split("\n", 1)[1] if "\n" in inner else ""
        blocks.append(CodeBlock(label=derive_label(body), body=body))

    if not blocks:
        return ExtractionResult(value=[], diagnostic="No fenced blocks found.", raw=text)
    return ExtractionResult(value=blocks, raw=text)


def derive_label(body: str) -> str:
    """
    Best-effort name for a code block.

    `def handle(x):` -> `def handle`, `const run = (a) =>` -> `const run`;
    a block without parentheses is labelled by its first line.
    """
    match = _LABEL_RE.search(body)
    if match:
        label = match.group(1)
        if "=" in label:
            label = label.split("=", 1)[0]
        return label.strip()
    return body.split("\n", 1)[0].strip()


def _isolate_fenced_body(text: str) -> str:
    match = _FENCED_BLOCK_RE.search(text)
    return match.group(1) if match else text


def extract_suggestions(text: str) -> ExtractionResult:
    """
    Parse the edit-suggestion JSON array out of a reply.

    When the reply contains a fence, only the first fenced body is searched.
    The payload is the greedy first-to-last [...] or {...} span; it must be a
    JSON array of objects carrying a string filePath.

    Args:
        text: Raw reply text

    Returns:
        ExtractionResult with a list of EditSuggestion, or value None and a
        diagnostic that includes the raw reply
    """
    candidate = _isolate_fenced_body(text) if FENCE in text else text

    match = _JSON_SPAN_RE.search(candidate)
    if not match:
        return ExtractionResult(
            diagnostic=f"Failed to extract a JSON string from the response:\n{text}",
            raw=text,
        )

    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        return ExtractionResult(
            diagnostic=f"Error parsing JSON ({e}). Raw response:\n{text}",
            raw=text,
        )

    if not isinstance(payload, list):
        return ExtractionResult(
            diagnostic=f"Expected a JSON array of suggestions, got {type(payload).__name__}:\n{text}",
            raw=text,
        )

    suggestions: List[EditSuggestion] = []
    for index, item in enumerate(payload):
        if not isinstance(item, dict):
            return ExtractionResult(
                diagnostic=f"Suggestion {index} is not an object:\n{text}",
                raw=text,
            )
        try:
            suggestions.append(EditSuggestion.model_validate(item))
        except ValidationError as e:
            return ExtractionResult(
                diagnostic=f"Suggestion {index} is invalid ({e.error_count()} error(s)):\n{text}",
                raw=text,
            )

    return ExtractionResult(value=suggestions, raw=text)
