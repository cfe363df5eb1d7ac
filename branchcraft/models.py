"""Pydantic models shared across the conversation engine."""

from enum import Enum
from typing import Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["system", "user", "assistant"]
    content: str


class FileRecord(BaseModel):
    path: str
    content: str


class CodeBlock(BaseModel):
    label: str
    body: str


class EditSuggestion(BaseModel):
    """One file the model wants written, in the filePath/fileContent wire shape."""

    model_config = ConfigDict(populate_by_name=True)

    file_path: str = Field(alias="filePath")
    file_content: Optional[str] = Field(default=None, alias="fileContent")


class ExtractionResult(BaseModel, Generic[T]):
    """
    Outcome of a best-effort extractor.

    value is None when nothing usable was found; diagnostic then says why and raw
    keeps the text that was inspected.
    """

    value: Optional[T] = None
    diagnostic: str = ""
    raw: str = ""

    @property
    def ok(self) -> bool:
        return self.value is not None


class BranchRequest(BaseModel):
    feature: str
    languages: str = ""
    special_instructions: str = ""


class OrchestrationState(str, Enum):
    INIT = "init"
    FILE_DISCOVERY = "file_discovery"
    FILE_TRANSMISSION = "file_transmission"
    SUGGESTION_REQUEST = "suggestion_request"
    DONE = "done"


class OrchestrationResult(BaseModel):
    suggestions: List[EditSuggestion]
    requested_files: List[str] = Field(default_factory=list)
    missing_files: List[str] = Field(default_factory=list)
    raw_reply: str = ""
    policy: str = ""
    request_count: int = 0


def transcript_to_wire(messages: List[Message]) -> List[dict]:
    return [message.model_dump() for message in messages]
