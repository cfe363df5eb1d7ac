"""Error types raised or recorded while building a branch."""

from typing import List, Tuple


class BranchcraftError(Exception):
    """Base class for every error branchcraft reports to the user."""


class ConfigError(BranchcraftError):
    pass


class GitError(BranchcraftError):
    pass


class TransportError(BranchcraftError):
    """The remote model call failed (network, auth, quota). Never retried."""


class MalformedReplyError(BranchcraftError):
    """A reply did not contain the structure the current step expected."""

    def __init__(self, message: str, raw_reply: str):
        super().__init__(message)
        self.raw_reply = raw_reply


class MissingFileContentError(BranchcraftError):
    """A requested path has no entry in the local file snapshot."""

    def __init__(self, path: str):
        super().__init__(f"No local content found for '{path}'")
        self.path = path


class PartialApplyError(BranchcraftError):
    """Some edit suggestions could not be written; the rest were applied."""

    def __init__(self, failures: List[Tuple[str, str]]):
        listed = ", ".join(path or "<no path>" for path, _ in failures)
        super().__init__(f"{len(failures)} suggestion(s) not applied: {listed}")
        self.failures = failures
