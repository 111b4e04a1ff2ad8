from __future__ import annotations

import base64
import hashlib
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union


class CommitAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    SKIP = "skip"


@dataclass(frozen=True, slots=True)
class Auto:
    """Decide create/update/skip per file by comparing content hashes."""


@dataclass(frozen=True, slots=True)
class Explicit:
    """Force the same action for every local file."""

    action: CommitAction


CommitMode = Union[Auto, Explicit]
AUTO = Auto()

AUTO_MODE_NAME = "auto"
COMMIT_MODE_CHOICES = (AUTO_MODE_NAME, *(action.value for action in CommitAction))


def parse_commit_mode(value: str | CommitMode | None) -> CommitMode:
    if value is None:
        return AUTO
    if isinstance(value, (Auto, Explicit)):
        return value

    normalized = value.strip().lower()
    if not normalized or normalized == AUTO_MODE_NAME:
        return AUTO
    try:
        return Explicit(CommitAction(normalized))
    except ValueError:
        raise ValueError(
            f"Invalid commit action {value!r}. Use one of: {', '.join(COMMIT_MODE_CHOICES)}."
        ) from None


def commit_mode_name(mode: CommitMode) -> str:
    if isinstance(mode, Explicit):
        return mode.action.value
    return AUTO_MODE_NAME


def content_sha256(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


@dataclass(frozen=True, slots=True)
class LocalFile:
    path: str
    content: bytes = field(repr=False)
    executable: bool = False

    @property
    def sha256(self) -> str:
        return content_sha256(self.content)

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(slots=True)
class RemoteFileMeta:
    path: str
    content_sha256: str
    blob_id: str | None = None
    size: int | None = None
    ref: str | None = None


@dataclass(frozen=True, slots=True)
class FileTarget:
    repo_id: str
    branch: str


@dataclass(frozen=True, slots=True)
class WireCommitAction:
    action: CommitAction
    path: str
    content: str = field(repr=False)
    execute_filemode: bool = False
    encoding: str = "base64"

    def __post_init__(self) -> None:
        if self.action is CommitAction.SKIP:
            raise ValueError(f"Skipped files cannot be committed: {self.path}")

    @classmethod
    def from_local_file(
        cls, file: LocalFile, action: CommitAction, path: str
    ) -> "WireCommitAction":
        return cls(
            action=action,
            path=path,
            content=base64.b64encode(file.content).decode("ascii"),
            execute_filemode=file.executable,
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "action": self.action.value,
            "file_path": self.path,
            "content": self.content,
            "encoding": self.encoding,
            "execute_filemode": self.execute_filemode,
        }


@dataclass(slots=True)
class PushResult:
    repo_id: str
    branch: str
    actions: list[WireCommitAction]
    commit_id: str | None = None
    web_url: str | None = None

    @property
    def committed(self) -> bool:
        return self.commit_id is not None

    def paths_for(self, action: CommitAction) -> list[str]:
        return [item.path for item in self.actions if item.action is action]
