from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

from models.form_snapshot_model import FormSnapshot

T = TypeVar('T')


class FaultStage(str, Enum):
    IDLE = 'idle'
    CAPTURING = 'capturing'
    REDACTING = 'redacting'
    LOGGING = 'logging'
    RESPONDING = 'responding'
    DONE = 'done'


@dataclass(frozen=True)
class StepResult(Generic[T]):
    ok: bool
    value: T | None = None
    reason: str | None = None

    @classmethod
    def success(cls, value: T | None = None) -> 'StepResult[T]':
        return cls(True, value)

    @classmethod
    def failure(cls, reason: str, fallback: T | None = None) -> 'StepResult[T]':
        return cls(False, fallback, reason)


@dataclass
class FaultContext:
    """Everything known about one failed request. Lives for a single fault."""

    method: str
    path: str
    content_type: str | None = None
    request_id: str | None = None
    raw_body: str | None = field(default=None, repr=False, metadata={'log_ignore': True})
    form: FormSnapshot | None = field(default=None, repr=False, metadata={'log_ignore': True})
    body: str | None = None
    error_type: str | None = None
    stages: list[FaultStage] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)

    def log_args(self) -> dict[str, Any]:
        return {
            'body': self.body if self.body is not None else '[No body]',
            'method': self.method,
            'path': self.path,
            'content_type': self.content_type,
        }
