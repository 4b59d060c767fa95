from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol

from .models import Message


def _local_now() -> str:
    return datetime.now().astimezone().isoformat()


class SessionState(str, Enum):
    EMPTY = "empty"
    ACTIVE = "active"
    PERSISTED = "persisted"


@dataclass
class ConversationSession:
    """当前交互会话（内存副本）。

    状态：EMPTY（无消息）→ ACTIVE（有消息）→ EMPTY（clear）| PERSISTED（save）→ ACTIVE（继续对话）。
    filename 记录已关联的会话文件，后续保存会覆盖同一文件。
    """

    title: Optional[str] = None
    summary: Optional[str] = None
    messages: List[Message] = field(default_factory=list)
    timestamp: str = field(default_factory=_local_now)
    filename: Optional[str] = None
    persisted: bool = False

    @property
    def state(self) -> SessionState:
        if not self.messages:
            return SessionState.EMPTY
        if self.persisted:
            return SessionState.PERSISTED
        return SessionState.ACTIVE

    def append(self, message: Message) -> Message:
        self.messages.append(message)
        self.persisted = False
        return message

    def add_user(self, text: str) -> Message:
        return self.append(Message.user(text))

    def add_assistant(self, text: str) -> Message:
        return self.append(Message.assistant(text))

    def discard_last(self) -> Optional[Message]:
        """撤销最后一条消息（用于失败的轮次，保持 user/assistant 交替）。"""

        return self.messages.pop() if self.messages else None

    def clear(self) -> None:
        self.title = None
        self.summary = None
        self.messages = []
        self.filename = None
        self.persisted = False
        self.timestamp = _local_now()

    def mark_saved(self, filename: str) -> None:
        self.filename = filename
        self.persisted = True

    def replace_with(self, other: "ConversationSession") -> None:
        """整体替换为已加载的会话，不做合并。"""

        self.title = other.title
        self.summary = other.summary
        self.messages = [Message(role=m.role, content=list(m.content)) for m in other.messages]
        self.timestamp = other.timestamp
        self.filename = other.filename
        self.persisted = False

    def to_transcript(self) -> str:
        """role:content 形式的完整对话文本，供标题/摘要生成使用。"""

        return "\n\n".join(f"{m.role}:{m.text}" for m in self.messages)

    def to_document(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "summary": self.summary,
            "messages": [m.to_dict() for m in self.messages],
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_document(cls, data: Dict[str, Any], filename: Optional[str] = None) -> "ConversationSession":
        messages = data.get("messages") or []
        if not isinstance(messages, list):
            raise ValueError("session messages must be a list")
        return cls(
            title=data.get("title"),
            summary=data.get("summary"),
            messages=[Message.from_dict(m) for m in messages],
            timestamp=str(data.get("timestamp") or _local_now()),
            filename=filename,
        )


class SessionStore(Protocol):
    def save(self, session: ConversationSession, filename: str) -> str:
        ...

    def load(self, filename: str) -> ConversationSession:
        ...

    def list_sessions(self) -> List[str]:
        ...
