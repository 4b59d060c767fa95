import json
import os
import re
from pathlib import Path
from typing import List
from uuid import uuid4

from bedrock_core.config.settings import settings
from bedrock_core.domain.conversation import ConversationSession, SessionStore
from bedrock_core.domain.exceptions import StoreError

_UNSAFE = re.compile(r"[^a-z0-9]+")
MAX_TITLE_CHARS = 60


def sanitize_title(title: str) -> str:
    """把模型生成的标题转成小写、下划线分隔、文件系统安全的片段。"""

    token = _UNSAFE.sub("_", (title or "").strip().lower()).strip("_")
    token = token[:MAX_TITLE_CHARS].rstrip("_")
    return token or "conversation"


def session_filename(title: str) -> str:
    """标题不保证唯一，追加随机后缀避免覆盖已有会话。"""

    return f"{sanitize_title(title)}_{uuid4().hex[:8]}.json"


class JsonSessionStore(SessionStore):
    def __init__(self, root: str | Path | None = None):
        self._root = Path(root or settings.storage_root).expanduser().resolve()
        self._root.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._root

    def save(self, session: ConversationSession, filename: str) -> str:
        path = self._path(filename)
        tmp_path = path.with_name(f".{path.name}.{uuid4().hex}.tmp")
        try:
            tmp_path.write_text(
                json.dumps(session.to_document(), ensure_ascii=False, indent=2),
                encoding="utf-8",
            )
            os.replace(tmp_path, path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise StoreError(code="STORE_WRITE_ERROR", message=str(e), filename=filename) from e
        return path.name

    def load(self, filename: str) -> ConversationSession:
        path = self._path(filename)
        if not path.exists():
            raise StoreError(code="SESSION_NOT_FOUND", message=filename, http_status=404)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError("session document is not a JSON object")
            return ConversationSession.from_document(data, filename=path.name)
        except (OSError, ValueError) as e:
            raise StoreError(code="STORE_READ_ERROR", message=str(e), filename=filename) from e

    def list_sessions(self) -> List[str]:
        """返回所有会话文件名，按文件名倒序。"""

        names = [p.name for p in self._root.glob("*.json") if p.is_file()]
        return sorted(names, reverse=True)

    def _path(self, filename: str) -> Path:
        name = Path(filename).name
        if not name or name != filename:
            raise StoreError(code="INVALID_FILENAME", message=f"invalid session filename: {filename!r}")
        return self._root / name
