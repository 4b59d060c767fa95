"""把会话导出为独立的 HTML 文件（交互命令 /h）。"""

from __future__ import annotations

import html
from pathlib import Path

from bedrock_core.domain.conversation import ConversationSession

_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{title}</title>
<style>
body {{ font-family: sans-serif; max-width: 860px; margin: 2em auto; }}
.message {{ border-radius: 6px; padding: 0.6em 1em; margin: 0.8em 0; white-space: pre-wrap; }}
.user {{ background: #eef3fb; }}
.assistant {{ background: #f4f4f4; }}
.role {{ font-weight: bold; text-transform: capitalize; }}
</style>
</head>
<body>
<h1>{title}</h1>
<p class="timestamp">{timestamp}</p>
<p class="summary">{summary}</p>
{messages}
</body>
</html>
"""


def render_html(session: ConversationSession) -> str:
    parts = []
    for m in session.messages:
        parts.append(
            f'<div class="message {m.role}"><div class="role">{m.role}</div>'
            f"<div class=\"content\">{html.escape(m.text)}</div></div>"
        )
    return _PAGE.format(
        title=html.escape(session.title or "Conversation"),
        timestamp=html.escape(session.timestamp),
        summary=html.escape(session.summary or ""),
        messages="\n".join(parts),
    )


def export_html(session: ConversationSession, path: Path) -> Path:
    path = Path(path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_html(session), encoding="utf-8")
    return path
