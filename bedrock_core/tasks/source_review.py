"""源码审阅（-s 模式）：把项目源码拼成对话的第一个问题。

扩展名列表可以由模型根据文件清单推测（guess_extensions），
项目根目录的 .gitignore 规则在遍历时生效。
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional

import pathspec

from bedrock_core.infrastructure.logging.logger import logger
from bedrock_core.infrastructure.retry import RetryPolicy
from bedrock_core.prompts import load_prompt, render_prompt
from bedrock_core.providers.base import silent_sink
from bedrock_core.providers.bedrock_client import BedrockClient

RULES_FILE = ".bedrockrules"
GITIGNORE_FILE = ".gitignore"
MAX_DEPTH = 3
GUESS_OVERRIDES = {"temperature": 0.0, "max_tokens": 200}


def load_gitignore(root: Path) -> Optional[pathspec.PathSpec]:
    """读取 root/.gitignore，不存在时返回 None。"""

    path = Path(root) / GITIGNORE_FILE
    if not path.is_file():
        return None
    lines = path.read_text(encoding="utf-8", errors="replace").splitlines()
    return pathspec.GitIgnoreSpec.from_lines(lines)


def list_source_files(
    root: Path,
    extensions: Optional[Iterable[str]],
    ignore_dirs: Iterable[str],
    max_depth: int = MAX_DEPTH,
) -> List[Path]:
    """列出 root 下（最多 max_depth 层）的源码文件。

    跳过忽略目录、隐藏文件以及命中 .gitignore 的路径；
    extensions 为 None 时不按扩展名过滤。
    """

    root = Path(root).expanduser().resolve()
    if not root.is_dir():
        raise FileNotFoundError(f"directory not found: {root}")
    allowed = None if extensions is None else {e.lower().lstrip(".") for e in extensions}
    ignored = set(ignore_dirs)
    spec = load_gitignore(root)
    found: List[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        rel_dir = Path(dirpath).relative_to(root)
        depth = len(rel_dir.parts)
        dirnames[:] = sorted(
            d for d in dirnames
            if d not in ignored
            and not d.startswith(".")
            and depth < max_depth
            and not (spec and spec.match_file((rel_dir / d).as_posix() + "/"))
        )
        for name in sorted(filenames):
            if name.startswith("."):
                continue
            if spec and spec.match_file((rel_dir / name).as_posix()):
                continue
            if allowed is None or Path(name).suffix.lower().lstrip(".") in allowed:
                found.append(Path(dirpath) / name)
    return found


def parse_extension_list(reply: str) -> List[str]:
    """解析模型返回的 JSON 字符串数组；格式不对时抛出 ValueError 以便重试。"""

    text = reply.strip()
    start, end = text.find("["), text.rfind("]")
    if start < 0 or end < start:
        raise ValueError(f"reply is not a JSON array: {reply[:80]!r}")
    data = json.loads(text[start : end + 1])
    if not isinstance(data, list) or not data or not all(isinstance(x, str) for x in data):
        raise ValueError(f"reply is not a non-empty array of strings: {reply[:80]!r}")
    return sorted({x.lower().strip().lstrip(".") for x in data if x.strip()})


async def guess_extensions(
    client: BedrockClient,
    retry: RetryPolicy,
    model_id: str,
    root: Path,
    ignore_dirs: Iterable[str],
) -> List[str]:
    """让模型根据项目文件清单推测需要收集的扩展名。

    模型调用与结果解析一起放在 retry 中：非 JSON 数组的回复按失败处理并重试，
    耗尽后抛出 RetriesExhaustedError，由调用方决定是否回退到配置的扩展名。
    """

    root = Path(root).expanduser().resolve()
    files = [p.relative_to(root).as_posix() for p in list_source_files(root, None, ignore_dirs)]
    prompt = render_prompt("project_guess", files="\n".join(files))

    async def attempt() -> List[str]:
        reply = await client.ask(model_id, question=prompt, overrides=GUESS_OVERRIDES, sink=silent_sink)
        return parse_extension_list(reply)

    extensions = await retry.run(attempt, label="guess_extensions")
    logger.log(
        logging.INFO,
        "Project extensions guessed",
        extra={"extra": {"root": str(root), "files": len(files), "extensions": extensions}},
    )
    return extensions


def collect_sources(
    root: Path,
    extensions: Iterable[str],
    ignore_dirs: Iterable[str],
    max_depth: int = MAX_DEPTH,
) -> str:
    root = Path(root).expanduser().resolve()
    blocks: List[str] = []
    for path in list_source_files(root, extensions, ignore_dirs, max_depth):
        try:
            content = path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            logger.log(logging.WARNING, "Skipping non-UTF-8 source file", extra={"extra": {"path": str(path)}})
            continue
        rel = path.relative_to(root).as_posix()
        blocks.append(f"FILENAME: {rel}\nCONTENT:\n{content}\n")
    logger.log(logging.INFO, "Sources collected", extra={"extra": {"root": str(root), "files": len(blocks)}})
    return "\n".join(blocks)


def build_review_question(
    root: Path,
    extensions: Iterable[str],
    ignore_dirs: Iterable[str],
    instructions: Optional[str] = None,
) -> str:
    """构造源码审阅问题。

    项目根目录存在 .bedrockrules 时用它作为指令，否则用默认 source_review 提示词。
    源码整体包在 <source_code> 标签中。
    """

    root = Path(root).expanduser().resolve()
    code = collect_sources(root, extensions, ignore_dirs)
    wrapped = f"<source_code>\n{code}</source_code>"

    if instructions is None:
        rules = root / RULES_FILE
        if rules.is_file():
            instructions = rules.read_text(encoding="utf-8").strip() + "\n\nHere are the files:\n{source_code}"
        else:
            instructions = load_prompt("source_review")
    if "{source_code}" not in instructions:
        instructions = instructions + "\n\n{source_code}"
    return instructions.replace("{source_code}", wrapped)
