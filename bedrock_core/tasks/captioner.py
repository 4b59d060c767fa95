"""图片批量描述（-c 模式）。

对目录中每张受支持的图片发起一次带图片的请求，结果写成 JSON 或 XML 文件。
"""

from __future__ import annotations

import json
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence

from bedrock_core.domain.exceptions import UnsupportedModalityError
from bedrock_core.domain.models import ImagePayload
from bedrock_core.infrastructure.logging.logger import logger
from bedrock_core.providers.base import silent_sink
from bedrock_core.providers.bedrock_client import BedrockClient

# 文件扩展名与服务端图片格式名不一致的情况
_FORMAT_ALIASES = {"jpg": "jpeg"}


@dataclass
class ImageItem:
    path: Path
    data: bytes
    format: str
    caption: Optional[str] = None

    @classmethod
    def from_path(cls, path: Path) -> "ImageItem":
        ext = path.suffix.lower().lstrip(".")
        if not ext:
            raise ValueError(f"image file has no extension: {path}")
        return cls(path=path, data=path.read_bytes(), format=_FORMAT_ALIASES.get(ext, ext))

    @property
    def payload(self) -> ImagePayload:
        return ImagePayload(data=self.data, format=self.format)


def list_images(directory: Path, extensions: Iterable[str]) -> List[Path]:
    """列出目录（不递归）中扩展名受支持的文件，按文件名排序。"""

    allowed = {e.lower().lstrip(".") for e in extensions}
    directory = Path(directory).expanduser()
    if not directory.is_dir():
        raise FileNotFoundError(f"directory not found: {directory}")
    return sorted(
        p for p in directory.iterdir()
        if p.is_file() and p.suffix.lower().lstrip(".") in allowed
    )


async def caption_images(
    client: BedrockClient,
    model_id: str,
    prompt: str,
    images: Sequence[ImageItem],
    on_progress: Optional[Callable[[ImageItem], None]] = None,
) -> List[ImageItem]:
    """为每张图片生成描述，结果写回 ImageItem.caption。

    Raises:
        UnsupportedModalityError: 模型不支持图片输入（以控制面查询结果为准）。
    """

    caps = await client.capabilities(model_id)
    if not caps.images:
        raise UnsupportedModalityError(model_id)

    for item in images:
        item.caption = (await client.ask(model_id, question=prompt, image=item.payload, sink=silent_sink)).strip()
        logger.log(
            logging.INFO,
            "Image captioned",
            extra={"extra": {"model_id": model_id, "path": str(item.path), "chars": len(item.caption)}},
        )
        if on_progress is not None:
            on_progress(item)
    return list(images)


def write_captions(images: Sequence[ImageItem], fmt: str, path: Path) -> Path:
    """把描述结果写成 JSON（默认）或 XML。"""

    path = Path(path)
    if fmt == "xml":
        root = ET.Element("captions")
        for item in images:
            node = ET.SubElement(root, "image")
            ET.SubElement(node, "path").text = str(item.path)
            ET.SubElement(node, "caption").text = item.caption or ""
        ET.indent(root)
        ET.ElementTree(root).write(path, encoding="utf-8", xml_declaration=True)
    elif fmt == "json":
        data = [{"path": str(item.path), "caption": item.caption} for item in images]
        path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
    else:
        raise ValueError(f"unsupported caption format: {fmt!r}")
    return path
