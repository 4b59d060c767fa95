"""Bedrock 调用分发器。

根据 CapabilityProbe 的结果选择两条路径之一：
- 流式：invoke_model_with_response_stream，逐个分片解码、回显并累积；
- 同步：invoke_model，读取完整响应体后一次解码。

两条路径都返回完整文本。本层不做重试，重试由调用方决定。
"""

import asyncio
import logging
import sys
import time
from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence

from botocore.exceptions import ClientError

from bedrock_core.config.settings import settings
from bedrock_core.domain.exceptions import ModelAccessError, TransportError
from bedrock_core.domain.models import ImagePayload, Message, ModelCapabilities, ModelOptions
from bedrock_core.infrastructure.logging.logger import logger
from bedrock_core.providers.base import ControlClient, OutputSink, RuntimeClient
from bedrock_core.providers.builder import build_model_options
from bedrock_core.providers.capability import probe_capabilities
from bedrock_core.providers.decoder import decode_response
from bedrock_core.providers.families import CohereBody

ACCESS_HINT = "access must be enabled per-region in the Bedrock console (Model access)"

# 流中可能出现的错误事件（与 chunk 并列的键）
_STREAM_ERROR_KEYS = (
    "internalServerException",
    "modelStreamErrorException",
    "validationException",
    "throttlingException",
    "modelTimeoutException",
    "serviceUnavailableException",
)


def stdout_sink(text: str) -> None:
    sys.stdout.write(text)
    sys.stdout.flush()


def _with_stream_flag(options: ModelOptions, streaming: bool) -> ModelOptions:
    """Cohere 的请求体自带 stream 字段，需要与实际调用路径一致。"""

    body = options.body
    if isinstance(body, CohereBody) and body.stream != streaming:
        return replace(options, body=replace(body, stream=streaming))
    return options


def _is_access_error(err: ClientError) -> bool:
    error = err.response.get("Error", {}) if isinstance(err.response, dict) else {}
    code = str(error.get("Code") or "")
    message = str(error.get("Message") or "").lower()
    return code == "AccessDeniedException" or "don't have access" in message or "not authorized" in message


def _access_error(err: ClientError, model_id: str) -> ModelAccessError:
    return ModelAccessError(
        code="MODEL_ACCESS_DENIED",
        message=f"{err} (hint: {ACCESS_HINT})",
        http_status=403,
        model_id=model_id,
    )


class BedrockClient:
    """Bedrock 数据面 + 控制面客户端实现。"""

    name = "bedrock"

    def __init__(
        self,
        runtime_client: RuntimeClient,
        control_client: ControlClient,
        cfg=settings,
        sink: OutputSink = stdout_sink,
    ):
        self._runtime = runtime_client
        self._control = control_client
        self._settings = cfg
        self._sink = sink

    # ---- 能力查询 ----

    async def capabilities(self, model_id: str) -> ModelCapabilities:
        strict = getattr(self._settings, "strict_capability_probe", False)
        return await probe_capabilities(model_id, self._control, strict=strict)

    # ---- 一站式调用 ----

    async def ask(
        self,
        model_id: str,
        question: Optional[str] = None,
        messages: Optional[Sequence[Message]] = None,
        image: Optional[ImagePayload] = None,
        system_prompt: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
        sink: Optional[OutputSink] = None,
    ) -> str:
        """构造请求 → 查询能力 → 调用 → 返回完整文本。"""

        options = build_model_options(
            model_id,
            question=question,
            messages=messages,
            image=image,
            system_prompt=system_prompt,
            overrides=overrides,
        )
        caps = await self.capabilities(model_id)
        return await self.invoke(options, caps, sink=sink)

    async def invoke(
        self,
        options: ModelOptions,
        capabilities: ModelCapabilities,
        sink: Optional[OutputSink] = None,
    ) -> str:
        out = sink or self._sink
        options = _with_stream_flag(options, capabilities.streaming)
        start = time.monotonic()
        try:
            if capabilities.streaming:
                text = await self._invoke_stream(options, out)
            else:
                text = await self._invoke_sync(options, out)
        except ClientError as e:
            self._log(logging.ERROR, "Model invocation failed", options, capabilities, error=str(e))
            if _is_access_error(e):
                raise _access_error(e, options.model_id) from e
            raise
        self._log(
            logging.INFO,
            "Model invocation finished",
            options,
            capabilities,
            chars=len(text),
            elapsed_ms=int((time.monotonic() - start) * 1000),
        )
        return text

    # ---- 同步 ----

    async def _invoke_sync(self, options: ModelOptions, out: OutputSink) -> str:
        raw = await asyncio.to_thread(self._read_sync_body, options)
        text = decode_response(options.model_id, raw, streaming=False)
        out(text)
        return text

    def _read_sync_body(self, options: ModelOptions) -> bytes:
        resp = self._runtime.invoke_model(
            modelId=options.model_id,
            body=options.to_bytes(),
            contentType=options.content_type,
            accept=options.accept,
        )
        body = resp["body"]
        return body.read() if hasattr(body, "read") else body

    # ---- 流式 ----

    async def _invoke_stream(self, options: ModelOptions, out: OutputSink) -> str:
        resp = await asyncio.to_thread(
            self._runtime.invoke_model_with_response_stream,
            modelId=options.model_id,
            body=options.to_bytes(),
            contentType=options.content_type,
            accept=options.accept,
        )
        events = iter(resp["body"])
        parts: List[str] = []
        while True:
            event = await asyncio.to_thread(next, events, None)
            if event is None:
                break
            chunk = event.get("chunk")
            if chunk is None:
                self._raise_stream_error(event, options.model_id)
                continue
            fragment = decode_response(options.model_id, chunk.get("bytes") or b"", streaming=True)
            if fragment:
                out(fragment)
                parts.append(fragment)
        return "".join(parts)

    @staticmethod
    def _raise_stream_error(event: Dict[str, Any], model_id: str) -> None:
        for key in _STREAM_ERROR_KEYS:
            if key in event:
                detail = event[key] or {}
                raise TransportError(
                    code="STREAM_ERROR",
                    message=f"{key}: {detail.get('message') or 'stream error'}",
                    http_status=502,
                    model_id=model_id,
                )

    @staticmethod
    def _log(level: int, message: str, options: ModelOptions, caps: ModelCapabilities, **fields: Any) -> None:
        payload: Dict[str, Any] = {
            "model_id": options.model_id,
            "family": options.family.value,
            "streaming": caps.streaming,
        }
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
