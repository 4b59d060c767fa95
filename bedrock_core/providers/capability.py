"""CapabilityProbe：调用前向控制面查询模型能力。

- 每次调用都实时查询，不做缓存（能力随区域/账户变化）。
- query_capabilities 查询失败时抛出 CapabilityQueryError。
- probe_capabilities 在非严格模式下把失败降级为"不支持该特性"，并记录告警日志。
"""

import asyncio
import logging
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from bedrock_core.domain.exceptions import CapabilityQueryError
from bedrock_core.domain.models import ModelCapabilities
from bedrock_core.infrastructure.logging.logger import logger


async def query_capabilities(model_id: str, control_client: Any) -> ModelCapabilities:
    """调用 get_foundation_model 并解析 streaming / image 支持情况。"""

    try:
        resp = await asyncio.to_thread(control_client.get_foundation_model, modelIdentifier=model_id)
    except (ClientError, BotoCoreError) as e:
        raise CapabilityQueryError(
            code="CAPABILITY_QUERY_FAILED",
            message=f"Unable to get model details for {model_id}: {e}",
            model_id=model_id,
        ) from e
    details = (resp or {}).get("modelDetails")
    if not isinstance(details, dict):
        raise CapabilityQueryError(
            code="CAPABILITY_QUERY_FAILED",
            message=f"Unable to get model details for {model_id}",
            model_id=model_id,
        )
    modalities = {str(m).upper() for m in details.get("inputModalities") or []}
    return ModelCapabilities(
        streaming=bool(details.get("responseStreamingSupported") or False),
        images="IMAGE" in modalities,
    )


async def probe_capabilities(model_id: str, control_client: Any, strict: bool = False) -> ModelCapabilities:
    """查询模型能力；strict=False 时查询失败视为不支持任何可选特性。"""

    try:
        return await query_capabilities(model_id, control_client)
    except CapabilityQueryError as e:
        if strict:
            raise
        logger.log(
            logging.WARNING,
            "Capability query failed, assuming no streaming/image support",
            extra={"extra": {"model_id": model_id, "error": e.message}},
        )
        return ModelCapabilities()
