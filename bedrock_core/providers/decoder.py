"""ResponseDecoder：(model_id, 原始字节, 是否流式) → 文本片段。

具体结构由各模型族在 providers.families 中登记，这里只负责查表
并把解析失败统一转换为携带 model_id 的 DecodeError。
"""

import json
from typing import Mapping, Union

from pydantic import ValidationError as PydanticValidationError

from bedrock_core.domain.exceptions import DecodeError
from bedrock_core.providers.registry import MODEL_CATALOG, ModelConfig


def decode_response(
    model_id: str,
    raw: Union[bytes, str],
    streaming: bool = False,
    catalog: Mapping[str, ModelConfig] = MODEL_CATALOG,
) -> str:
    """解析一次完整响应或一个流式分片。

    未知 model_id 理论上已在 RequestBuilder 阶段被拒绝，这里同样以 DecodeError 报告。
    """

    model_cfg = catalog.get(model_id)
    if model_cfg is None:
        raise DecodeError(model_id, "no decoder registered for this model")
    spec = model_cfg.spec
    decode = spec.decode_stream if streaming else spec.decode
    if isinstance(raw, str):
        raw = raw.encode("utf-8")
    try:
        return decode(raw)
    except PydanticValidationError as e:
        raise DecodeError(model_id, f"unexpected {spec.family.value} response shape: {e.error_count()} error(s)") from e
    except (json.JSONDecodeError, UnicodeDecodeError, ValueError) as e:
        raise DecodeError(model_id, f"malformed response: {e}") from e
