"""统一的消息、推理参数与请求模型。

本模块定义了在各模型族之间共享的标准数据结构：

- Message: 一条对话消息（user/assistant），content 为有序文本片段列表。
- InferenceParameters: 推理参数（温度、top_p、top_k、最大 token 数、停止序列）。
- ImagePayload: 随请求发送的单张图片。
- ModelOptions: 已构造好的、某个模型族专属的请求体（带族标签）。
- ModelCapabilities: 控制面返回的模型能力（流式、图片输入）。

各模型族的请求体 dataclass 定义在 providers.families 中，
本模块只依赖其公共协议（to_payload）。
"""

import json
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Protocol


# 对话角色（与 Bedrock 的 role 字段对应）
Role = Literal["user", "assistant"]
ROLES = ("user", "assistant")


class WireFamily(str, Enum):
    """模型族标签：同一族共享一种请求/响应 JSON 结构。"""

    ANTHROPIC_TEXT = "anthropic-text"
    ANTHROPIC_MESSAGES = "anthropic-messages"
    COHERE_COMMAND = "cohere-command"
    META_LLAMA = "meta-llama"
    AI21_JURASSIC = "ai21-jurassic"
    AMAZON_TITAN = "amazon-titan"
    MISTRAL = "mistral"


@dataclass
class Message:
    """一条对话消息。

    - role: 消息角色，user 或 assistant。
    - content: 有序文本片段；绝大多数情况下只有一个元素。
    """

    role: Role
    content: List[str] = field(default_factory=list)

    @classmethod
    def user(cls, text: str) -> "Message":
        return cls(role="user", content=[text])

    @classmethod
    def assistant(cls, text: str) -> "Message":
        return cls(role="assistant", content=[text])

    @property
    def text(self) -> str:
        return "\n".join(self.content)

    def to_dict(self) -> Dict[str, Any]:
        return {"role": self.role, "content": list(self.content)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        if not isinstance(data, dict):
            raise ValueError(f"message entry is not an object: {data!r}")
        role = str(data.get("role") or "").lower()
        if role not in ROLES:
            raise ValueError(f"invalid role: {data.get('role')!r}")
        content = data.get("content") or []
        if isinstance(content, str):
            content = [content]
        if not isinstance(content, list):
            raise ValueError("message content must be a string or a list of strings")
        return cls(role=role, content=[str(c) for c in content])


@dataclass(frozen=True)
class InferenceParameters:
    """单个模型的默认推理参数。

    由 ModelCatalog 持有，每次构造请求时复制一份（with_overrides 返回新对象），
    因此修改请求永远不会影响目录中的默认值。
    """

    temperature: float
    top_p: float
    max_tokens: int
    top_k: Optional[int] = None
    stop_sequences: tuple = ()

    def with_overrides(self, overrides: Optional[Dict[str, Any]] = None) -> "InferenceParameters":
        values = {k: v for k, v in (overrides or {}).items() if v is not None}
        if "stop_sequences" in values:
            values["stop_sequences"] = tuple(values["stop_sequences"])
        return replace(self, **values)


@dataclass(frozen=True)
class ImagePayload:
    """一张图片：原始字节 + 格式（png/jpeg/gif/webp）。"""

    data: bytes
    format: str

    @property
    def media_type(self) -> str:
        return f"image/{self.format}"


@dataclass(frozen=True)
class ModelCapabilities:
    """控制面返回的模型能力。"""

    streaming: bool = False
    images: bool = False


class RequestBody(Protocol):
    """各模型族请求体需实现的协议。"""

    def to_payload(self) -> Dict[str, Any]:
        ...


@dataclass(frozen=True)
class ModelOptions:
    """一次调用的完整请求（带族标签的请求体）。

    由 RequestBuilder 每次新建，构造后不再修改，
    由 BedrockClient 消费一次。
    """

    model_id: str
    family: WireFamily
    body: RequestBody
    content_type: str = "application/json"
    accept: str = "application/json"

    def to_bytes(self) -> bytes:
        return json.dumps(self.body.to_payload(), ensure_ascii=False).encode("utf-8")
