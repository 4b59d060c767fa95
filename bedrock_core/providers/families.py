"""各模型族（wire family）的请求体与响应结构。

每个模型族在这里登记一次 FamilySpec：
- build: 把统一的消息列表 + 推理参数转成该族专属的请求体 dataclass；
- decode / decode_stream: 把完整响应 / 单个流式分片解析为文本。

固定结构的响应使用 pydantic 模型做强类型解析；
Anthropic Messages 的流式事件结构不统一，保留"先按通用 JSON 解析再探测 delta"的路径。
"""

import base64
import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from bedrock_core.domain.models import (
    ImagePayload,
    InferenceParameters,
    Message,
    RequestBody,
    WireFamily,
)

ANTHROPIC_VERSION = "bedrock-2023-05-31"
TEXT_DELTA = "text_delta"

_PLAIN_LABELS = {"user": "User", "assistant": "Assistant"}


# ---- 对话转文本 ----


def plain_transcript(messages: Sequence[Message], system_prompt: Optional[str] = None) -> str:
    """把消息列表拼接为普通补全模型使用的文本。

    单条消息时直接使用问题本身；多轮时按 "User: ..." / "Assistant: ..." 拼接，
    并以 "Assistant:" 结尾引导模型续写。
    """

    if len(messages) == 1:
        prompt = messages[0].text
    else:
        turns = [f"{_PLAIN_LABELS[m.role]}: {m.text}" for m in messages]
        turns.append(f"{_PLAIN_LABELS['assistant']}:")
        prompt = "\n\n".join(turns)
    if system_prompt:
        prompt = f"{system_prompt}\n\n{prompt}"
    return prompt


def anthropic_transcript(messages: Sequence[Message], system_prompt: Optional[str] = None) -> str:
    """Claude v2 旧版补全接口要求的 Human/Assistant 轮次标记。"""

    parts = []
    for m in messages:
        marker = "Human" if m.role == "user" else "Assistant"
        parts.append(f"\n\n{marker}: {m.text}")
    parts.append("\n\nAssistant:")
    return (system_prompt or "") + "".join(parts)


def mistral_transcript(messages: Sequence[Message], system_prompt: Optional[str] = None) -> str:
    """Mistral instruct 格式：<s>[INST] 问题 [/INST] 回答</s>。"""

    parts = ["<s>"]
    for idx, m in enumerate(messages):
        if m.role == "user":
            text = m.text
            if idx == 0 and system_prompt:
                text = f"{system_prompt}\n\n{text}"
            parts.append(f"[INST] {text} [/INST]")
        else:
            parts.append(f" {m.text}</s>")
    return "".join(parts)


# ---- 请求体 ----


@dataclass(frozen=True)
class AnthropicTextBody:
    prompt: str
    temperature: float
    top_p: float
    max_tokens_to_sample: int
    top_k: Optional[int] = None
    stop_sequences: tuple = ()

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "prompt": self.prompt,
            "temperature": self.temperature,
            "top_p": self.top_p,
            "max_tokens_to_sample": self.max_tokens_to_sample,
            "stop_sequences": list(self.stop_sequences),
        }
        if self.top_k is not None:
            payload["top_k"] = self.top_k
        return payload


@dataclass(frozen=True)
class AnthropicMessagesBody:
    """Claude 3 Messages 接口；图片附加在最后一条 user 消息上。"""

    messages: tuple
    max_tokens: int
    temperature: float
    top_p: float
    top_k: Optional[int] = None
    stop_sequences: tuple = ()
    system: Optional[str] = None
    image: Optional[ImagePayload] = None
    anthropic_version: str = ANTHROPIC_VERSION

    def to_payload(self) -> Dict[str, Any]:
        msgs: List[Dict[str, Any]] = []
        last_user = max((i for i, m in enumerate(self.messages) if m.role == "user"), default=-1)
        for idx, m in enumerate(self.messages):
            content: List[Dict[str, Any]] = []
            if self.image is not None and idx == last_user:
                content.append(
                    {
                        "type": "image",
                        "source": {
                            "type": "base64",
                            "media_type": self.image.media_type,
                            "data": base64.b64encode(self.image.data).decode("ascii"),
                        },
                    }
                )
            content.extend({"type": "text", "text": text} for text in m.content)
            msgs.append({"role": m.role, "content": content})
        payload: Dict[str, Any] = {
            "anthropic_version": self.anthropic_version,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "top_p": self.top_p,
            "stop_sequences": list(self.stop_sequences),
            "messages": msgs,
        }
        if self.top_k is not None:
            payload["top_k"] = self.top_k
        if self.system:
            payload["system"] = self.system
        return payload


@dataclass(frozen=True)
class CohereBody:
    prompt: str
    max_tokens: int
    temperature: float
    p: float
    k: Optional[int] = None
    stop_sequences: tuple = ()
    stream: bool = False

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "prompt": self.prompt,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "p": self.p,
            "stop_sequences": list(self.stop_sequences),
            "stream": self.stream,
        }
        if self.k is not None:
            payload["k"] = self.k
        return payload


@dataclass(frozen=True)
class LlamaBody:
    prompt: str
    temperature: float
    top_p: float
    max_gen_len: int

    def to_payload(self) -> Dict[str, Any]:
        return {
            "prompt": self.prompt,
            "temperature": self.temperature,
            "top_p": self.top_p,
            "max_gen_len": self.max_gen_len,
        }


@dataclass(frozen=True)
class JurassicBody:
    prompt: str
    temperature: float
    top_p: float
    max_tokens: int
    stop_sequences: tuple = ()

    def to_payload(self) -> Dict[str, Any]:
        return {
            "prompt": self.prompt,
            "temperature": self.temperature,
            "topP": self.top_p,
            "maxTokens": self.max_tokens,
            "stopSequences": list(self.stop_sequences),
        }


@dataclass(frozen=True)
class TitanBody:
    input_text: str
    temperature: float
    top_p: float
    max_token_count: int
    stop_sequences: tuple = ()

    def to_payload(self) -> Dict[str, Any]:
        return {
            "inputText": self.input_text,
            "textGenerationConfig": {
                "temperature": self.temperature,
                "topP": self.top_p,
                "maxTokenCount": self.max_token_count,
                "stopSequences": list(self.stop_sequences),
            },
        }


@dataclass(frozen=True)
class MistralBody:
    prompt: str
    temperature: float
    top_p: float
    max_tokens: int
    top_k: Optional[int] = None
    stop: tuple = ()

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "prompt": self.prompt,
            "temperature": self.temperature,
            "top_p": self.top_p,
            "max_tokens": self.max_tokens,
            "stop": list(self.stop),
        }
        if self.top_k is not None:
            payload["top_k"] = self.top_k
        return payload


# ---- 响应结构（强类型） ----


class _Shape(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class AnthropicCompletion(_Shape):
    completion: str


class AnthropicTextBlock(_Shape):
    type: str = "text"
    text: str = ""


class AnthropicMessagesResponse(_Shape):
    content: List[AnthropicTextBlock] = Field(min_length=1)


class CohereGeneration(_Shape):
    text: str


class CohereResponse(_Shape):
    generations: List[CohereGeneration] = Field(min_length=1)


class CohereStreamChunk(_Shape):
    text: str = ""
    is_finished: bool = False


class LlamaResponse(_Shape):
    generation: str


class JurassicText(_Shape):
    text: str


class JurassicCompletion(_Shape):
    data: JurassicText


class JurassicResponse(_Shape):
    completions: List[JurassicCompletion] = Field(min_length=1)


class TitanResult(_Shape):
    output_text: str = Field(alias="outputText")


class TitanResponse(_Shape):
    results: List[TitanResult] = Field(min_length=1)


class TitanStreamChunk(_Shape):
    output_text: str = Field(alias="outputText")


class MistralOutput(_Shape):
    text: str


class MistralResponse(_Shape):
    outputs: List[MistralOutput] = Field(min_length=1)


# ---- 解析函数 ----


def decode_anthropic_text(raw: bytes) -> str:
    return AnthropicCompletion.model_validate_json(raw).completion


def decode_anthropic_messages(raw: bytes) -> str:
    resp = AnthropicMessagesResponse.model_validate_json(raw)
    return "".join(block.text for block in resp.content if block.type == "text")


def decode_anthropic_delta(raw: bytes) -> str:
    """解析 Claude 3 流式事件。

    事件种类很多（message_start、content_block_start、message_delta、message_stop...），
    只有 delta.type == "text_delta" 的事件携带文本，其余一律返回空串。
    """

    event = json.loads(raw)
    if not isinstance(event, dict):
        raise ValueError("stream event is not a JSON object")
    delta = event.get("delta")
    if not isinstance(delta, dict) or delta.get("type") != TEXT_DELTA:
        return ""
    text = delta.get("text")
    if not isinstance(text, str):
        raise ValueError("text_delta event without text")
    return text


def decode_cohere(raw: bytes) -> str:
    return CohereResponse.model_validate_json(raw).generations[0].text


def decode_cohere_stream(raw: bytes) -> str:
    return CohereStreamChunk.model_validate_json(raw).text


def decode_llama(raw: bytes) -> str:
    return LlamaResponse.model_validate_json(raw).generation


def decode_jurassic(raw: bytes) -> str:
    return JurassicResponse.model_validate_json(raw).completions[0].data.text


def decode_titan(raw: bytes) -> str:
    return TitanResponse.model_validate_json(raw).results[0].output_text


def decode_titan_stream(raw: bytes) -> str:
    return TitanStreamChunk.model_validate_json(raw).output_text


def decode_mistral(raw: bytes) -> str:
    return MistralResponse.model_validate_json(raw).outputs[0].text


# ---- 请求体构造 ----


BodyBuilder = Callable[[Sequence[Message], InferenceParameters, Optional[str], Optional[ImagePayload]], RequestBody]


def _build_anthropic_text(messages, params, system_prompt, image) -> AnthropicTextBody:
    return AnthropicTextBody(
        prompt=anthropic_transcript(messages, system_prompt),
        temperature=params.temperature,
        top_p=params.top_p,
        top_k=params.top_k,
        max_tokens_to_sample=params.max_tokens,
        stop_sequences=params.stop_sequences,
    )


def _build_anthropic_messages(messages, params, system_prompt, image) -> AnthropicMessagesBody:
    return AnthropicMessagesBody(
        messages=tuple(Message(role=m.role, content=list(m.content)) for m in messages),
        max_tokens=params.max_tokens,
        temperature=params.temperature,
        top_p=params.top_p,
        top_k=params.top_k,
        stop_sequences=params.stop_sequences,
        system=system_prompt,
        image=image,
    )


def _build_cohere(messages, params, system_prompt, image) -> CohereBody:
    return CohereBody(
        prompt=plain_transcript(messages, system_prompt),
        max_tokens=params.max_tokens,
        temperature=params.temperature,
        p=params.top_p,
        k=params.top_k,
        stop_sequences=params.stop_sequences,
    )


def _build_llama(messages, params, system_prompt, image) -> LlamaBody:
    return LlamaBody(
        prompt=plain_transcript(messages, system_prompt),
        temperature=params.temperature,
        top_p=params.top_p,
        max_gen_len=params.max_tokens,
    )


def _build_jurassic(messages, params, system_prompt, image) -> JurassicBody:
    return JurassicBody(
        prompt=plain_transcript(messages, system_prompt),
        temperature=params.temperature,
        top_p=params.top_p,
        max_tokens=params.max_tokens,
        stop_sequences=params.stop_sequences,
    )


def _build_titan(messages, params, system_prompt, image) -> TitanBody:
    return TitanBody(
        input_text=plain_transcript(messages, system_prompt),
        temperature=params.temperature,
        top_p=params.top_p,
        max_token_count=params.max_tokens,
        stop_sequences=params.stop_sequences,
    )


def _build_mistral(messages, params, system_prompt, image) -> MistralBody:
    return MistralBody(
        prompt=mistral_transcript(messages, system_prompt),
        temperature=params.temperature,
        top_p=params.top_p,
        top_k=params.top_k,
        max_tokens=params.max_tokens,
        stop=params.stop_sequences,
    )


@dataclass(frozen=True)
class FamilySpec:
    """单个模型族的登记信息。

    - build: 请求体构造函数。
    - decode: 完整响应解析函数。
    - decode_stream: 流式分片解析函数。
    - supports_images: 请求体是否有图片槽位。
    - chat_style: 是否直接接收结构化消息列表（否则拼接为 transcript）。
    """

    family: WireFamily
    build: BodyBuilder
    decode: Callable[[bytes], str]
    decode_stream: Callable[[bytes], str]
    supports_images: bool = False
    chat_style: bool = False


FAMILIES: Dict[WireFamily, FamilySpec] = {
    WireFamily.ANTHROPIC_TEXT: FamilySpec(
        family=WireFamily.ANTHROPIC_TEXT,
        build=_build_anthropic_text,
        decode=decode_anthropic_text,
        decode_stream=decode_anthropic_text,
    ),
    WireFamily.ANTHROPIC_MESSAGES: FamilySpec(
        family=WireFamily.ANTHROPIC_MESSAGES,
        build=_build_anthropic_messages,
        decode=decode_anthropic_messages,
        decode_stream=decode_anthropic_delta,
        supports_images=True,
        chat_style=True,
    ),
    WireFamily.COHERE_COMMAND: FamilySpec(
        family=WireFamily.COHERE_COMMAND,
        build=_build_cohere,
        decode=decode_cohere,
        decode_stream=decode_cohere_stream,
    ),
    WireFamily.META_LLAMA: FamilySpec(
        family=WireFamily.META_LLAMA,
        build=_build_llama,
        decode=decode_llama,
        decode_stream=decode_llama,
    ),
    WireFamily.AI21_JURASSIC: FamilySpec(
        family=WireFamily.AI21_JURASSIC,
        build=_build_jurassic,
        decode=decode_jurassic,
        decode_stream=decode_jurassic,
    ),
    WireFamily.AMAZON_TITAN: FamilySpec(
        family=WireFamily.AMAZON_TITAN,
        build=_build_titan,
        decode=decode_titan,
        decode_stream=decode_titan_stream,
    ),
    WireFamily.MISTRAL: FamilySpec(
        family=WireFamily.MISTRAL,
        build=_build_mistral,
        decode=decode_mistral,
        decode_stream=decode_mistral,
    ),
}
