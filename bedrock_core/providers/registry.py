"""模型目录（ModelCatalog）。

本模块把"模型 ID"与"模型族 + 默认推理参数"集中登记：

- model_id：Bedrock 实际使用的模型 ID，例如 "anthropic.claude-v2"。
- alias：命令行使用的短名，例如 "claude-v2"，仅供 CLI 解析。
- family：该模型所属的模型族，决定请求体结构与响应解析方式。

上层只关心 model_id，具体用哪种请求体、怎么解析响应由这里集中配置，
新增模型时只需在 MODEL_CATALOG 中追加一行。"""

from dataclasses import dataclass
from typing import List, Mapping

from bedrock_core.domain.exceptions import UnknownModelError
from bedrock_core.domain.models import InferenceParameters, WireFamily
from bedrock_core.providers.families import FAMILIES, FamilySpec


@dataclass(frozen=True)
class ModelConfig:
    """单个模型的目录条目。"""

    model_id: str
    alias: str
    family: WireFamily
    params: InferenceParameters

    @property
    def spec(self) -> FamilySpec:
        return FAMILIES[self.family]


def _entry(model_id: str, alias: str, family: WireFamily, **params) -> ModelConfig:
    return ModelConfig(model_id=model_id, alias=alias, family=family, params=InferenceParameters(**params))


_CLAUDE_V2 = dict(temperature=1.0, top_p=1.0, top_k=250, max_tokens=500)
_CLAUDE_V3 = dict(temperature=1.0, top_p=0.999, top_k=250, max_tokens=1000)
_MISTRAL = dict(temperature=0.5, top_p=0.9, top_k=200, max_tokens=1024)

_ENTRIES: List[ModelConfig] = [
    _entry("anthropic.claude-v2", "claude-v2", WireFamily.ANTHROPIC_TEXT, **_CLAUDE_V2),
    _entry("anthropic.claude-v2:1", "claude-v21", WireFamily.ANTHROPIC_TEXT, **_CLAUDE_V2),
    _entry("anthropic.claude-instant-v1", "claude-instant", WireFamily.ANTHROPIC_TEXT, **_CLAUDE_V2),
    _entry(
        "anthropic.claude-3-haiku-20240307-v1:0",
        "claude-v3-haiku",
        WireFamily.ANTHROPIC_MESSAGES,
        **_CLAUDE_V3,
    ),
    _entry(
        "anthropic.claude-3-sonnet-20240229-v1:0",
        "claude-v3-sonnet",
        WireFamily.ANTHROPIC_MESSAGES,
        **_CLAUDE_V3,
    ),
    _entry(
        "anthropic.claude-3-opus-20240229-v1:0",
        "claude-v3-opus",
        WireFamily.ANTHROPIC_MESSAGES,
        **_CLAUDE_V3,
    ),
    _entry(
        "anthropic.claude-3-5-sonnet-20240620-v1:0",
        "claude-v35-sonnet",
        WireFamily.ANTHROPIC_MESSAGES,
        **_CLAUDE_V3,
    ),
    _entry(
        "cohere.command-text-v14",
        "cohere-command",
        WireFamily.COHERE_COMMAND,
        temperature=1.0,
        top_p=0.1,
        top_k=1,
        max_tokens=500,
    ),
    _entry(
        "cohere.command-light-text-v14",
        "cohere-command-light",
        WireFamily.COHERE_COMMAND,
        temperature=1.0,
        top_p=0.1,
        top_k=1,
        max_tokens=500,
    ),
    _entry("meta.llama2-70b-chat-v1", "llama2-70b", WireFamily.META_LLAMA, temperature=1.0, top_p=0.1, max_tokens=1024),
    _entry("meta.llama3-8b-instruct-v1:0", "llama3-8b", WireFamily.META_LLAMA, temperature=0.5, top_p=0.9, max_tokens=1024),
    _entry(
        "meta.llama3-70b-instruct-v1:0",
        "llama3-70b",
        WireFamily.META_LLAMA,
        temperature=0.5,
        top_p=0.9,
        max_tokens=1024,
    ),
    _entry("ai21.j2-ultra-v1", "jurassic2-ultra", WireFamily.AI21_JURASSIC, temperature=0.7, top_p=1.0, max_tokens=200),
    _entry("ai21.j2-mid-v1", "jurassic2-mid", WireFamily.AI21_JURASSIC, temperature=0.7, top_p=1.0, max_tokens=200),
    _entry(
        "amazon.titan-text-express-v1",
        "titan-text-express",
        WireFamily.AMAZON_TITAN,
        temperature=0.0,
        top_p=1.0,
        max_tokens=8192,
    ),
    _entry("amazon.titan-text-lite-v1", "titan-text-lite", WireFamily.AMAZON_TITAN, temperature=0.0, top_p=1.0, max_tokens=4096),
    _entry("mistral.mistral-7b-instruct-v0:2", "mistral-7b", WireFamily.MISTRAL, **_MISTRAL),
    _entry("mistral.mixtral-8x7b-instruct-v0:1", "mixtral-8x7b", WireFamily.MISTRAL, **_MISTRAL),
    _entry("mistral.mistral-large-2402-v1:0", "mistral-large", WireFamily.MISTRAL, **_MISTRAL),
]


MODEL_CATALOG: Mapping[str, ModelConfig] = {cfg.model_id: cfg for cfg in _ENTRIES}
MODEL_ALIASES: Mapping[str, str] = {cfg.alias: cfg.model_id for cfg in _ENTRIES}


def get_model_config(model_id: str, catalog: Mapping[str, ModelConfig] = MODEL_CATALOG) -> ModelConfig:
    """根据 model_id 获取目录条目，不做模糊匹配。"""

    try:
        return catalog[model_id]
    except KeyError:
        raise UnknownModelError(model_id) from None


def resolve_model_name(name: str) -> str:
    """CLI 辅助：接受短名或完整 model_id，返回完整 model_id。"""

    if name in MODEL_CATALOG:
        return name
    key = name.lower()
    if key in MODEL_ALIASES:
        return MODEL_ALIASES[key]
    raise UnknownModelError(name)
