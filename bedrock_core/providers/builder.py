"""RequestBuilder：问题 / 消息列表 + 模型 ID → ModelOptions。

纯函数，不做任何 I/O。所有默认推理参数来自 ModelCatalog，
每次调用复制一份再叠加覆盖值，因此不会污染目录中的默认值。
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence

from bedrock_core.domain.exceptions import AlternationError, MissingQuestionError, UnsupportedModalityError
from bedrock_core.domain.models import ImagePayload, Message, ModelOptions
from bedrock_core.providers.registry import MODEL_CATALOG, ModelConfig, get_model_config


def validate_alternation(messages: Sequence[Message]) -> None:
    """本地校验消息严格按 user/assistant 交替，且首尾均为 user。

    远端服务同样会拒绝不交替的消息列表，这里提前失败，省一次网络调用。
    """

    if not messages:
        return
    for idx, message in enumerate(messages):
        expected = "user" if idx % 2 == 0 else "assistant"
        if message.role != expected:
            raise AlternationError(
                code="ROLE_ALTERNATION",
                message=f"message {idx} has role {message.role!r}, expected {expected!r}",
                index=idx,
            )
    if messages[-1].role != "user":
        raise AlternationError(
            code="ROLE_ALTERNATION",
            message="conversation must end with a user message",
            index=len(messages) - 1,
        )


def _normalize_messages(question: Optional[str], messages: Optional[Sequence[Message]]) -> List[Message]:
    history = list(messages or [])
    if question and question.strip():
        history.append(Message.user(question))
    return history


def build_model_options(
    model_id: str,
    question: Optional[str] = None,
    messages: Optional[Sequence[Message]] = None,
    image: Optional[ImagePayload] = None,
    system_prompt: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
    catalog: Mapping[str, ModelConfig] = MODEL_CATALOG,
) -> ModelOptions:
    """构造一次调用所需的 ModelOptions。

    Args:
        model_id: 目录中的模型 ID。
        question: 单个问题；与 messages 同时提供时作为最后一条 user 消息追加。
        messages: 完整对话历史（聊天场景）。
        image: 可选图片，仅支持有图片槽位的模型族。
        system_prompt: 可选系统提示词。
        overrides: 覆盖默认推理参数（值为 None 的键会被忽略）。

    Raises:
        UnknownModelError: model_id 不在目录中。
        MissingQuestionError: 既没有问题也没有非空消息。
        UnsupportedModalityError: 提供了图片但模型族不支持。
        AlternationError: 消息列表没有严格交替。
    """

    model_cfg = get_model_config(model_id, catalog)
    spec = model_cfg.spec

    history = _normalize_messages(question, messages)
    if not history or not history[-1].text.strip():
        raise MissingQuestionError(model_id)
    if image is not None and not spec.supports_images:
        raise UnsupportedModalityError(model_id)
    validate_alternation(history)

    params = model_cfg.params.with_overrides(overrides)
    body = spec.build(history, params, system_prompt or None, image)
    return ModelOptions(model_id=model_id, family=model_cfg.family, body=body)
