"""Bedrock 客户端协议。

上层 ChatAgent 不直接依赖 boto3 的具体客户端类型，而是依赖这些协议：

- RuntimeClient: 数据面（bedrock-runtime），提供 invoke_model / invoke_model_with_response_stream。
- ControlClient: 控制面（bedrock），提供 get_foundation_model。
- OutputSink: 接收解码后文本片段的回调，交互模式下用于实时回显。

测试中可以用任意实现了同名方法的假对象替换。
"""

from typing import Any, Callable, Dict, Protocol

OutputSink = Callable[[str], None]


class RuntimeClient(Protocol):
    def invoke_model(self, **kwargs: Any) -> Dict[str, Any]:
        ...

    def invoke_model_with_response_stream(self, **kwargs: Any) -> Dict[str, Any]:
        ...


class ControlClient(Protocol):
    def get_foundation_model(self, **kwargs: Any) -> Dict[str, Any]:
        ...


def silent_sink(_text: str) -> None:
    """丢弃输出，用于标题/摘要等后台调用。"""
