"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在 CLI 交互循环中做统一捕获与用户提示：

- BuildError: 构造请求阶段的错误（未知模型、缺少问题、模态不支持等），永不重试。
- CapabilityQueryError: 控制面查询模型能力失败。
- TransportError: 调用数据面（invoke / invoke-stream）时的网络或服务错误。
- DecodeError: 响应字节与该模型族的 JSON 结构不匹配。
- RetriesExhaustedError: 后台整理类调用（标题/摘要）重试耗尽。
"""

from typing import Optional


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORE_READ_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 model_id、attempts 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class ConfigError(BusinessError):
    """配置加载或校验失败，启动阶段出现时视为致命错误。"""


class BuildError(BusinessError):
    """调用方传入了不支持的模型 / 模态组合，立即抛出，不重试。"""


class UnknownModelError(BuildError):
    """模型 ID 不在 ModelCatalog 中。"""

    def __init__(self, model_id: str):
        super().__init__(code="UNKNOWN_MODEL", message=f"Unknown model: {model_id!r}", model_id=model_id)
        self.model_id = model_id


class MissingQuestionError(BuildError):
    """模型族需要非空问题（或消息列表），但调用方未提供。"""

    def __init__(self, model_id: str):
        super().__init__(
            code="MISSING_QUESTION",
            message=f"A non-empty question is required for {model_id}",
            model_id=model_id,
        )
        self.model_id = model_id


class UnsupportedModalityError(BuildError):
    """提供了图片，但目标模型族没有图片输入槽位。"""

    def __init__(self, model_id: str, modality: str = "image"):
        super().__init__(
            code="UNSUPPORTED_MODALITY",
            message=f"Model {model_id} does not accept {modality} input",
            model_id=model_id,
            modality=modality,
        )
        self.model_id = model_id


class AlternationError(BuildError):
    """对话消息未严格按 user/assistant 交替排列。"""


class CapabilityQueryError(BusinessError):
    """控制面 get_foundation_model 查询失败。"""


class TransportError(BusinessError):
    """数据面调用失败（网络、服务端异常、流中途报错）。"""


class ModelAccessError(TransportError):
    """账户在当前区域没有该模型的访问权限。"""


class DecodeError(BusinessError):
    """响应字节无法按该模型族的结构解析。

    Attributes:
        model_id: 出错时正在解析的模型 ID，便于诊断。
    """

    def __init__(self, model_id: str, message: str):
        super().__init__(code="DECODE_ERROR", message=f"[{model_id}] {message}", model_id=model_id)
        self.model_id = model_id


class RetriesExhaustedError(BusinessError):
    """重试次数耗尽，attempts 为实际尝试次数。"""

    def __init__(self, attempts: int, last_error: Optional[BaseException] = None):
        super().__init__(
            code="RETRIES_EXHAUSTED",
            message=f"Failed to get a response after {attempts} attempts",
            attempts=attempts,
        )
        self.attempts = attempts
        self.last_error = last_error


class StoreError(BusinessError):
    """会话文件读写失败。"""
