"""有界重试 + 指数退避。

只用于会话整理类调用（标题、摘要）：这类调用不在用户交互的关键路径上，
一次瞬时失败不应中断整个对话。交互式问答本身不重试。
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from bedrock_core.domain.exceptions import BuildError, RetriesExhaustedError
from bedrock_core.infrastructure.logging.logger import logger

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3


def exponential_backoff(attempt: int) -> float:
    """第 attempt 次（从 0 开始）失败后的等待秒数：1, 2, 4, ..."""

    return float(2 ** attempt)


@dataclass
class RetryPolicy:
    """通用重试组合子。

    - max_attempts: 最大尝试次数（含第一次）。
    - backoff: attempt -> 等待秒数。
    - sleep: 可注入的异步 sleep，测试时替换为记录调用的假实现。
    - retry_on: 需要重试的异常类型，其余异常直接向上抛出。
    - never_retry: 即使属于 retry_on 也立即抛出的异常类型（默认 BuildError）。
    """

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    backoff: Callable[[int], float] = exponential_backoff
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    retry_on: Tuple[Type[BaseException], ...] = (Exception,)
    never_retry: Tuple[Type[BaseException], ...] = (BuildError,)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

    async def run(self, operation: Callable[[], Awaitable[T]], label: Optional[str] = None) -> T:
        """执行 operation，失败时按退避策略重试，耗尽后抛出 RetriesExhaustedError。"""

        last_error: Optional[BaseException] = None
        for attempt in range(self.max_attempts):
            try:
                return await operation()
            except self.never_retry:
                raise
            except self.retry_on as e:
                last_error = e
                logger.log(
                    logging.WARNING,
                    "Retryable operation failed",
                    extra={
                        "extra": {
                            "operation": label or getattr(operation, "__name__", "operation"),
                            "attempt": attempt + 1,
                            "max_attempts": self.max_attempts,
                            "error": str(e),
                        }
                    },
                )
                if attempt + 1 >= self.max_attempts:
                    break
                await self.sleep(self.backoff(attempt))
        raise RetriesExhaustedError(self.max_attempts, last_error) from last_error
