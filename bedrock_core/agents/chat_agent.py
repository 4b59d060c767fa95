"""对话引擎核心模块。

实现单轮问答、清空、保存（生成标题/摘要）与加载会话。
同一时间只有一个调用在进行；会话对象只由交互循环持有。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import logging

from bedrock_core.domain.conversation import ConversationSession, SessionStore
from bedrock_core.domain.exceptions import BusinessError
from bedrock_core.infrastructure.logging.logger import logger
from bedrock_core.infrastructure.retry import RetryPolicy
from bedrock_core.infrastructure.storage.json_store import session_filename
from bedrock_core.prompts import render_prompt
from bedrock_core.providers.base import OutputSink, silent_sink
from bedrock_core.providers.bedrock_client import BedrockClient

# 标题要短且稳定，摘要允许稍长
TITLE_OVERRIDES: Dict[str, Any] = {"temperature": 0.2, "max_tokens": 40}
SUMMARY_OVERRIDES: Dict[str, Any] = {"temperature": 0.3, "max_tokens": 400}


@dataclass
class AgentConfig:
    model_id: str
    housekeeping_model: str
    system_prompt: Optional[str] = None
    overrides: Dict[str, Any] = field(default_factory=dict)


class ChatAgent:
    def __init__(
        self,
        client: BedrockClient,
        store: SessionStore,
        config: AgentConfig,
        retry_policy: Optional[RetryPolicy] = None,
        session: Optional[ConversationSession] = None,
    ):
        self._client = client
        self._store = store
        self._config = config
        self._retry = retry_policy or RetryPolicy()
        self.session = session or ConversationSession()

    @property
    def model_id(self) -> str:
        return self._config.model_id

    @property
    def client(self) -> BedrockClient:
        return self._client

    @property
    def housekeeping_model(self) -> str:
        return self._config.housekeeping_model

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry

    # ---- 对话 ----

    async def run_turn(self, user_input: str, sink: Optional[OutputSink] = None) -> str:
        """执行一轮问答：追加 user 消息 → 调用模型 → 追加 assistant 消息。

        调用失败时撤销本轮的 user 消息并原样抛出异常，只中断本轮，不影响会话。
        """

        self.session.add_user(user_input)
        try:
            reply = await self._client.ask(
                self._config.model_id,
                messages=self.session.messages,
                system_prompt=self._config.system_prompt,
                overrides=self._config.overrides,
                sink=sink,
            )
        except Exception as e:
            self.session.discard_last()
            self._log(logging.WARNING, "Turn failed", error=str(e))
            raise
        self.session.add_assistant(reply)
        self._log(logging.INFO, "Turn completed", messages=len(self.session.messages))
        return reply

    def clear(self) -> None:
        self.session.clear()
        self._log(logging.INFO, "Session cleared")

    # ---- 会话整理 ----

    async def generate_title(self) -> str:
        prompt = render_prompt("conversation_title", transcript=self.session.to_transcript())
        title = await self._retry.run(lambda: self._housekeeping(prompt, TITLE_OVERRIDES), label="generate_title")
        return title.strip().strip('"').strip()

    async def generate_summary(self) -> str:
        prompt = render_prompt("conversation_summary", transcript=self.session.to_transcript())
        summary = await self._retry.run(lambda: self._housekeeping(prompt, SUMMARY_OVERRIDES), label="generate_summary")
        return summary.strip()

    async def _housekeeping(self, prompt: str, overrides: Dict[str, Any]) -> str:
        return await self._client.ask(
            self._config.housekeeping_model,
            question=prompt,
            overrides=overrides,
            sink=silent_sink,
        )

    # ---- 持久化 ----

    async def save(self) -> str:
        """保存当前会话并返回文件名。

        首次保存按固定顺序进行：先生成标题（文件名由标题派生），再生成摘要，
        两者都成功后才整体写入文件；
        已关联文件名的会话只重新生成摘要并覆盖原文件。
        任一生成步骤重试耗尽时抛出 RetriesExhaustedError，内存中的会话保持不变。
        """

        session = self.session
        if not session.messages:
            raise BusinessError(code="EMPTY_SESSION", message="Nothing to save yet")
        title = session.title
        filename = session.filename
        if filename is None:
            title = await self.generate_title()
            filename = session_filename(title)
        summary = await self.generate_summary()

        session.title = title
        session.summary = summary
        saved = self._store.save(session, filename)
        session.mark_saved(saved)
        self._log(logging.INFO, "Session saved", filename=saved)
        return saved

    def load(self, filename: str) -> ConversationSession:
        loaded = self._store.load(filename)
        self.session.replace_with(loaded)
        self._log(logging.INFO, "Session loaded", filename=filename, messages=len(loaded.messages))
        return self.session

    def list_saved(self) -> List[str]:
        return self._store.list_sessions()

    def _log(self, level: int, message: str, **fields: Any) -> None:
        payload: Dict[str, Any] = {"model_id": self._config.model_id, "state": self.session.state.value}
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
