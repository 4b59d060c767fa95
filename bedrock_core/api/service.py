"""对外 API 服务模块。

负责创建 boto3 客户端并装配 BedrockClient / ChatAgent，
供命令行与上层应用调用。
"""

from typing import Any, Optional, Tuple

import boto3

from bedrock_core.agents.chat_agent import AgentConfig, ChatAgent
from bedrock_core.config.settings import Settings, settings
from bedrock_core.domain.conversation import SessionStore
from bedrock_core.infrastructure.logging.logger import logger, setup_logger
from bedrock_core.infrastructure.retry import RetryPolicy
from bedrock_core.infrastructure.storage.json_store import JsonSessionStore
from bedrock_core.providers.base import OutputSink
from bedrock_core.providers.bedrock_client import BedrockClient, stdout_sink


def create_boto_clients(cfg: Optional[Settings] = None) -> Tuple[Any, Any]:
    """返回 (bedrock-runtime, bedrock) 两个 boto3 客户端。

    凭证与区域来自同一个 Session：配置了 aws_profile 时使用该 profile，
    否则走 boto3 默认凭证链。
    """

    cfg = cfg or settings
    session = boto3.Session(profile_name=cfg.aws_profile or None, region_name=cfg.aws_region)
    return session.client("bedrock-runtime"), session.client("bedrock")


def create_bedrock_client(cfg: Optional[Settings] = None, sink: Optional[OutputSink] = None) -> BedrockClient:
    cfg = cfg or settings
    runtime, control = create_boto_clients(cfg)
    logger.info(
        "Bedrock clients created",
        extra={"extra": {"region": cfg.aws_region, "profile": cfg.aws_profile}},
    )
    return BedrockClient(runtime, control, cfg=cfg, sink=sink or stdout_sink)


def create_chat_agent(
    model_id: Optional[str] = None,
    cfg: Optional[Settings] = None,
    client: Optional[BedrockClient] = None,
    store: Optional[SessionStore] = None,
) -> ChatAgent:
    """按配置装配一个交互对话用的 ChatAgent。

    Args:
        model_id: 对话模型，默认使用配置中的 default_model。
        cfg: 配置快照，默认使用全局 settings。
        client: 可注入的 BedrockClient（测试使用）。
        store: 可注入的会话存储（测试使用）。
    """

    cfg = cfg or settings
    setup_logger(cfg.log_dir, cfg.log_redact_content)
    agent_cfg = AgentConfig(
        model_id=model_id or cfg.default_model,
        housekeeping_model=cfg.housekeeping_model,
        system_prompt=cfg.system_prompt,
        overrides=cfg.inference_overrides(),
    )
    return ChatAgent(
        client=client or create_bedrock_client(cfg),
        store=store or JsonSessionStore(root=cfg.storage_root),
        config=agent_cfg,
        retry_policy=RetryPolicy(max_attempts=cfg.retry_max_attempts),
    )
