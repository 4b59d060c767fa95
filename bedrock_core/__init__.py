"""Bedrock Core 顶层包。

该包提供基于 AWS Bedrock 的命令行对话客户端核心实现，
包括配置加载、领域模型、模型目录与各模型族的请求/响应适配、
调用分发（流式/同步）、重试、会话持久化与任务级工具（图片描述、源码审阅）。
"""

from bedrock_core.agents.chat_agent import AgentConfig, ChatAgent
from bedrock_core.api.service import create_bedrock_client, create_chat_agent

__all__ = ["AgentConfig", "ChatAgent", "create_bedrock_client", "create_chat_agent"]
