"""领域层模型与协议。

包含：
- models: Message / InferenceParameters / ModelOptions 等值对象与 WireFamily 枚举。
- conversation: 内存会话 ConversationSession 及 SessionStore 抽象。
- exceptions: 业务异常类型定义。
"""
