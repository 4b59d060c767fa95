"""Bedrock 集成层。

该包下的模块负责：
- 维护模型目录与各模型族的请求/响应结构 (registry、families)。
- 构造请求 (builder)、查询能力 (capability)、解析响应 (decoder)。
- 执行实际调用 (bedrock_client)。

boto3 客户端的创建放在 api.service 中，本包只依赖 base 中的协议。
"""
