"""领域层模型与协议。

包含：
- models: 签名请求、上游聊天请求与流式增量事件模型。
- interactions: 消息平台 interaction 的线上数据结构。
- exceptions: 业务异常类型定义。
"""
