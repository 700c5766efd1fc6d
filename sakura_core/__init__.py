"""Sakura Core 顶层包。

该包把消息平台的 slash command 转发给流式聊天模型，
并把逐步生成的回答以“编辑原始响应”的方式实时发布回平台。
包括签名校验、事件流解析、talk 任务编排、配置加载与日志。
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
