"""领域层模型与协议。

包含：
- models: Message / ProviderConfig / 流式事件 / agent 回复模型。
- cancellation: 协作式取消标志 CancellationToken。
- exceptions: 业务异常类型定义。
"""
