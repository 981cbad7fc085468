"""领域层模型与协议。

包含：
- models: Message / ErrorEnvelope / InvokeRequest / InvokeResult 等统一模型。
- conversation: 不可变会话及其追加规则。
- invoice: 发票记录字段别名表与归一化。
- exceptions: 业务异常类型定义。
"""
