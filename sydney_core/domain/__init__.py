"""领域层模型与异常。

包含：
- models: ConversationIdentity / AnswerFrame / InboundEvent 等数据结构。
- exceptions: 协商、连接、读写各阶段的业务异常类型。
"""
