"""基础设施层：日志与本地持久化。"""
