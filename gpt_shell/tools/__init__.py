"""agent 使用的本地工具（命令执行）。"""
