"""命令行层：Typer 应用、对话流程与 Ctrl-C 绑定。"""
