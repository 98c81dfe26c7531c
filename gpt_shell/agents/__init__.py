"""会话与 agent 循环。

- session: 可取消的单轮聊天（ChatSession / TurnResult）。
- progress: 与协议无关的“带动画执行”工具。
- runner: agent 多轮循环（AgentRunner）。
"""

from gpt_shell.agents.runner import AgentRun, AgentRunner, parse_agent_reply
from gpt_shell.agents.session import ChatSession, TurnResult

__all__ = ["AgentRun", "AgentRunner", "ChatSession", "TurnResult", "parse_agent_reply"]
