from gpt_shell.infrastructure.storage.yaml_store import AgentStore, BotStore, ConfigStore, read_yaml, write_yaml

__all__ = ["AgentStore", "BotStore", "ConfigStore", "read_yaml", "write_yaml"]
