from gpt_shell.config.settings import Settings, settings

__all__ = ["Settings", "settings"]
