from gpt_shell.infrastructure.logging.logger import log_event, logger

__all__ = ["log_event", "logger"]
