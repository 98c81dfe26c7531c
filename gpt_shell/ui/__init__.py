from gpt_shell.ui.console import ThinkingSpinner, console, print_delta

__all__ = ["ThinkingSpinner", "console", "print_delta"]
