"""Textual inspector adapter; ``app`` holds the runnable demo."""

from .controller import TextualEngineAdapter, TextualUIHooks, describe_report

__all__ = ["TextualEngineAdapter", "TextualUIHooks", "describe_report"]
