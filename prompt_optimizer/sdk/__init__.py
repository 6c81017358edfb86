"""
SDK for Prompt Optimizer.

Provides a model client that optimizes prompts before sending them.
"""

from .openai_client import OptimizedOpenAI

__all__ = ["OptimizedOpenAI"]
