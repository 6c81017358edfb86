"""
Prompt Optimizer.

Budget-aware prompt rewriting in front of a generative text model.
"""

__version__ = "0.1.0"
