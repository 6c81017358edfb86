"""
Token counting and usage tracking.

Uses a character-based approximation so that counts taken before and
after a rewrite are directly comparable.
"""

import math
from dataclasses import dataclass

# 1 token ~ 4 characters of English text
CHARS_PER_TOKEN = 4


@dataclass(frozen=True)
class TokenUsage:
    """Token usage data for cost calculation.
    
    Contains token counts without model-specific logic.
    """
    input_tokens: int
    output_tokens: int
    
    @property
    def total_tokens(self) -> int:
        """Total tokens used (input + output)."""
        return self.input_tokens + self.output_tokens


def estimate_tokens(text: str) -> int:
    """Estimate the token count of a piece of text.
    
    Args:
        text: Text to measure
        
    Returns:
        ceil(len(text) / 4)
    """
    return math.ceil(len(text) / CHARS_PER_TOKEN)
