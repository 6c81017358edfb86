"""
Optimizing OpenAI client wrapper.

Runs each prompt through the optimizer before the chat completion call.
"""

import asyncio
from typing import Any, Optional, Tuple

from openai import OpenAI

from ..core.optimizer import (
    OptimizationContext,
    OptimizationRequest,
    OptimizeResponse,
    PromptOptimizer,
    create_prompt_optimizer,
)


class OptimizedOpenAI:
    """OpenAI client wrapper that optimizes prompts within the budget.

    A denied or failed optimization still sends the original prompt; the
    caller sees why through the returned OptimizeResponse.
    """

    def __init__(self, model: str, tool_name: str, optimizer: Optional[PromptOptimizer] = None):
        """Initialize the optimizing client.

        Args:
            model: OpenAI model name (required)
            tool_name: Tool identifier used for template selection (required)
            optimizer: Optimizer to use (defaults to create_prompt_optimizer())

        Raises:
            ValueError: If model or tool_name is missing/empty
        """
        if not model or not model.strip():
            raise ValueError("model is required and cannot be empty")
        if not tool_name or not tool_name.strip():
            raise ValueError("tool_name is required and cannot be empty")

        self.model = model
        self.tool_name = tool_name
        self.optimizer = optimizer or create_prompt_optimizer()
        self.client = OpenAI()

    def chat(
        self,
        prompt: str,
        context: OptimizationContext,
        **kwargs: Any
    ) -> Tuple[Any, OptimizeResponse]:
        """Optimize a prompt and send it as a single user message.

        Blocking; runs its own event loop, so it cannot be called from a
        running one. Use achat() from async code.

        Args:
            prompt: Prompt text (required)
            context: Optimization context for the request
            **kwargs: Additional OpenAI parameters

        Returns:
            (OpenAI chat completion response, optimization result)

        Raises:
            ValueError: If prompt is empty
            OpenAI API errors: Propagated without modification
        """
        request = self._request(prompt, context)
        result = asyncio.run(self.optimizer.optimize(request))
        return self._send(result, **kwargs), result

    async def achat(
        self,
        prompt: str,
        context: OptimizationContext,
        **kwargs: Any
    ) -> Tuple[Any, OptimizeResponse]:
        """Async variant of chat(); the API call runs in a worker thread."""
        request = self._request(prompt, context)
        result = await self.optimizer.optimize(request)
        response = await asyncio.to_thread(self._send, result, **kwargs)
        return response, result

    def _request(self, prompt: str, context: OptimizationContext) -> OptimizationRequest:
        if not prompt or not prompt.strip():
            raise ValueError("prompt is required and cannot be empty")
        return OptimizationRequest(
            tool_name=self.tool_name,
            original_prompt=prompt,
            context=context
        )

    def _send(self, result: OptimizeResponse, **kwargs: Any) -> Any:
        return self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": result.optimized_prompt}],
            **kwargs
        )
