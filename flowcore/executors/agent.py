"""Agent / LLM executor.

Renders the node's prompts from the context and dispatches on ``agentType``
to one of three response strategies. Model inference is not performed here:
each strategy returns a simulated response with the same shape a provider
integration would produce, so only the strategy bodies need replacing to wire
in a real model.
"""

from __future__ import annotations

import json
import logging
import random
import time
from typing import Any

from flowcore.core.exceptions import NodeConfigurationError
from flowcore.core.graph_schema import NodeExecutionResult, NodeType, WorkflowNode
from flowcore.core.templating import substitute_pretty
from flowcore.executors.base import ExecutorHooks, NodeExecutor

logger = logging.getLogger(__name__)

DEFAULT_AGENT_TYPE = "chat"

# Relative latency of each strategy, scaled by the executor's simulated_latency
_LATENCY_WEIGHTS = {
    "chat": 1.5,
    "function-calling": 2.0,
    "reasoning": 1.8,
}

_REASONING_STEPS = [
    (
        "First, I need to understand what the user is asking for.",
        "The user wants information about the topic mentioned in the prompt.",
    ),
    (
        "Now I need to analyze the key components of the query.",
        "The main concepts are identified along with how they relate.",
    ),
    (
        "Let me consider the best approach to provide a comprehensive answer.",
        "I should explain the relationships between the concepts, with examples.",
    ),
    (
        "Finally, I need to synthesize the information into a clear response.",
        "The user will best understand if I organize my response in a structured format.",
    ),
]


def _preview(text: str, length: int = 30) -> str:
    return text[:length]


class AgentExecutor(NodeExecutor):
    """Executes ``agent`` and ``llm`` nodes.

    Args:
        simulated_latency: Seconds of simulated provider latency per weight
            unit (0 disables sleeping)
        rng: Random source for token counts and tool selection; pass a
            seeded ``random.Random`` for reproducible runs
    """

    def __init__(self, simulated_latency: float = 0.0, rng: random.Random | None = None):
        self.simulated_latency = simulated_latency
        self.rng = rng or random.Random()

    def validate(self, node: WorkflowNode) -> bool:
        if not node.data.get("prompt"):
            return False
        if node.node_type == NodeType.LLM and not node.data.get("model"):
            return False
        return True

    async def execute(
        self, node: WorkflowNode, context: dict[str, Any], hooks: ExecutorHooks
    ) -> NodeExecutionResult:
        data = node.data
        agent_type = data.get("agentType") or DEFAULT_AGENT_TYPE
        model = data.get("model")

        if node.node_type == NodeType.LLM:
            if not data.get("prompt"):
                raise NodeConfigurationError("LLM node requires a prompt")
            if not model:
                raise NodeConfigurationError("LLM node requires a model")

        hooks.log(f"Agent Node - Type: {agent_type}, Model: {model}")

        prompt = substitute_pretty(data.get("prompt") or "", context)
        system_prompt = substitute_pretty(data.get("systemPrompt") or "", context)
        hooks.log(f"Agent Node - Processed prompt: {prompt[:100]}...")

        strategies = {
            "chat": self._chat,
            "function-calling": self._function_calling,
            "reasoning": self._reasoning,
        }
        strategy = strategies.get(agent_type)
        if strategy is None:
            hooks.log(f"Agent Node - Execution error: Unsupported agent type: {agent_type}")
            return NodeExecutionResult.fail(f"Unsupported agent type: {agent_type}")

        await hooks.sleep(self.simulated_latency * _LATENCY_WEIGHTS[agent_type])
        output = strategy(system_prompt, prompt, model, data.get("tools") or [])
        return NodeExecutionResult.ok(output)

    # ========== Strategies ==========

    def _usage(self) -> dict[str, int]:
        prompt_tokens = self.rng.randint(100, 599)
        completion_tokens = self.rng.randint(100, 599)
        return {
            "total_tokens": prompt_tokens + completion_tokens,
            "prompt_tokens": prompt_tokens,
            "completion_tokens": completion_tokens,
        }

    def _chat(
        self, system_prompt: str, prompt: str, model: str | None, tools: list
    ) -> dict[str, Any]:
        return {
            "response": f'This is a simulated agent response to: "{_preview(prompt)}..."',
            "model": model,
            "usage": self._usage(),
            "reasoning": (
                "First, I analyzed the user's request. Then, I determined the best "
                "approach would be to provide a clear, comprehensive response."
            ),
        }

    def _function_calling(
        self, system_prompt: str, prompt: str, model: str | None, tools: list
    ) -> dict[str, Any]:
        tool_calls = []
        candidates = [t for t in tools if isinstance(t, dict)]
        if candidates:
            tool = self.rng.choice(candidates)
            properties = (tool.get("parameters") or {}).get("properties") or {}
            arguments = {key: f"sample_{key}" for key in properties}
            tool_calls.append(
                {
                    "id": f"call_{int(time.time() * 1000)}",
                    "type": "function",
                    "function": {
                        "name": tool.get("name"),
                        "arguments": json.dumps(arguments),
                    },
                }
            )

        return {
            "response": (
                "This is a simulated function-calling agent response to: "
                f'"{_preview(prompt)}..."'
            ),
            "model": model,
            "tool_calls": tool_calls,
            "usage": self._usage(),
            "reasoning": (
                "I analyzed the request and determined that using tools would be "
                "the most effective approach to answer the query."
            ),
        }

    def _reasoning(
        self, system_prompt: str, prompt: str, model: str | None, tools: list
    ) -> dict[str, Any]:
        steps = [
            {"step": index, "thinking": thinking, "conclusion": conclusion}
            for index, (thinking, conclusion) in enumerate(_REASONING_STEPS, start=1)
        ]
        return {
            "response": f'This is a simulated reasoning agent response to: "{_preview(prompt)}..."',
            "model": model,
            "reasoning_steps": steps,
            "usage": self._usage(),
            "final_answer": (
                "After careful consideration, here is my comprehensive response to your question..."
            ),
        }
