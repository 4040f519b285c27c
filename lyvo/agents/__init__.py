"""AI Agents package."""

from lyvo.agents.ai_agents import ChatAgent, extract_json, summarize_result

__all__ = [
    "ChatAgent",
    "extract_json",
    "summarize_result",
]
