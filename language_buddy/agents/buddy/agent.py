"""
Conversation agent interface and its OpenAI Agents implementation.
"""

from abc import ABC, abstractmethod
from typing import Dict, List

from agents import Agent, Runner, set_default_openai_key

from ...config import Settings
from ...utils.logging import get_logger

logger = get_logger("buddy.agent")


class ConversationAgent(ABC):
    """Produces assistant text from a role-tagged history and a system prompt."""

    @abstractmethod
    async def invoke(self, history: List[Dict[str, str]], system_prompt: str) -> str:
        """Return the assistant's next message."""


class OpenAIConversationAgent(ConversationAgent):
    """ConversationAgent backed by the OpenAI Agents SDK."""

    def __init__(self, settings: Settings):
        self.settings = settings
        if settings.openai_api_key:
            set_default_openai_key(settings.openai_api_key)

    def _build_agent(self, system_prompt: str) -> Agent:
        return Agent(
            name="Maya",
            instructions=system_prompt,
            model=self.settings.agent_model,
        )

    async def invoke(self, history: List[Dict[str, str]], system_prompt: str) -> str:
        agent = self._build_agent(system_prompt)
        result = await Runner.run(starting_agent=agent, input=list(history))
        output = result.final_output
        logger.debug(f"agent: produced {len(str(output or ''))} chars")
        return str(output or "")
