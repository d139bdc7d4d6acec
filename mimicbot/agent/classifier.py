"""Relevance classifier for un-triggered message bursts.

Asks a small model whether the latest message continues a conversation
with the agent. The reply is a JSON object::

    {"continuation": bool, "aboutUser": bool, "reason": str}

Any failure (completion error, unparseable reply) counts as "not relevant";
the burst is then simply not answered.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

import json_repair
from loguru import logger
from pydantic import BaseModel, Field, ValidationError

if TYPE_CHECKING:
    from mimicbot.agent.context import PromptBuilder
    from mimicbot.agent.models import Environment
    from mimicbot.providers.base import Completer


class ClassifyResult(BaseModel):
    continuation: bool = False
    about_user: bool = Field(default=False, alias="aboutUser")
    reason: str = ""

    model_config = {"populate_by_name": True}


class Classifier:
    def __init__(
        self,
        completer: Completer,
        prompts: PromptBuilder,
        model: str | None = None,
    ) -> None:
        self._completer = completer
        self._prompts = prompts
        self._model = model

    async def classify(self, env: Environment) -> ClassifyResult | None:
        """Classify the burst at the end of ``env``'s history. None on failure."""
        try:
            response = await self._completer.chat(
                self._prompts.classify(env),
                model=self._model,
                max_tokens=200,
                temperature=0.0,
            )
        except Exception as e:
            logger.warning(f"Classifier: completion failed: {e}")
            return None
        return self.parse(response.content or "")

    async def is_relevant(self, env: Environment) -> bool:
        result = await self.classify(env)
        if result is None:
            return False
        logger.debug(
            f"Classifier: continuation={result.continuation} "
            f"about_user={result.about_user} ({result.reason})"
        )
        return result.continuation

    @staticmethod
    def parse(text: str) -> ClassifyResult | None:
        """Parse the model's JSON, tolerating code fences and minor breakage."""
        fenced = re.search(r"```(?:json)?\s*([\s\S]*?)```", text)
        if fenced:
            text = fenced.group(1)
        data = json_repair.loads(text) if text.strip() else None
        if not isinstance(data, dict):
            logger.debug(f"Classifier: no JSON object in reply: {text[:200]}")
            return None
        try:
            return ClassifyResult.model_validate(data)
        except ValidationError as e:
            logger.debug(f"Classifier: invalid reply ({e})")
            return None
