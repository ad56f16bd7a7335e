#!/usr/bin/env python3
"""
Chat Relay
Loads a user's history, asks the provider for a reply in the coach persona,
and records the exchange only when the provider call succeeds.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from config import Settings
from errors import ProviderError, RelayError, ValidationError
from llm import LLMClient, extract_reply, extract_usage
from storage import MemoryStore, sanitize_user_id

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a professional all-round sports coach covering running, fitness, strength training, cardio, boxing and combat sports, skiing and every other sport. You are rigorous and put safety first. Follow these rules when talking with the user:
1. When the user asks for the first time or their information is incomplete, you must proactively ask for all of the following:
   - Training goal and timeline (for example: lose 5 kg in 3 months, finish a marathon in 6 months, build muscle and tone up)
   - Current fitness level (for example: weekly training frequency, types of exercise, experience)
   - Number of training days available per week
   - Any significant injury history
2. Based on the user's information, build a scientific, personalised training plan that combines different kinds of training (cardio, strength, flexibility).
3. Speak in a strict, calm, conversational tone, and do not sound like an AI."""

FALLBACK_REPLY = "Sorry, I can't come up with a good answer right now."


class ChatResult:
    def __init__(self, reply: str, usage: Optional[Dict[str, Any]] = None):
        self.reply = reply
        self.usage = usage


class ChatRelay:
    """Single-pass message relay between a user and the completion provider."""

    def __init__(self, settings: Settings, provider: LLMClient, store: MemoryStore,
                 system_prompt: str = SYSTEM_PROMPT):
        self.settings = settings
        self.provider = provider
        self.store = store
        self.system_prompt = system_prompt
        self._locks: Dict[str, asyncio.Lock] = {}
        # Requests holding or waiting on each lock; entries go when it drops to 0
        self._lock_users: Dict[str, int] = {}

    def build_messages(self, history: List[Dict[str, str]], message: str) -> List[Dict[str, str]]:
        """System instruction, then stored history, then the new user turn."""
        return (
            [{"role": "system", "content": self.system_prompt}]
            + list(history)
            + [{"role": "user", "content": message}]
        )

    @asynccontextmanager
    async def _user_lock(self, user_id: str):
        key = sanitize_user_id(user_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._locks[key]

    async def handle_message(self, user_id: str, message: Optional[str]) -> ChatResult:
        text = (message or "").strip()
        if not text:
            raise ValidationError()

        logger.info("User %s: %d chars", sanitize_user_id(user_id), len(text))

        if self.settings.serialize_per_user:
            async with self._user_lock(user_id):
                return await self._relay(user_id, text)
        return await self._relay(user_id, text)

    async def _relay(self, user_id: str, text: str) -> ChatResult:
        history = self.store.load(user_id)

        try:
            data = await self.provider.chat(self.build_messages(history, text))
        except RelayError as e:
            logger.warning(
                "Provider call failed for %s: %s (%s)",
                sanitize_user_id(user_id), type(e).__name__, e.detail or e.message,
            )
            raise
        except Exception as e:
            logger.exception("Unexpected provider failure for %s", sanitize_user_id(user_id))
            raise ProviderError(detail=repr(e)) from e

        reply = extract_reply(data)
        if reply is None:
            logger.warning("Provider returned no usable text for %s, using fallback", sanitize_user_id(user_id))
            reply = FALLBACK_REPLY

        updated = history + [
            {"role": "user", "content": text},
            {"role": "assistant", "content": reply},
        ]
        self.store.save(user_id, updated)

        logger.info("Coach reply to %s: %s...", sanitize_user_id(user_id), reply[:50])
        return ChatResult(reply, extract_usage(data))
