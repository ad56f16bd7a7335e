import asyncio
import logging
from typing import List, Dict, Any, Optional

import httpx

from config import Settings
from errors import AuthError, ProviderError, ProviderTimeoutError, RateLimitError

logger = logging.getLogger(__name__)


def extract_reply(data: Dict[str, Any]) -> Optional[str]:
    """Return the first completion's text, or None if there is none."""
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return None
    if not isinstance(content, str) or not content.strip():
        return None
    return content


def extract_usage(data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    usage = data.get("usage") if isinstance(data, dict) else None
    return usage if isinstance(usage, dict) else None


def _provider_error_text(response: httpx.Response) -> Optional[str]:
    """Pull the provider's own error message out of an error body."""
    try:
        body = response.json()
    except ValueError:
        return None
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        error = error.get("message")
    if isinstance(error, str) and error.strip():
        return error.strip()[:200]
    return None


class LLMClient:
    """OpenAI-compatible chat completion client (DeepSeek by default)."""

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self.api_key = settings.api_key
        self.base_url = settings.base_url
        self.model = settings.model
        self.client = client or httpx.AsyncClient(timeout=settings.request_timeout)

    def build_payload(self, messages: List[Dict[str, Any]]) -> Dict[str, Any]:
        payload = {
            "model": self.model,
            "messages": messages,
            "stream": False,
        }
        payload.update(self.settings.generation_params())
        return payload

    async def chat(self, messages: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Send one chat completion request and return the decoded body."""
        if not self.api_key:
            raise AuthError(detail="DEEPSEEK_API_KEY is not configured")

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

        try:
            # httpx timeouts are per phase; wait_for bounds the whole exchange
            response = await asyncio.wait_for(
                self.client.post(
                    f"{self.base_url}/chat/completions",
                    json=self.build_payload(messages),
                    headers=headers,
                    timeout=self.settings.request_timeout,
                ),
                timeout=self.settings.request_timeout,
            )
            response.raise_for_status()
            return response.json()

        except asyncio.TimeoutError:
            raise ProviderTimeoutError(detail=f"no complete response within {self.settings.request_timeout}s")
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(detail=f"timed out after {self.settings.request_timeout}s: {e!r}")
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 401:
                raise AuthError(detail="provider rejected the credential (401)")
            if status == 429:
                raise RateLimitError(detail="provider throttled the request (429)")
            raise ProviderError.from_provider_text(
                _provider_error_text(e.response),
                detail=f"provider returned HTTP {status}",
            )
        except httpx.RequestError as e:
            raise ProviderError(detail=f"transport error: {e!r}")
        except ValueError as e:
            raise ProviderError(detail=f"undecodable provider response: {e}")

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()
