import asyncio
import logging
from typing import Any, Dict, List, Optional

from openai import AzureOpenAI

from lingua_eval.core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class AzureOpenAILLM:
    """Minimal text-in/text-out wrapper around an Azure OpenAI chat deployment."""

    def __init__(self, config: Optional[Settings] = None):
        config = config or default_settings
        self.client = AzureOpenAI(
            api_key=config.AZURE_OPENAI_API_KEY,
            api_version=config.AZURE_OPENAI_API_VERSION,
            azure_endpoint=config.AZURE_OPENAI_ENDPOINT,
        )
        self.deployment = config.AZURE_OPENAI_DEPLOYMENT

    async def run_azure_openai(
        self,
        *,
        messages: List[Dict[str, str]],
        json_mode: bool = True,
        name: Optional[str] = None,
        prompt_meta: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Send one chat request and return ``{"content": str, "usage": {...}}``.

        The raw text is returned untouched; decoding belongs to the gateway
        parsers, which also cope with fenced or chatty output. ``prompt_meta`` is
        only consumed by tracing wrappers.
        """

        def _invoke_sync() -> Dict[str, Any]:
            kwargs: Dict[str, Any] = {"model": self.deployment, "messages": messages}
            if json_mode:
                kwargs["response_format"] = {"type": "json_object"}
            resp = self.client.chat.completions.create(**kwargs)

            content = resp.choices[0].message.content if resp.choices else None
            if not content:
                logger.warning(f"Empty content received from Azure OpenAI for {name or 'request'}")

            return {
                "content": content or "",
                "usage": {
                    "prompt_tokens": resp.usage.prompt_tokens if resp.usage else 0,
                    "completion_tokens": resp.usage.completion_tokens if resp.usage else 0,
                    "total_tokens": resp.usage.total_tokens if resp.usage else 0,
                },
            }

        return await asyncio.to_thread(_invoke_sync)
