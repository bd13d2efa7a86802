# lingua_eval/utils/tracer.py
import logging
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from langfuse import Langfuse

from lingua_eval.core.config import Settings
from lingua_eval.utils.price_tracker import PriceTracker, get_price_tracker

logger = logging.getLogger(__name__)


@runtime_checkable
class LLM(Protocol):
    deployment: Optional[str]

    async def run_azure_openai(
        self, *, messages: List[Dict[str, str]],
        json_mode: bool = True,
        name: Optional[str] = None,
        prompt_meta: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]: ...


def build_langfuse(config: Settings) -> Optional[Langfuse]:
    """Langfuse client when credentials are configured, otherwise ``None``."""
    if not config.langfuse_configured:
        logger.warning("Langfuse credentials not set. Tracing disabled.")
        return None
    try:
        client = Langfuse(
            public_key=config.LANGFUSE_PUBLIC_KEY,
            secret_key=config.LANGFUSE_SECRET_KEY,
            host=config.LANGFUSE_HOST,
        )
    except Exception as e:  # noqa: BLE001
        logger.warning(f"Langfuse initialization failed: {e}. Tracing disabled.")
        return None
    logger.info(f"Langfuse initialized. Host: {config.LANGFUSE_HOST}")
    return client


class ObservedLLM:
    """LLM wrapper that records every call as a Langfuse generation and prices it."""

    def __init__(
        self,
        inner: LLM,
        *,
        langfuse: Optional[Langfuse] = None,
        tracker: Optional[PriceTracker] = None,
        service: str = "azure-openai",
    ):
        self.inner = inner
        self.langfuse = langfuse
        self.tracker = tracker or get_price_tracker()
        self.service = service

    @property
    def deployment(self) -> Optional[str]:
        return getattr(self.inner, "deployment", None)

    async def run_azure_openai(
        self,
        *,
        messages: List[Dict[str, str]],
        json_mode: bool = True,
        name: Optional[str] = None,
        prompt_meta: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        operation = f"llm.{name or 'generate'}"

        if self.langfuse is None:
            result = await self.inner.run_azure_openai(messages=messages, json_mode=json_mode, name=name)
            self.tracker.track_usage(result.get("usage", {}), operation=operation)
            return result

        model_name = self.deployment or "azure-openai"
        md = {"service": self.service, **(prompt_meta or {})}
        with self.langfuse.start_as_current_generation(name=operation, model=model_name) as gen:
            gen.update(input={"messages": messages}, metadata=md)
            try:
                result = await self.inner.run_azure_openai(messages=messages, json_mode=json_mode, name=name)

                usage_info = result.get("usage", {})
                call_record = self.tracker.track_usage(usage_info, operation=operation)
                cost = call_record["cost"]

                gen.update(
                    output=result.get("content"),
                    metadata={**md, "cost_usd": cost["total_cost"]},
                    usage_details={
                        "input": usage_info.get("prompt_tokens", 0),
                        "output": usage_info.get("completion_tokens", 0),
                        "total": usage_info.get("total_tokens", 0),
                    },
                    cost_details={
                        "input": cost["input_cost"],
                        "output": cost["output_cost"],
                        "total": cost["total_cost"],
                    },
                )
                return result
            except Exception as e:
                gen.update(level="ERROR", status_message=str(e))
                raise
            finally:
                try:
                    self.langfuse.flush()
                except Exception:  # noqa: BLE001
                    logger.debug("Langfuse flush failed", exc_info=True)
