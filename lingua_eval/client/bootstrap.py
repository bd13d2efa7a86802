# lingua_eval/client/bootstrap.py
import logging
from typing import Optional

from lingua_eval.client.azure_openai import AzureOpenAILLM
from lingua_eval.core.config import Settings, settings as default_settings
from lingua_eval.utils.tracer import LLM, ObservedLLM, build_langfuse

logger = logging.getLogger(__name__)


def build_llm(config: Optional[Settings] = None) -> Optional[LLM]:
    """Build a fresh observed LLM client, or ``None`` when Azure is not configured.

    Callers own the returned instance and inject it; there is no shared
    module-level client. A ``None`` client puts the gateway in offline mode.
    """
    config = config or default_settings
    if not config.azure_configured:
        logger.warning("Azure OpenAI is not configured; running with deterministic heuristics only")
        return None
    base = AzureOpenAILLM(config)
    return ObservedLLM(base, langfuse=build_langfuse(config))
