"""Semantic term expansion backed by an OpenAI-compatible API."""

from __future__ import annotations

from GraphSearch.core.conditions import ExpansionMode
from GraphSearch.llm.client import LLMApiClient
from GraphSearch.llm.openai_compat import OpenAICompatProvider
from GraphSearch.llm.provider import TermExpansionProvider
from GraphSearch.llm.service import ExpansionService
from GraphSearch.utils.log import log


def create_expansion_service(config) -> ExpansionService | None:
    """Create the expansion service from configuration.

    Args:
        config: Application configuration containing LLM settings.

    Returns:
        Configured ExpansionService, or None if the LLM is disabled.

    Raises:
        ValueError: If the API key is missing or the provider is unsupported.
    """
    llm = config.llm
    if not llm.enabled:
        return None

    if not llm.api_key:
        raise ValueError(
            f"LLM enabled but {llm.api_key_env} environment variable not set. "
            "Set it in your .env file or shell environment."
        )

    client = LLMApiClient(
        base_url=llm.base_url,
        api_key=llm.api_key,
        timeout=llm.timeout,
        max_retries=llm.max_retries,
        retry_base_delay=llm.retry_base_delay,
        retry_max_delay=llm.retry_max_delay,
    )

    if llm.provider == "openai-compat":
        provider: TermExpansionProvider = OpenAICompatProvider(
            name=f"OpenAI-Compatible ({llm.model})",
            client=client,
            model=llm.model,
            temperature=llm.temperature,
            max_tokens=llm.max_tokens,
        )
    else:
        raise ValueError(f"Unsupported LLM provider: {llm.provider}")

    service = ExpansionService(
        provider=provider,
        max_variants=llm.max_variants,
        default_mode=ExpansionMode(llm.default_mode),
    )
    log.info(
        "Expansion service created: provider=%s default_mode=%s max_variants=%d",
        provider.name,
        llm.default_mode,
        llm.max_variants,
    )
    return service


__all__ = [
    "ExpansionService",
    "LLMApiClient",
    "OpenAICompatProvider",
    "TermExpansionProvider",
    "create_expansion_service",
]
