"""LLM configuration for semantic term expansion."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Mapping

from GraphSearch.config.common import (
    check_positive,
    expect_bool,
    expect_choice,
    expect_float,
    expect_int,
    expect_str,
    get_optional_value,
    get_section,
)
from GraphSearch.core.conditions import ExpansionMode

SUPPORTED_PROVIDERS = ("openai-compat",)


@dataclass(frozen=True, slots=True)
class LLMConfig:
    """Store validated expansion provider settings."""

    enabled: bool
    provider: str
    base_url: str
    model: str
    api_key_env: str
    api_key: str
    timeout: int
    temperature: float
    max_tokens: int
    max_variants: int
    default_mode: str
    max_retries: int
    retry_base_delay: float
    retry_max_delay: float


def load_llm(raw: Mapping[str, Any]) -> LLMConfig:
    """Load the ``llm`` section.

    The API key itself never lives in YAML; it is read from the environment
    variable named by ``llm.api_key_env``.

    Raises:
        TypeError: If config types are invalid.
        ValueError: If required keys are missing.
    """
    section = get_section(raw, "llm", required=False)
    api_key_env = expect_str(get_optional_value(section, "api_key_env", "OPENAI_API_KEY"), "llm.api_key_env")
    return LLMConfig(
        enabled=expect_bool(get_optional_value(section, "enabled", False), "llm.enabled"),
        provider=expect_choice(
            get_optional_value(section, "provider", "openai-compat"),
            SUPPORTED_PROVIDERS,
            "llm.provider",
        ),
        base_url=expect_str(get_optional_value(section, "base_url", ""), "llm.base_url"),
        model=expect_str(get_optional_value(section, "model", ""), "llm.model"),
        api_key_env=api_key_env,
        api_key=os.getenv(api_key_env, "").strip(),
        timeout=expect_int(get_optional_value(section, "timeout", 30), "llm.timeout"),
        temperature=expect_float(get_optional_value(section, "temperature", 0.0), "llm.temperature"),
        max_tokens=expect_int(get_optional_value(section, "max_tokens", 300), "llm.max_tokens"),
        max_variants=expect_int(get_optional_value(section, "max_variants", 5), "llm.max_variants"),
        default_mode=expect_choice(
            get_optional_value(section, "default_mode", ExpansionMode.FUZZY.value),
            [item.value for item in ExpansionMode],
            "llm.default_mode",
        ),
        max_retries=expect_int(get_optional_value(section, "max_retries", 2), "llm.max_retries"),
        retry_base_delay=expect_float(
            get_optional_value(section, "retry_base_delay", 1.0),
            "llm.retry_base_delay",
        ),
        retry_max_delay=expect_float(
            get_optional_value(section, "retry_max_delay", 8.0),
            "llm.retry_max_delay",
        ),
    )


def check_llm(config: LLMConfig) -> None:
    """Validate llm constraints.

    Raises:
        ValueError: If values violate constraints, or the provider is enabled
            without a base URL, model or API key.
    """
    if not config.api_key_env.strip():
        raise ValueError("llm.api_key_env must not be empty")
    if config.enabled:
        if not config.base_url.strip():
            raise ValueError("llm.base_url is required when llm.enabled is true")
        if not config.model.strip():
            raise ValueError("llm.model is required when llm.enabled is true")
        if not config.api_key:
            raise ValueError(
                f"LLM enabled but {config.api_key_env} environment variable not set. "
                "Set it in your .env file or shell environment."
            )
    check_positive(config.timeout, "llm.timeout")
    check_positive(config.max_tokens, "llm.max_tokens")
    check_positive(config.max_variants, "llm.max_variants")
    if not 0.0 <= config.temperature <= 2.0:
        raise ValueError("llm.temperature must be between 0.0 and 2.0")
    if config.max_retries < 0:
        raise ValueError("llm.max_retries must be >= 0")
    if config.retry_base_delay < 0:
        raise ValueError("llm.retry_base_delay must be >= 0")
    if config.retry_max_delay < config.retry_base_delay:
        raise ValueError("llm.retry_max_delay must be >= llm.retry_base_delay")
