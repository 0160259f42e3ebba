from __future__ import annotations

"""Public configuration API for GraphSearch."""

from GraphSearch.config.app import (
    DEFAULT_CONFIG_PATH,
    AppConfig,
    check_cross_domain,
    load_config,
    load_config_with_defaults,
    merge_config_dicts,
    parse_config_dict,
    parse_yaml,
)
from GraphSearch.config.combine import CombineConfig
from GraphSearch.config.hierarchy import HierarchyConfig
from GraphSearch.config.llm import LLMConfig
from GraphSearch.config.output import OutputConfig
from GraphSearch.config.runtime import RuntimeConfig
from GraphSearch.config.search import SearchConfig
from GraphSearch.config.storage import StorageConfig

__all__ = [
    "RuntimeConfig",
    "StorageConfig",
    "SearchConfig",
    "CombineConfig",
    "HierarchyConfig",
    "LLMConfig",
    "OutputConfig",
    "AppConfig",
    "DEFAULT_CONFIG_PATH",
    "load_config",
    "load_config_with_defaults",
    "merge_config_dicts",
    "parse_config_dict",
    "parse_yaml",
    "check_cross_domain",
]
