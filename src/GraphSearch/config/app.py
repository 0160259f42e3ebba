from __future__ import annotations

"""Application config orchestration and YAML loading entrypoints."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml

from GraphSearch.config.combine import CombineConfig, check_combine, load_combine
from GraphSearch.config.hierarchy import HierarchyConfig, check_hierarchy, load_hierarchy
from GraphSearch.config.llm import LLMConfig, check_llm, load_llm
from GraphSearch.config.output import OutputConfig, check_output, load_output
from GraphSearch.config.runtime import RuntimeConfig, check_runtime, load_runtime
from GraphSearch.config.search import SearchConfig, check_search, load_search
from GraphSearch.config.storage import StorageConfig, check_storage, load_storage

DEFAULT_CONFIG_PATH = Path("config/default.yml")


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application root configuration."""

    runtime: RuntimeConfig
    storage: StorageConfig
    search: SearchConfig
    combine: CombineConfig
    hierarchy: HierarchyConfig
    llm: LLMConfig
    output: OutputConfig


def parse_config_dict(raw: Mapping[str, Any]) -> AppConfig:
    """Split a merged mapping into validated per-domain configs.

    Raises:
        TypeError: If a value has the wrong type.
        ValueError: If a value is missing or violates a constraint.
    """
    runtime = load_runtime(raw)
    storage = load_storage(raw)
    search = load_search(raw)
    combine = load_combine(raw)
    hierarchy = load_hierarchy(raw)
    llm = load_llm(raw)
    output = load_output(raw)

    check_runtime(runtime)
    check_storage(storage)
    check_search(search)
    check_combine(combine)
    check_hierarchy(hierarchy)
    check_llm(llm)
    check_output(output)

    config = AppConfig(
        runtime=runtime,
        storage=storage,
        search=search,
        combine=combine,
        hierarchy=hierarchy,
        llm=llm,
        output=output,
    )
    check_cross_domain(config)
    return config


def load_config(path: Path) -> AppConfig:
    """Load a YAML config file without merging defaults."""
    return load_config_with_defaults(path, default_path=path)


def load_config_with_defaults(config_path: Path, default_path: Path = DEFAULT_CONFIG_PATH) -> AppConfig:
    """Load ``default_path`` and deep-merge ``config_path`` over it."""
    base = parse_yaml(default_path.read_text(encoding="utf-8"))
    if config_path == default_path:
        return parse_config_dict(base)
    override = parse_yaml(config_path.read_text(encoding="utf-8"))
    return parse_config_dict(merge_config_dicts(base, override))


def check_cross_domain(config: AppConfig) -> None:
    """Validate constraints spanning several domains."""
    if config.search.expand_all and not config.llm.enabled:
        raise ValueError("search.expand_all=true requires llm.enabled=true")


def parse_yaml(text: str) -> dict[str, Any]:
    data = yaml.safe_load(text) or {}
    if not isinstance(data, Mapping):
        raise ValueError("Config root must be a mapping/object")
    return dict(data)


def merge_config_dicts(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Deep-merge two mappings; scalars and lists in ``override`` win."""
    merged: dict[str, Any] = dict(base)
    for key, value in override.items():
        if isinstance(merged.get(key), Mapping) and isinstance(value, Mapping):
            merged[key] = merge_config_dicts(merged[key], value)
        else:
            merged[key] = value
    return merged
