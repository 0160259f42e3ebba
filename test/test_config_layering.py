"""Tests for layered config parsing and validation."""

import os
import sys
import tempfile
import unittest
from copy import deepcopy
from pathlib import Path
from unittest.mock import patch

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "src"))

from GraphSearch.config import load_config_with_defaults, merge_config_dicts, parse_config_dict
from GraphSearch.services import create_combine_options, create_extraction_settings, create_search_service
from GraphSearch.storage import MemoryResultStore


def _base_raw_config() -> dict:
    return {
        "log": {"level": "INFO", "to_file": False, "dir": "log"},
        "storage": {"db_path": "database/graph.db", "results_dir": "database/results"},
        "search": {
            "limit": 500,
            "and_strategy": "hybrid",
            "driving_strategy": "first",
        },
        "combine": {
            "deduplicate_within": True,
            "deduplicate_across": True,
            "order_by": "first_appearance",
            "limit": 1000,
        },
        "hierarchy": {"max_depth": 3, "truncate_length": 500},
        "output": {"formats": ["console"]},
        "llm": {
            "enabled": False,
            "provider": "openai-compat",
            "base_url": "https://api.openai.com",
            "model": "gpt-4o-mini",
            "api_key_env": "LLM_API_KEY",
            "timeout": 30,
        },
    }


class TestConfigLayering(unittest.TestCase):
    def test_parse_success_with_defaults(self) -> None:
        cfg = parse_config_dict(_base_raw_config())
        self.assertEqual(cfg.runtime.level, "INFO")
        self.assertEqual(cfg.storage.db_path, "database/graph.db")
        self.assertEqual(cfg.search.order_by, "first_seen")
        self.assertFalse(cfg.search.expand_all)
        self.assertEqual(cfg.hierarchy.bullet_style, "dash")
        self.assertEqual(cfg.hierarchy.max_blocks, 100)
        self.assertIsNone(cfg.combine.max_appearances)
        self.assertEqual(cfg.llm.default_mode, "fuzzy")

    def test_log_level_is_case_insensitive(self) -> None:
        raw = _base_raw_config()
        raw["log"]["level"] = "debug"
        self.assertEqual(parse_config_dict(raw).runtime.level, "DEBUG")
        raw["log"]["level"] = "verbose"
        with self.assertRaisesRegex(ValueError, "log\\.level"):
            parse_config_dict(raw)

    def test_missing_required_section(self) -> None:
        raw = _base_raw_config()
        del raw["storage"]
        with self.assertRaisesRegex(ValueError, "Missing required config: storage"):
            parse_config_dict(raw)

    def test_output_unknown_format_error_contains_key(self) -> None:
        raw = _base_raw_config()
        raw["output"]["formats"] = ["console", "unknown"]
        with self.assertRaisesRegex(ValueError, "output\\.formats"):
            parse_config_dict(raw)

    def test_unknown_driving_strategy(self) -> None:
        raw = _base_raw_config()
        raw["search"]["driving_strategy"] = "random"
        with self.assertRaisesRegex(ValueError, "search\\.driving_strategy"):
            parse_config_dict(raw)

    def test_expand_all_requires_llm(self) -> None:
        raw = _base_raw_config()
        raw["search"]["expand_all"] = True
        with self.assertRaisesRegex(ValueError, "search\\.expand_all"):
            parse_config_dict(raw)

    def test_llm_enabled_reads_api_key_from_env(self) -> None:
        raw = _base_raw_config()
        raw["llm"]["enabled"] = True
        with patch.dict(os.environ, {"LLM_API_KEY": " test-key "}, clear=False):
            cfg = parse_config_dict(raw)
        self.assertTrue(cfg.llm.enabled)
        self.assertEqual(cfg.llm.api_key, "test-key")

    def test_llm_enabled_missing_api_key_env_error(self) -> None:
        raw = _base_raw_config()
        raw["llm"]["enabled"] = True
        with patch.dict(os.environ, {}, clear=True):
            with self.assertRaisesRegex(ValueError, "LLM enabled but LLM_API_KEY environment variable not set"):
                parse_config_dict(raw)

    def test_llm_timeout_type_error_contains_key(self) -> None:
        raw = _base_raw_config()
        raw["llm"]["timeout"] = "30"
        with self.assertRaisesRegex(TypeError, "llm\\.timeout"):
            parse_config_dict(raw)

    def test_llm_section_is_optional(self) -> None:
        raw = _base_raw_config()
        del raw["llm"]
        cfg = parse_config_dict(raw)
        self.assertFalse(cfg.llm.enabled)
        self.assertEqual(cfg.llm.api_key_env, "OPENAI_API_KEY")

    def test_hierarchy_ranges(self) -> None:
        for key, value in (("max_depth", 11), ("indent_size", 0), ("max_reference_depth", 4)):
            raw = deepcopy(_base_raw_config())
            raw["hierarchy"][key] = value
            with self.subTest(key=key):
                with self.assertRaisesRegex(ValueError, f"hierarchy\\.{key}"):
                    parse_config_dict(raw)

    def test_hierarchy_bool_rejected_as_int(self) -> None:
        raw = _base_raw_config()
        raw["hierarchy"]["max_depth"] = True
        with self.assertRaisesRegex(TypeError, "hierarchy\\.max_depth"):
            parse_config_dict(raw)

    def test_combine_limit_range(self) -> None:
        raw = _base_raw_config()
        raw["combine"]["limit"] = 20000
        with self.assertRaisesRegex(ValueError, "combine\\.limit"):
            parse_config_dict(raw)

    def test_combine_appearance_bounds(self) -> None:
        raw = _base_raw_config()
        raw["combine"]["min_appearances"] = 3
        raw["combine"]["max_appearances"] = 2
        with self.assertRaisesRegex(ValueError, "combine\\.max_appearances"):
            parse_config_dict(raw)


class TestConfigMerge(unittest.TestCase):
    def test_merge_is_deep_and_lists_replace(self) -> None:
        base = {"search": {"limit": 500, "order_by": "first_seen"}, "output": {"formats": ["console"]}}
        override = {"search": {"limit": 50}, "output": {"formats": ["json"]}}
        merged = merge_config_dicts(base, override)
        self.assertEqual(merged["search"], {"limit": 50, "order_by": "first_seen"})
        self.assertEqual(merged["output"], {"formats": ["json"]})
        self.assertEqual(base["search"]["limit"], 500)

    def test_repository_defaults_load(self) -> None:
        override = Path(tempfile.mkdtemp()) / "override.yml"
        override.write_text("search:\n  order_by: relevance\nhierarchy:\n  bullet_style: bullet\n", encoding="utf-8")
        cfg = load_config_with_defaults(override, default_path=REPO_ROOT / "config" / "default.yml")
        self.assertEqual(cfg.search.order_by, "relevance")
        self.assertEqual(cfg.search.and_strategy, "hybrid")
        self.assertEqual(cfg.hierarchy.bullet_style, "bullet")
        self.assertTrue(cfg.hierarchy.include_page_context)

    def test_config_root_must_be_mapping(self) -> None:
        override = Path(tempfile.mkdtemp()) / "override.yml"
        override.write_text("- a\n", encoding="utf-8")
        with self.assertRaisesRegex(ValueError, "mapping"):
            load_config_with_defaults(override, default_path=REPO_ROOT / "config" / "default.yml")


class TestFactories(unittest.TestCase):
    def test_config_flows_into_service(self) -> None:
        raw = _base_raw_config()
        raw["search"].update({"and_strategy": "backend", "order_by": "relevance", "limit": 20})
        raw["combine"]["order_by"] = "frequency"
        raw["hierarchy"].update({"bullet_style": "number", "include_page_context": False})
        cfg = parse_config_dict(raw)

        service = create_search_service(cfg, backend=object(), result_store=MemoryResultStore())
        self.assertEqual(service.settings.limit, 20)
        self.assertEqual(service.settings.order_by.value, "relevance")
        self.assertEqual(service.evaluator.and_strategy.value, "backend")
        self.assertEqual(create_combine_options(cfg).order_by.value, "frequency")

        extraction = create_extraction_settings(cfg)
        self.assertEqual(extraction.render.bullet_style.value, "number")
        self.assertFalse(extraction.render.include_page_context)
        self.assertEqual(extraction.hierarchy.max_depth, 3)


if __name__ == "__main__":
    unittest.main()
