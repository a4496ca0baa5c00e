"""Tests for extraction config loading."""

from __future__ import annotations

import pytest

from orderharvest.core.config import (
    ExtractionConfig,
    ItemCountCheck,
    load_extraction_config_from_env,
)


class TestExtractionConfig:
    """Tests for ExtractionConfig defaults and validation."""

    def test_defaults(self) -> None:
        # act
        config = ExtractionConfig()

        # assert
        assert config.default_region == "us"
        assert config.item_count_check is ItemCountCheck.AT_LEAST
        assert config.skip_statuses == frozenset({"cancelled"})
        assert config.stability_threshold == 3

    def test_rejects_non_positive_timeout(self) -> None:
        # act & assert
        with pytest.raises(ValueError, match="probe_timeout"):
            ExtractionConfig(probe_timeout=0)

    def test_rejects_zero_stability_threshold(self) -> None:
        # act & assert
        with pytest.raises(ValueError, match="stability_threshold"):
            ExtractionConfig(stability_threshold=0)


class TestLoadExtractionConfigFromEnv:
    """Tests for load_extraction_config_from_env."""

    def test_defaults_without_env(self) -> None:
        # act
        config = load_extraction_config_from_env()

        # assert
        assert config == ExtractionConfig()

    def test_reads_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        # input
        monkeypatch.setenv("ORDERHARVEST_REGION", "UK")
        monkeypatch.setenv("ORDERHARVEST_PROBE_TIMEOUT", "2.5")
        monkeypatch.setenv("ORDERHARVEST_MAX_SCROLLS", "12")
        monkeypatch.setenv("ORDERHARVEST_ITEM_COUNT_CHECK", "exact")
        monkeypatch.setenv("ORDERHARVEST_SKIP_STATUSES", "Cancelled, refunded,")

        # act
        config = load_extraction_config_from_env()

        # assert
        assert config.default_region == "uk"
        assert config.probe_timeout == 2.5
        assert config.max_scrolls == 12
        assert config.item_count_check is ItemCountCheck.EXACT
        assert config.skip_statuses == frozenset({"cancelled", "refunded"})

    def test_unknown_region(self, monkeypatch: pytest.MonkeyPatch) -> None:
        # input
        monkeypatch.setenv("ORDERHARVEST_REGION", "atlantis")

        # act & assert
        with pytest.raises(ValueError, match="ORDERHARVEST_REGION"):
            load_extraction_config_from_env()

    def test_bad_number(self, monkeypatch: pytest.MonkeyPatch) -> None:
        # input
        monkeypatch.setenv("ORDERHARVEST_MAX_SCROLLS", "lots")

        # act & assert
        with pytest.raises(ValueError, match="ORDERHARVEST_MAX_SCROLLS"):
            load_extraction_config_from_env()

    def test_bad_item_count_check(self, monkeypatch: pytest.MonkeyPatch) -> None:
        # input
        monkeypatch.setenv("ORDERHARVEST_ITEM_COUNT_CHECK", "roughly")

        # act & assert
        with pytest.raises(ValueError, match="ITEM_COUNT_CHECK"):
            load_extraction_config_from_env()
