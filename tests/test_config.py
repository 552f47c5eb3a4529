import importlib

import poolmatch.config as config
from poolmatch.services.pool_matching import MatchingConfig


def test_matching_config_defaults():
    cfg = MatchingConfig.from_mapping({"VARIETY_WEIGHT": 0.6, "COMPATIBILITY_WEIGHT": 0.4, "RECENCY_DAYS": 30})
    assert cfg == MatchingConfig(variety_weight=0.6, compatibility_weight=0.4, recency_days=30)


def test_matching_config_clamps_weights():
    cfg = MatchingConfig.from_mapping({"VARIETY_WEIGHT": 3, "COMPATIBILITY_WEIGHT": -1, "RECENCY_DAYS": "14"})
    assert cfg.variety_weight == 1.0
    assert cfg.compatibility_weight == 0.0
    assert cfg.recency_days == 14


def test_matching_config_json_override(monkeypatch):
    monkeypatch.setenv("MATCHING_CONFIG_JSON", '{"RECENCY_DAYS": 10}')
    try:
        reloaded = importlib.reload(config)
        assert reloaded.DEFAULT_MATCHING_CONFIG["RECENCY_DAYS"] == 10
        assert reloaded.DEFAULT_MATCHING_CONFIG["VARIETY_WEIGHT"] == 0.6
    finally:
        monkeypatch.delenv("MATCHING_CONFIG_JSON")
        importlib.reload(config)


def test_malformed_json_override_is_ignored(monkeypatch):
    monkeypatch.setenv("MATCHING_CONFIG_JSON", "{not json")
    try:
        reloaded = importlib.reload(config)
        assert reloaded.DEFAULT_MATCHING_CONFIG["RECENCY_DAYS"] == 30
    finally:
        monkeypatch.delenv("MATCHING_CONFIG_JSON")
        importlib.reload(config)
