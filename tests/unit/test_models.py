"""Tests for sentiment labels, results and provider configuration"""

import pytest

from highlightq.classification.models import (
    ConfigurationError,
    ProviderConfig,
    SentimentLabel,
    SentimentResult,
)


class TestSentimentLabel:
    def test_parse_is_case_insensitive(self):
        assert SentimentLabel.parse("positive") is SentimentLabel.POSITIVE
        assert SentimentLabel.parse("  INFORMATIVE ") is SentimentLabel.INFORMATIVE

    def test_warning_is_risk(self):
        assert SentimentLabel.parse("Warning") is SentimentLabel.RISK

    def test_unknown_label(self):
        assert SentimentLabel.parse("ecstatic") is None
        assert SentimentLabel.parse(42) is None

    def test_css_name(self):
        assert SentimentLabel.RISK.css_name == "risk"


class TestSentimentResultFromPayload:
    def test_label_wins_over_scores(self):
        result = SentimentResult.from_payload({"label": "negative", "score": 0.9, "risk": 0.9})
        assert result.label is SentimentLabel.NEGATIVE
        assert result.score == 0.9

    def test_risk_threshold(self):
        assert SentimentResult.from_payload({"risk": 0.7}).label is SentimentLabel.RISK
        assert SentimentResult.from_payload({"risk": 0.6}).label is SentimentLabel.NEUTRAL

    def test_polarity_thresholds(self):
        assert SentimentResult.from_payload({"score": 0.5}).label is SentimentLabel.POSITIVE
        assert SentimentResult.from_payload({"score": -0.5}).label is SentimentLabel.NEGATIVE
        assert SentimentResult.from_payload({"score": 0.2}).label is SentimentLabel.NEUTRAL

    def test_bare_string(self):
        assert SentimentResult.from_payload("Risk").label is SentimentLabel.RISK
        assert SentimentResult.from_payload("nonsense").label is SentimentLabel.NEUTRAL

    def test_unsupported_type_raises(self):
        with pytest.raises(ValueError):
            SentimentResult.from_payload(["Positive"])

    def test_payload_round_trip_keeps_error_flag(self):
        original = SentimentResult.neutral_error()
        restored = SentimentResult.from_payload(original.to_payload())
        assert restored == original


class TestProviderConfig:
    def test_defaults_are_local_with_cache(self):
        config = ProviderConfig()
        assert config.mode == "local"
        assert config.cache_enabled is True
        assert config.ttl_ms == 24 * 60 * 60 * 1000

    def test_remote_requires_endpoint_and_credential(self):
        with pytest.raises(ValueError):
            ProviderConfig(mode="remote", endpoint="https://api.example.com")

    def test_legacy_keys_accepted(self):
        config = ProviderConfig.model_validate(
            {
                "provider": "remote",
                "apiEndpoint": "https://api.example.com/",
                "apiKey": "sk-test",
                "cacheDurationMs": 1000,
            }
        )
        assert config.mode == "remote"
        assert config.endpoint == "https://api.example.com"
        assert config.credential == "sk-test"
        assert config.ttl_ms == 1000

    def test_blank_strings_become_none(self):
        config = ProviderConfig(endpoint="   ", credential="")
        assert config.endpoint is None
        assert config.credential is None

    def test_storage_uses_camel_case(self):
        stored = ProviderConfig(cache_enabled=False, ttl_ms=5).to_storage()
        assert stored["cacheEnabled"] is False
        assert stored["ttlMs"] == 5
        assert ProviderConfig.model_validate(stored) == ProviderConfig(cache_enabled=False, ttl_ms=5)

    def test_merged_applies_changes(self):
        config = ProviderConfig().merged({"cache_enabled": False, "ttlMs": 10})
        assert config.cache_enabled is False
        assert config.ttl_ms == 10

    def test_merged_rejects_invalid_without_echoing_input(self):
        with pytest.raises(ConfigurationError) as exc_info:
            ProviderConfig().merged({"mode": "remote", "apiKey": "sk-very-secret"})
        assert "endpoint" in str(exc_info.value)
        assert "sk-very-secret" not in str(exc_info.value)


def test_package_exposes_lazy_attributes():
    import highlightq
    from highlightq.page.session import PageSession

    assert highlightq.SentimentLabel is SentimentLabel
    assert highlightq.PageSession is PageSession
    with pytest.raises(AttributeError):
        highlightq.NotAThing
