"""
Module: models
Purpose: Shared domain types for classification (labels, results, config).
Dependencies: pydantic (ProviderConfig only)

Leaf module: the segmenter, providers, dispatcher, gateway and renderer all
import from here, so it must not import any of them.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from highlightq.config import (
    CACHE_ENABLED,
    CACHE_TTL_MS,
    PROVIDER_MODE,
    REMOTE_CREDENTIAL,
    REMOTE_ENDPOINT,
    REMOTE_TIMEOUT_SECONDS,
)

if TYPE_CHECKING:
    from highlightq.page.scanner import TextUnit


class ConfigurationError(ValueError):
    """Raised when a provider configuration update is rejected."""


# ---------------------------------------------------------------------------
# Labels and results
# ---------------------------------------------------------------------------


class SentimentLabel(str, Enum):
    POSITIVE = "Positive"
    NEGATIVE = "Negative"
    NEUTRAL = "Neutral"
    RISK = "Risk"
    INFORMATIVE = "Informative"

    @property
    def css_name(self) -> str:
        return self.value.lower()

    @classmethod
    def parse(cls, raw: Any) -> SentimentLabel | None:
        """Case-insensitive label lookup; WARNING is an alias for RISK."""
        if isinstance(raw, SentimentLabel):
            return raw
        if not isinstance(raw, str):
            return None
        upper = raw.strip().upper()
        if upper == "WARNING":
            return cls.RISK
        for label in cls:
            if label.name == upper:
                return label
        return None


RISK_SCORE_THRESHOLD = 0.6
POLARITY_THRESHOLD = 0.35


@dataclass(frozen=True)
class SentimentResult:
    """Outcome of classifying one sentence. error=True results are never cached."""

    label: SentimentLabel
    score: float
    error: bool = False

    @classmethod
    def neutral_error(cls) -> SentimentResult:
        return cls(label=SentimentLabel.NEUTRAL, score=0.0, error=True)

    @classmethod
    def from_payload(cls, payload: Any) -> SentimentResult:
        """
        Map a loose provider payload onto a result.

        Accepts a bare label string or a dict with `label`, `score`, `risk`
        and `error`. An explicit label wins; otherwise the scores decide
        (risk > 0.6 is Risk, |score| > 0.35 gives polarity); otherwise
        Neutral.

        Raises:
            ValueError: payload is neither a string nor a mapping
        """
        if isinstance(payload, str):
            return cls(label=SentimentLabel.parse(payload) or SentimentLabel.NEUTRAL, score=0.0)
        if not isinstance(payload, dict):
            raise ValueError(f"Unsupported sentiment payload type: {type(payload).__name__}")

        raw_score = payload.get("score")
        score = float(raw_score) if isinstance(raw_score, (int, float)) else 0.0
        error = bool(payload.get("error", False))

        label = SentimentLabel.parse(payload.get("label"))
        if label is None:
            risk = payload.get("risk")
            if isinstance(risk, (int, float)) and risk > RISK_SCORE_THRESHOLD:
                label = SentimentLabel.RISK
            elif score > POLARITY_THRESHOLD:
                label = SentimentLabel.POSITIVE
            elif score < -POLARITY_THRESHOLD:
                label = SentimentLabel.NEGATIVE
            else:
                label = SentimentLabel.NEUTRAL
        return cls(label=label, score=score, error=error)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"label": self.label.value, "score": self.score}
        if self.error:
            payload["error"] = True
        return payload


@dataclass
class Sentence:
    text: str
    fingerprint: str
    source_unit: TextUnit | None = None


# ---------------------------------------------------------------------------
# Provider configuration
# ---------------------------------------------------------------------------


# Legacy and snake_case spellings folded onto the persisted key names
_CANONICAL_KEYS: dict[str, str] = {
    "provider": "mode",
    "apiEndpoint": "endpoint",
    "apiKey": "credential",
    "cache_enabled": "cacheEnabled",
    "ttl_ms": "ttlMs",
    "cacheDurationMs": "ttlMs",
    "timeout_seconds": "timeoutSeconds",
}


class ProviderConfig(BaseModel):
    """
    Process-wide provider configuration.

    Persisted with camelCase keys (mode, endpoint, credential, cacheEnabled,
    ttlMs); the older extension keys (provider, apiEndpoint, apiKey,
    cacheDurationMs) are accepted on load.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    mode: Literal["local", "remote"] = Field(
        default="local", validation_alias=AliasChoices("mode", "provider")
    )
    endpoint: str | None = Field(
        default=None, validation_alias=AliasChoices("endpoint", "apiEndpoint")
    )
    credential: str | None = Field(
        default=None, validation_alias=AliasChoices("credential", "apiKey")
    )
    cache_enabled: bool = Field(
        default=True,
        validation_alias=AliasChoices("cache_enabled", "cacheEnabled"),
        serialization_alias="cacheEnabled",
    )
    ttl_ms: int = Field(
        default=24 * 60 * 60 * 1000,
        ge=0,
        validation_alias=AliasChoices("ttl_ms", "ttlMs", "cacheDurationMs"),
        serialization_alias="ttlMs",
    )
    timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        validation_alias=AliasChoices("timeout_seconds", "timeoutSeconds"),
        serialization_alias="timeoutSeconds",
    )

    @field_validator("endpoint", "credential", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("endpoint")
    @classmethod
    def _strip_trailing_slash(cls, value: str | None) -> str | None:
        return value.rstrip("/") if value else value

    @model_validator(mode="after")
    def _remote_requires_endpoint_and_credential(self) -> ProviderConfig:
        if self.mode == "remote" and not (self.endpoint and self.credential):
            raise ValueError("Remote mode requires both an endpoint and a credential")
        return self

    @classmethod
    def from_env(cls) -> ProviderConfig:
        mode = PROVIDER_MODE if PROVIDER_MODE in ("local", "remote") else "local"
        if mode == "remote" and not (REMOTE_ENDPOINT and REMOTE_CREDENTIAL):
            mode = "local"
        return cls(
            mode=mode,
            endpoint=REMOTE_ENDPOINT or None,
            credential=REMOTE_CREDENTIAL or None,
            cache_enabled=CACHE_ENABLED,
            ttl_ms=CACHE_TTL_MS,
            timeout_seconds=REMOTE_TIMEOUT_SECONDS,
        )

    def merged(self, changes: dict[str, Any]) -> ProviderConfig:
        """
        Return a validated copy with `changes` applied.

        Raises:
            ConfigurationError: the merged configuration is invalid
        """
        data = self.to_storage()
        data.update({_CANONICAL_KEYS.get(key, key): value for key, value in changes.items()})
        try:
            return ProviderConfig.model_validate(data)
        except ValidationError as exc:
            # Messages only: the rejected input may hold the credential
            reasons = "; ".join(err["msg"] for err in exc.errors())
            raise ConfigurationError(reasons) from exc

    def to_storage(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)
