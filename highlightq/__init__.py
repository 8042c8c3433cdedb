"""HighlightQ - incremental sentiment highlighting for HTML pages"""

from __future__ import annotations

__version__ = "1.0.0"


# Lazy imports to avoid loading heavy dependencies on package import
def __getattr__(name: str):
    if name == "PageSession":
        from highlightq.page.session import PageSession

        return PageSession
    if name in ("SentimentLabel", "SentimentResult", "ProviderConfig"):
        from highlightq.classification import models

        return getattr(models, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)


__all__ = [
    "PageSession",
    "ProviderConfig",
    "SentimentLabel",
    "SentimentResult",
]
