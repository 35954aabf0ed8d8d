from __future__ import annotations

import pytest

MATCHER_ENV_VARS = (
    "MATCHER_EXPLAINER_API_KEY",
    "MATCHER_EXPLAINER_URL",
    "MATCHER_EXPLAINER_TIMEOUT_SECONDS",
    "MATCHER_RECOMMENDATION_SEED",
)


# Apps built inside tests must never reach the real explanation endpoint.
@pytest.fixture(autouse=True)
def isolate_matcher_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in MATCHER_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
