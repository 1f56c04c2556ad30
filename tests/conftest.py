"""Root test configuration for solrgate.

Isolates every test from the machine it runs on: no config file from the
working directory or home directory is picked up, and SOLRGATE_* environment
variables from the developer's shell are cleared.
"""

import pytest


@pytest.fixture(autouse=True)
def isolate_config(monkeypatch: pytest.MonkeyPatch) -> None:
    """Hide real config files and env overrides from load_config()."""
    monkeypatch.setattr("solrgate.config.DEFAULT_CONFIG_PATHS", [])
    monkeypatch.delenv("SOLRGATE_CONFIG", raising=False)
    monkeypatch.delenv("SOLRGATE_PORT", raising=False)
