import os
from pathlib import Path

import pytest

# Test layer by directory name; integration tests also count as slow.
LAYER_MARKERS = {
    "domain": ("domain",),
    "application": ("application",),
    "bdd": ("application",),
    "integration": ("integration", "slow"),
}


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config overlay from domain.toml to run tests with",
    )


def pytest_sessionstart(session):
    """Select the config overlay before any domain module is imported.

    Domain setup and per-test context live in ``tests/safety_notifications/conftest.py``.
    """
    os.environ["PROTEAN_ENV"] = session.config.option.env


def pytest_collection_modifyitems(config, items):
    for item in items:
        parts = Path(item.fspath).parts
        for layer, markers in LAYER_MARKERS.items():
            if layer not in parts:
                continue
            for name in markers:
                if name == "slow" and any(m.name == "fast" for m in item.iter_markers()):
                    continue
                item.add_marker(getattr(pytest.mark, name))
