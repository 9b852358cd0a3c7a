"""
Pytest configuration and shared fixtures for LinkLoom tests.

Fake probe / categorizer implementations live in ``fakes.py`` so test
modules can import them directly.
"""

from typing import List

import pytest

from fakes import FakeClassifier, FakeProbe
from linkloom.core.data_models import Bookmark


@pytest.fixture(autouse=True)
def clear_api_key_env(monkeypatch):
    """Keep a developer's OPENAI_API_KEY out of configuration tests."""
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)


@pytest.fixture
def sample_bookmarks() -> List[Bookmark]:
    """Five bookmarks with recognisable titles."""
    return [
        Bookmark(id="1", url="https://github.com/psf/requests", title="Requests on GitHub"),
        Bookmark(id="2", url="https://www.bbc.co.uk/news", title="BBC News"),
        Bookmark(id="3", url="https://docs.python.org/3/", title="Python documentation"),
        Bookmark(id="4", url="https://www.coursera.org/learn/ml", title="Machine Learning course"),
        Bookmark(id="5", url="https://example.org/misc", title="Something else"),
    ]


@pytest.fixture
def fake_probe() -> FakeProbe:
    return FakeProbe()


@pytest.fixture
def fake_classifier() -> FakeClassifier:
    return FakeClassifier()
