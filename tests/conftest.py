# tests/conftest.py
"""Shared fixtures: fake backend, client, cache and notifier"""

import pytest

from logguard.core.cache import QueryCache
from logguard.services.notifications import Notifier

from tests.fake_backend import FIXED_NOW, FakeBackend, make_anomaly, make_log_file


@pytest.fixture
def backend():
    """Backend seeded with three anomalies and one processed log file"""
    fake = FakeBackend()
    fake.add_anomalies(
        make_anomaly("a1", riskScore="9.4", detectionMethod="advanced_ml"),
        make_anomaly("a2", riskScore="7.1", detectionMethod="openai", status="confirmed"),
        make_anomaly("a3", riskScore="2.0", detectionMethod="traditional_ml"),
    )
    fake.add_log_files(make_log_file("lf1"))
    return fake

@pytest.fixture
def client(backend):
    return backend.client()

@pytest.fixture
def cache():
    return QueryCache()

@pytest.fixture
def notifier():
    return Notifier()

@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW
