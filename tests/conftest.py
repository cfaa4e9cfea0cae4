from __future__ import annotations

import pytest
from django.core.cache import cache
from django.test import Client

from charge_planner.services.energy_tags import get_manual_energy_tags


@pytest.fixture
def api_client() -> Client:
    return Client()


@pytest.fixture(autouse=True)
def _reset_caches():
    cache.clear()
    get_manual_energy_tags.cache_clear()
    yield
    cache.clear()
    get_manual_energy_tags.cache_clear()


@pytest.fixture
def provider_keys(settings):
    settings.ORS_API_KEY = "ors-test-key"
    settings.OCM_API_KEY = "ocm-test-key"
    return settings
