from __future__ import annotations

from collections.abc import Generator
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from forecast.main import create_app
from forecast.services.forecast_service import ForecastService, ResultCache, get_forecast_service
from forecast.services.revenue import StaticFeeRates
from forecast.services.skill_resolver import CatalogSkillLookup, SkillNameCache, SkillResolver

SKILL_CATALOG = {
    "a1b2c3d4-0000-0000-0000-000000000001": "Tax",
    "a1b2c3d4-0000-0000-0000-000000000002": "Audit",
    "a1b2c3d4-0000-0000-0000-000000000003": "CPA",
}


@pytest.fixture()
def service() -> ForecastService:
    return ForecastService(
        resolver=SkillResolver(CatalogSkillLookup(SKILL_CATALOG), SkillNameCache()),
        fee_rates=StaticFeeRates({"CPA": "250.00", "Tax": "100.00"}),
        default_fee_rate=Decimal("75.00"),
        result_cache=ResultCache(8),
    )


@pytest.fixture()
def client(service: ForecastService) -> Generator[TestClient, None, None]:
    app = create_app()
    app.dependency_overrides[get_forecast_service] = lambda: service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
