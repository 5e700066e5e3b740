"""
Test Suite Configuration
"""
from typing import Iterator

import polars as pl
import pytest

from attribution_engine.config import Settings, get_settings
from tests.factories import marketing_row, ots, subscription, upsell


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Iterator[None]:
    """Settings are re-read from the environment for every test"""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(APP_ENV="testing", DEBUG=True)


@pytest.fixture
def sample_marketing_rows() -> list:
    """Two networks, two campaigns on google, one on facebook"""
    return [
        marketing_row(
            network="Google Ads", campaign_id="c1", campaign_name="summer sale",
            adset_id="a1", adset_name="broad", ad_id="x1", ad_name="video",
            date="2026-01-01", classified_product="sleep-repair", classified_country="dk",
            cost=100.0, clicks=50, impressions=1000, conversions=5,
        ),
        marketing_row(
            network="Google Ads", campaign_id="c1", campaign_name="summer sale",
            adset_id="a1", adset_name="broad", ad_id="x2", ad_name="static",
            date="2026-01-01", classified_product="sleep-repair", classified_country="dk",
            cost=60.0, clicks=30, impressions=3000, conversions=2,
        ),
        marketing_row(
            network="Google Ads", campaign_id="c2", campaign_name="winter promo",
            adset_id="a2", adset_name="lookalike", ad_id="x3", ad_name="carousel",
            date="2026-01-02", classified_product="joint-care", classified_country="se",
            cost=40.0, clicks=10, impressions=500, conversions=1,
        ),
        marketing_row(
            network="Facebook", campaign_id="c3", campaign_name="retargeting",
            adset_id="a3", adset_name="warm", ad_id="x4", ad_name="reel",
            date="2026-01-02", classified_product="joint-care", classified_country="dk",
            cost=80.0, clicks=40, impressions=2000, conversions=4,
        ),
    ]


@pytest.fixture
def sample_sales() -> list:
    """Sales that match exactly, via fallback, and not at all"""
    return [
        # exact on x1
        subscription(source="adwords", tracking_id_4="c1", tracking_id_2="a1", tracking_id="x1",
                     has_trial=True, is_approved=True, is_new_customer=True),
        # unknown ad under c1/a1 -> adset level
        subscription(source="adwords", tracking_id_4="c1", tracking_id_2="a1", tracking_id="x9",
                     has_trial=True),
        ots(source="meta", tracking_id_4="c3", tracking_id_2="a3", tracking_id="x4", is_approved=True),
        upsell(source="facebook", tracking_id_4="c3", tracking_id_2="a3", tracking_id="x4",
               is_approved=True, is_deleted=True),
        # unknown network
        subscription(source="tiktok", tracking_id_4="c7", tracking_id_2="a7", tracking_id="x7",
                     has_trial=True),
    ]


@pytest.fixture
def marketing_df() -> pl.DataFrame:
    """Raw marketing frame as returned by the spend source"""
    return pl.DataFrame({
        "network": ["Google Ads", " Facebook ", "Google Ads"],
        "campaign_id": ["c1", "c3", "null"],
        "campaign_name": ["summer sale", "retargeting", ""],
        "adset_id": ["a1", "a3", "a5"],
        "ad_id": ["x1", "x4", "x5"],
        "date": ["01/01/2026", "02/01/2026", "02/01/2026"],
        "cost": [100.0, 80.0, 10.0],
        "clicks": [50, 40, 5],
        "impressions": [1000, 2000, 100],
        "conversions": [5, 4, 0],
    })


@pytest.fixture
def sales_df() -> pl.DataFrame:
    """Raw CRM frame mixing the three sale types"""
    return pl.DataFrame({
        "id": [1, 2, 3],
        "type": ["subscription", "ots", "upsell"],
        "date": ["2026-01-01", "2026-01-02", "2026-01-02"],
        "source": ["adwords", "fb", "fb"],
        "tracking_id_4": ["c1", "c3", "c3"],
        "tracking_id_2": ["a1", "a3", "a3"],
        "tracking_id": ["x1", "x4", "null"],
        "customer_id": [10, None, None],
        "has_trial": [True, None, None],
        "is_approved": [True, True, False],
        "is_deleted": [None, None, False],
    })
