"""
Shared fixtures
"""
from decimal import Decimal

import pytest

from storefront.config import Config


class FakeClock:
    """Millisecond clock advanced by hand"""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config(tmp_path):
    """Config independent of the environment"""
    return Config(
        api_base_url="http://store.test/api",
        auth_token=None,
        tax_rate=Decimal("0.08"),
        free_shipping_threshold=Decimal("100"),
        flat_shipping_fee=Decimal("10"),
        autosave_debounce_ms=50,
        max_item_quantity=10,
        storage_path=str(tmp_path / "storage.json"),
        _env_file=None,
    )
