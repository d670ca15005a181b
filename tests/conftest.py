# tests/conftest.py
import pytest

from istio_config_validator.config import set_settings


@pytest.fixture(autouse=True)
def _reset_settings():
    """CLI 会修改全局配置单例，每个用例结束后恢复默认"""
    yield
    set_settings(None)
