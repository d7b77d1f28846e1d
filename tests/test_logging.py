"""
Unit tests for logging setup
"""
import logging

import pytest
import structlog

from storefront.logging import configure_logging


class TestConfigureLogging:
    """Test configure_logging"""

    @pytest.fixture(autouse=True)
    def restore_logging(self):
        root_level = logging.getLogger().level
        yield
        structlog.reset_defaults()
        logging.getLogger().setLevel(root_level)

    def test_binds_service_name(self):
        logger = configure_logging("storefront-test", "DEBUG")

        assert logger._context["service"] == "storefront-test"
        assert logging.getLogger().level == logging.DEBUG

    def test_urllib3_never_below_warning(self):
        configure_logging("storefront-test", "DEBUG", json_output=False)

        assert logging.getLogger("urllib3").level == logging.WARNING

    def test_unknown_level_falls_back_to_info(self):
        configure_logging("storefront-test", "chatty")

        assert logging.getLogger().level == logging.INFO
