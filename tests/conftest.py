"""Root test configuration."""

import logging

import pytest
import structlog
from stratum.providers.memory import InMemoryProvider
from stratum.resources.models import ResourceHandle, create_or_update, delete, list_resources


def pytest_configure(config):
    """Configure structlog for tests to suppress debug/info output."""
    logging.basicConfig(level=logging.WARNING, force=True)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


@pytest.fixture
def provider():
    """Fresh in-memory provider acting as the test double."""
    return InMemoryProvider()


@pytest.fixture
def scenario():
    """Group G with accounts A1 and A2, a listing, and deletion of A2."""
    group = ResourceHandle("resource_group", "G")
    a1 = ResourceHandle("storage_account", "A1", scope=group.key)
    a2 = ResourceHandle("storage_account", "A2", scope=group.key)
    accounts = ResourceHandle("storage_account", "*", scope=group.key)
    descriptors = [
        create_or_update("g", group, {"location": "westus"}),
        create_or_update("a1", a1, {"sku": "Standard_LRS"}, depends_on=["g"]),
        create_or_update("a2", a2, {"sku": "Standard_GRS"}, depends_on=["g"]),
        list_resources("list", accounts, depends_on=["a1", "a2"]),
        delete("delete-a2", a2, depends_on=["a2", "list"]),
    ]
    return {"group": group, "a1": a1, "a2": a2, "descriptors": descriptors}
