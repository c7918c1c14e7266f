import pytest


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: mark test as integration")


def pytest_collection_modifyitems(config, items):
    for item in items:
        if "lifecycle" in item.nodeid:
            item.add_marker(pytest.mark.integration)
