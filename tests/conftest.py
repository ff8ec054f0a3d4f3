import pytest

from multichain_exporter.context import reset_application_context
from multichain_exporter.metrics import reset_metrics_state
from multichain_exporter.poller.manager import reset_poller_manager
from multichain_exporter.runtime_settings import reset_runtime_settings_cache


@pytest.fixture(autouse=True)
def reset_exporter_state() -> None:
    reset_metrics_state()
    reset_application_context()
    reset_runtime_settings_cache()
    reset_poller_manager()
    yield
    reset_metrics_state()
    reset_application_context()
    reset_runtime_settings_cache()
    reset_poller_manager()
