import sys
from pathlib import Path

import pytest  # type: ignore[import-not-found]

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from pyjc import config as jc_config  # noqa: E402


@pytest.fixture(autouse=True)
def reset_jc_config():
    original_manager = jc_config.JcConfigManager.from_dict(
        jc_config.config_manager.to_dict()
    )
    jc_config.config_manager = jc_config.JcConfigManager()
    yield
    jc_config.config_manager = original_manager


@pytest.fixture(autouse=True)
def isolate_jc_environment(monkeypatch):
    for name in ("JC_DATA_DIR", "JC_DEBUGGER", "JC_CONFIGURE_ARGS", "JC_CONFIG_FILE"):
        monkeypatch.delenv(name, raising=False)


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--type",
        action="store",
        default="all",
        choices=("unit", "integration", "all"),
        help="Select which tests to run: unit, integration, or all.",
    )


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    selected = config.getoption("--type")
    if selected == "all":
        return

    skip_integration = pytest.mark.skip(reason="skipped by --type unit")
    skip_unit = pytest.mark.skip(reason="skipped by --type integration")

    for item in items:
        is_integration = item.get_closest_marker("integration") is not None
        if selected == "unit" and is_integration:
            item.add_marker(skip_integration)
        elif selected == "integration" and not is_integration:
            item.add_marker(skip_unit)
