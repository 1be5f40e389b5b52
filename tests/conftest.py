import logging

import pytest

from copyloader.utils import logging as logging_module


@pytest.fixture(autouse=True)
def configure_logging():
    """Configure logging to avoid Rich Text object issues in tests."""
    root = logging.getLogger()
    for handler in root.handlers[:]:
        if "Rich" in handler.__class__.__name__:
            root.removeHandler(handler)
    # Set to WARNING level to reduce noise in tests
    logging.basicConfig(level=logging.WARNING, format="%(message)s", force=True)
    original = logging_module.logger
    yield
    # Tests may swap the global logger via configure_logging()
    logging_module.logger = original
    logging.basicConfig(level=logging.INFO, force=True)
