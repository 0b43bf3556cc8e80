import logging

import pytest


@pytest.fixture(autouse=True)
def _restore_logging_state():
    """Undo logger level/handler changes made by configure_logging between tests"""
    relay = logging.getLogger("relayllm")
    root = logging.getLogger()
    relay_level, root_level = relay.level, root.level
    root_handlers = list(root.handlers)
    yield
    relay.setLevel(relay_level)
    root.setLevel(root_level)
    for handler in list(root.handlers):
        if handler not in root_handlers:
            root.removeHandler(handler)
