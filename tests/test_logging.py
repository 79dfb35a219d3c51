import logging

import pytest

from mqtt_gateway.shared.logging import NOISY_LOGGERS, setup_logging, to_level


@pytest.fixture
def restore_levels():
    names = list(NOISY_LOGGERS) + ["gw.test.quiet", "gw.test.verbose"]
    saved = {name: logging.getLogger(name).level for name in names}
    root_level = logging.getLogger().level
    yield
    for name, level in saved.items():
        logging.getLogger(name).setLevel(level)
    logging.getLogger().setLevel(root_level)


def test_to_level():
    assert to_level("debug") == logging.DEBUG
    assert to_level("WARNING") == logging.WARNING
    assert to_level("nonsense") == logging.INFO
    assert to_level("nonsense", default=logging.ERROR) == logging.ERROR


def test_setup_logging_quiets_configured_loggers(restore_levels):
    setup_logging(
        "DEBUG",
        quiet_loggers=["gw.test.quiet"],
        logger_levels={"gw.test.verbose": "DEBUG"},
    )

    for name in NOISY_LOGGERS:
        assert logging.getLogger(name).level == logging.WARNING
    assert logging.getLogger("gw.test.quiet").level == logging.WARNING
    assert logging.getLogger("gw.test.verbose").level == logging.DEBUG
