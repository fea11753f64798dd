import logging

from apps.helpdesk.core import logging as logging_setup
from apps.helpdesk.core.config import Settings


def test_parse_otlp_headers_skips_malformed_pairs():
    headers = logging_setup.parse_otlp_headers("api-key=secret, broken ,=missing,tenant = acme")

    assert headers == {"api-key": "secret", "tenant": "acme"}
    assert logging_setup.parse_otlp_headers(None) == {}


def test_configure_logging_sets_levels():
    settings = Settings(log_level="debug", database_echo=True)

    logger = logging_setup.configure_logging(settings)

    assert logger.name == "apps.helpdesk"
    assert logger.level == logging.DEBUG
    assert logging.getLogger("sqlalchemy.engine").level == logging.INFO
    assert logging.getLogger("httpx").level == logging.WARNING


def test_configure_logging_falls_back_to_info():
    logger = logging_setup.configure_logging(Settings(log_level="chatty"))

    assert logger.level == logging.INFO


def test_init_tracer_is_disabled_by_default():
    assert logging_setup.init_tracer(Settings(otel_enabled=False)) is None
    logging_setup.shutdown_tracer(None)


def test_needs_attention_window_from_settings():
    assert Settings().needs_attention_stale_after is None
    assert Settings(needs_attention_stale_after_hours=2).needs_attention_stale_after.total_seconds() == 7200
