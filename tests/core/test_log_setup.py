import logging

from src.taskmemo.core.log_setup import ROOT_LOGGER_NAME, configure_logging, mask_token


def test_configure_logging_is_idempotent():
    log = configure_logging("DEBUG")
    handler_count = len(log.handlers)
    again = configure_logging("WARNING")

    assert again is log
    assert len(again.handlers) == handler_count
    assert again.level == logging.WARNING
    assert log.name == ROOT_LOGGER_NAME


def test_configure_logging_unknown_level_falls_back_to_info():
    log = configure_logging("LOUD")
    assert log.level == logging.INFO


def test_mask_token():
    assert mask_token(None) == "(not set)"
    assert mask_token("short") == "********"
    assert mask_token("abcd1234efgh5678") == "abcd********5678"
