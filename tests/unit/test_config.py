"""Unit tests for environment-driven settings."""

import logging

import pytest

from lockbox.config import Settings, load_settings


def test_defaults_with_empty_env():
    settings = load_settings({})
    assert settings == Settings()
    assert settings.pbkdf2_iterations == 100_000
    assert settings.chunk_size == 64 * 1024 * 1024
    assert settings.read_size == 1024 * 1024
    assert settings.log_level == logging.WARNING


def test_overrides_from_env():
    settings = load_settings(
        {
            "LOCKBOX_PBKDF2_ITERATIONS": "200000",
            "LOCKBOX_CHUNK_SIZE": "4096",
            "LOCKBOX_READ_SIZE": "512",
            "LOCKBOX_LOG_LEVEL": "debug",
        }
    )
    assert settings.pbkdf2_iterations == 200_000
    assert settings.chunk_size == 4096
    assert settings.read_size == 512
    assert settings.log_level == logging.DEBUG


def test_blank_values_use_defaults():
    assert load_settings({"LOCKBOX_CHUNK_SIZE": "  "}).chunk_size == 64 * 1024 * 1024


@pytest.mark.parametrize("value", ["abc", "0", "-5"])
def test_invalid_integer_names_variable(value):
    with pytest.raises(ValueError, match="LOCKBOX_CHUNK_SIZE"):
        load_settings({"LOCKBOX_CHUNK_SIZE": value})


def test_invalid_log_level():
    with pytest.raises(ValueError, match="LOCKBOX_LOG_LEVEL"):
        load_settings({"LOCKBOX_LOG_LEVEL": "loud"})


def test_reads_os_environ(monkeypatch):
    monkeypatch.setenv("LOCKBOX_READ_SIZE", "2048")
    assert load_settings().read_size == 2048


@pytest.mark.parametrize("value", ["1000", "10000001"])
def test_iterations_out_of_range(value):
    with pytest.raises(ValueError, match="LOCKBOX_PBKDF2_ITERATIONS"):
        load_settings({"LOCKBOX_PBKDF2_ITERATIONS": value})
