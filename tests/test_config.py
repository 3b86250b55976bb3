"""
Tests for configuration selection and the application factory wiring
"""

from config.settings import (
    get_config,
    DevelopmentConfig,
    ProductionConfig,
    TestingConfig,
)


def test_get_config_by_name():
    assert get_config('development') is DevelopmentConfig
    assert get_config('testing') is TestingConfig
    assert get_config('production') is ProductionConfig


def test_get_config_falls_back_to_flask_env(monkeypatch):
    monkeypatch.setenv('FLASK_ENV', 'testing')
    assert get_config() is TestingConfig

    monkeypatch.setenv('FLASK_ENV', 'staging')
    assert get_config() is ProductionConfig


def test_testing_config_disables_bootstrap():
    assert TestingConfig.TRANSPORT_BOOTSTRAP is False
    assert TestingConfig.TRANSPORT_WAIT_TIMEOUT == 0.0


def test_production_adds_hsts():
    assert 'Strict-Transport-Security' in ProductionConfig.SECURITY_HEADERS
    assert 'Strict-Transport-Security' not in DevelopmentConfig.SECURITY_HEADERS


def test_factory_exposes_service_and_handle(app):
    assert app.subscription_service.transport_handle is app.transport_handle
    assert app.config['STORAGE_READY'] is True
    assert not hasattr(app, 'transport_bootstrapper')
