"""
Unit tests for settings the application factory reads from Config.
"""

import sentry_sdk

import app as app_package
from app import create_app
from config import TestingConfig


class ProductionLikeConfig(TestingConfig):
    ENV = 'production'
    SENTRY_DSN = 'https://public@sentry.example.com/1'
    SENTRY_TRACES_SAMPLE_RATE = 0.25
    RELEASE = 'abc123'


class TestSentrySetup:

    def _create(self, config, monkeypatch):
        calls = []
        monkeypatch.setattr(sentry_sdk, 'init', lambda **kwargs: calls.append(kwargs))
        # Keep the shared test engine bound
        monkeypatch.setattr(app_package, 'init_db', lambda app: None)
        create_app(config)
        return calls

    def test_initialised_from_config(self, monkeypatch):
        calls = self._create(ProductionLikeConfig, monkeypatch)

        assert len(calls) == 1
        assert calls[0]['dsn'] == 'https://public@sentry.example.com/1'
        assert calls[0]['traces_sample_rate'] == 0.25
        assert calls[0]['environment'] == 'production'
        assert calls[0]['release'] == 'abc123'

    def test_skipped_outside_production(self, monkeypatch):
        class StagingConfig(ProductionLikeConfig):
            ENV = 'staging'

        assert self._create(StagingConfig, monkeypatch) == []

    def test_skipped_without_dsn(self, monkeypatch):
        class NoDsnConfig(ProductionLikeConfig):
            SENTRY_DSN = ''

        assert self._create(NoDsnConfig, monkeypatch) == []
