# tests/conftest.py
from __future__ import annotations

from collections.abc import Iterator

import pytest
from fakes import FALLBACK_CHANNEL, SIGNING_SECRET, FakeSlackClient, ManualScheduler
from fastapi import FastAPI
from fastapi.testclient import TestClient

from chat_relay.core.settings import Settings
from chat_relay.main import create_app
from chat_relay.services.relay import Relay, build_relay


@pytest.fixture()
def test_settings() -> Settings:
    return Settings(
        SLACK_BOT_TOKEN="xoxb-test",
        SLACK_SIGNING_SECRET=SIGNING_SECRET,
        SLACK_DEFAULT_CHANNEL_ID=FALLBACK_CHANNEL,
        SLACK_DEFAULT_USERS=["UDEFAULT1", "UDEFAULT2"],
        LOG_LEVEL="DEBUG",
    )


@pytest.fixture()
def fake_slack() -> FakeSlackClient:
    return FakeSlackClient()


@pytest.fixture()
def manual_scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture()
def relay(
    test_settings: Settings,
    fake_slack: FakeSlackClient,
    manual_scheduler: ManualScheduler,
) -> Relay:
    return build_relay(test_settings, slack_client=fake_slack, scheduler=manual_scheduler)


@pytest.fixture()
def app(test_settings: Settings, relay: Relay) -> FastAPI:
    return create_app(test_settings, relay)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client
