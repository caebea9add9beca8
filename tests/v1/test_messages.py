# tests/v1/test_messages.py
from fakes import FALLBACK_CHANNEL, FakeSlackClient, make_message
from fastapi.testclient import TestClient

from chat_relay.schemas.message import Provenance
from chat_relay.services.registry import UserKey
from chat_relay.services.relay import Relay


def test_post_message_relays_to_user_channel(
    client: TestClient, relay: Relay, fake_slack: FakeSlackClient
) -> None:
    r = client.post(
        "/messages",
        json={"message": "hello", "sender": "alice", "contact": "a@x.com", "clientMessageId": "c1"},
    )
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["message"]["id"] == "c1"
    assert body["message"]["isFromSlack"] is False
    assert body["slackStatus"]["success"] is True
    assert body["slackStatus"]["fallback"] is False
    assert body["slackStatus"]["channelId"] == relay.state.channels.lookup(
        UserKey("alice", "a@x.com")
    )
    assert fake_slack.created == ["user-alice-email-axcom"]


def test_post_message_without_contact_goes_to_fallback(client: TestClient) -> None:
    r = client.post("/messages", json={"message": "hello", "sender": "anon"})
    status = r.json()["slackStatus"]
    assert status["fallback"] is True
    assert status["channelId"] == FALLBACK_CHANNEL


def test_post_message_duplicate_is_not_relayed_twice(
    client: TestClient, fake_slack: FakeSlackClient
) -> None:
    payload = {"message": "hello", "sender": "anon", "clientMessageId": "dup"}
    client.post("/messages", json=payload)
    r = client.post("/messages", json=payload)

    assert r.json()["duplicate"] is True
    assert r.json()["slackStatus"] is None
    assert fake_slack.count("chat.postMessage") == 1


def test_post_message_missing_fields_is_400(client: TestClient, relay: Relay) -> None:
    r = client.post("/messages", json={"sender": "alice"})
    assert r.status_code == 400
    assert r.json()["success"] is False
    assert "required" in r.json()["message"]
    assert len(relay.state.chat_messages) == 0


def test_post_message_non_object_body_is_400(client: TestClient) -> None:
    r = client.post("/messages", json=["hello"])
    assert r.status_code == 400
    assert r.json()["success"] is False


def test_get_messages_filters_by_viewer(client: TestClient, relay: Relay) -> None:
    relay.state.channels.bind(UserKey("alice", "a@x.com"), "C1")
    relay.state.channels.bind(UserKey("bob", "b@x.com"), "C2")
    relay.state.slack_messages.append(
        make_message(
            "1.2",
            provenance=Provenance.EXTERNAL,
            channel_id="C1",
            target_user="alice",
            timestamp="2024-01-01T10:00:02+00:00",
        )
    )
    relay.state.slack_messages.append(
        make_message(
            "1.1",
            provenance=Provenance.EXTERNAL,
            channel_id="C2",
            target_user="bob",
            timestamp="2024-01-01T10:00:01+00:00",
        )
    )
    relay.state.slack_messages.append(
        make_message(
            "1.0",
            provenance=Provenance.EXTERNAL,
            channel_id="C1",
            timestamp="2024-01-01T10:00:00+00:00",
        )
    )

    r = client.get("/messages", params={"user": "alice", "contact": "a@x.com"})
    assert r.status_code == 200
    assert [m["id"] for m in r.json()["messages"]] == ["1.0", "1.2"]
    assert all(m["isFromSlack"] for m in r.json()["messages"])

    everything = client.get("/messages").json()["messages"]
    assert [m["id"] for m in everything] == ["1.0", "1.1", "1.2"]
