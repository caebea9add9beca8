import pytest
from fakes import FALLBACK_CHANNEL, FakeSlackClient, FakeWebSocket

from chat_relay.schemas.message import Ingress, Provenance
from chat_relay.schemas.slack import ExternalMessageEvent
from chat_relay.services.errors import MessageValidationError
from chat_relay.services.hub import CHAT_MESSAGE, SLACK_MESSAGE
from chat_relay.services.registry import UserKey
from chat_relay.services.relay import Relay
from chat_relay.services.slack import SlackError


def slack_event(ts: str = "1700000000.000100", **fields: object) -> ExternalMessageEvent:
    payload = {"type": "message", "ts": ts, "text": "hi there", "user": "U42", "channel": "C1"}
    payload.update(fields)
    return ExternalMessageEvent.from_slack(payload)


async def started(relay: Relay) -> FakeWebSocket:
    relay.start()
    socket = FakeWebSocket()
    await relay.hub.connect(socket)
    return socket


@pytest.mark.asyncio
async def test_dispatch_local_stores_and_broadcasts(relay: Relay) -> None:
    socket = await started(relay)

    result = await relay.dispatcher.dispatch_local(
        {"message": "hello", "sender": "alice", "contact": "a@x.com", "clientMessageId": "c1"},
        Ingress.PUSH,
    )

    assert result.duplicate is False
    assert result.message.id == "c1"
    assert result.message.provenance is Provenance.LOCAL
    assert relay.state.chat_messages.contains("c1")
    assert socket.sent == [{"event": CHAT_MESSAGE, "data": result.message.to_wire()}]


@pytest.mark.asyncio
async def test_dispatch_local_generates_id_and_accepts_text_alias(relay: Relay) -> None:
    result = await relay.dispatcher.dispatch_local({"text": "hi", "sender": "bob"}, Ingress.HTTP)
    assert result.message.text == "hi"
    assert len(result.message.id) == 32


@pytest.mark.asyncio
async def test_duplicate_local_message_is_not_rebroadcast(relay: Relay) -> None:
    socket = await started(relay)
    payload = {"message": "hello", "sender": "alice", "clientMessageId": "c1"}

    await relay.dispatcher.dispatch_local(payload, Ingress.PUSH)
    second = await relay.dispatcher.dispatch_local(payload, Ingress.HTTP)

    assert second.duplicate is True
    assert len(relay.state.chat_messages) == 1
    assert socket.events() == [CHAT_MESSAGE]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"sender": "alice"},
        {"message": "   ", "sender": "alice"},
        {"message": "hello"},
        {"message": "hello", "sender": ""},
    ],
)
async def test_dispatch_local_rejects_missing_fields(relay: Relay, payload: dict) -> None:
    with pytest.raises(MessageValidationError):
        await relay.dispatcher.dispatch_local(payload, Ingress.HTTP)
    assert len(relay.state.chat_messages) == 0


@pytest.mark.asyncio
async def test_dispatch_local_fills_channel_on_cache_hit(relay: Relay) -> None:
    relay.state.channels.bind(UserKey("alice", "a@x.com"), "C9")
    result = await relay.dispatcher.dispatch_local(
        {"message": "hello", "sender": "alice", "contact": "a@x.com"}, Ingress.PUSH
    )
    assert result.message.channel_id == "C9"


@pytest.mark.asyncio
async def test_relay_to_slack_posts_into_user_channel(
    relay: Relay, fake_slack: FakeSlackClient
) -> None:
    result = await relay.dispatcher.dispatch_local(
        {"message": "a < b & c", "sender": "alice", "contact": "a@x.com"}, Ingress.HTTP
    )

    status = await relay.dispatcher.relay_to_slack(result.message)

    assert status.success is True
    assert status.fallback is False
    channel_id = relay.state.channels.lookup(UserKey("alice", "a@x.com"))
    assert status.channel_id == channel_id
    assert fake_slack.posted[-1] == (channel_id, "*alice*: a &lt; b &amp; c")


@pytest.mark.asyncio
async def test_relay_without_contact_uses_fallback(
    relay: Relay, fake_slack: FakeSlackClient
) -> None:
    result = await relay.dispatcher.dispatch_local({"message": "hi", "sender": "anon"}, Ingress.HTTP)

    status = await relay.dispatcher.relay_to_slack(result.message)

    assert status.success is True
    assert status.fallback is True
    assert status.channel_id == FALLBACK_CHANNEL
    assert fake_slack.count("conversations.create") == 0


@pytest.mark.asyncio
async def test_relay_failure_is_reported_not_raised(
    relay: Relay, fake_slack: FakeSlackClient
) -> None:
    fake_slack.post_error = SlackError("timeout")
    result = await relay.dispatcher.dispatch_local({"message": "hi", "sender": "anon"}, Ingress.HTTP)

    status = await relay.dispatcher.relay_to_slack(result.message)

    assert status.success is False
    assert status.error == "timeout"
    assert relay.state.chat_messages.contains(result.message.id)


@pytest.mark.asyncio
async def test_relay_when_slack_disabled(relay: Relay, fake_slack: FakeSlackClient) -> None:
    fake_slack.enabled = False
    result = await relay.dispatcher.dispatch_local({"message": "hi", "sender": "anon"}, Ingress.HTTP)

    status = await relay.dispatcher.relay_to_slack(result.message)

    assert status.success is False
    assert fake_slack.calls == []


@pytest.mark.asyncio
async def test_schedule_relay_runs_in_background(
    relay: Relay, fake_slack: FakeSlackClient
) -> None:
    result = await relay.dispatcher.dispatch_local({"message": "hi", "sender": "anon"}, Ingress.PUSH)

    task = relay.dispatcher.schedule_relay(result.message)
    status = await task

    assert status.success is True
    assert fake_slack.posted == [(FALLBACK_CHANNEL, "*anon*: hi")]


@pytest.mark.asyncio
async def test_dispatch_external_tags_channel_owner(
    relay: Relay, fake_slack: FakeSlackClient
) -> None:
    socket = await started(relay)
    fake_slack.users["U42"] = "Support Agent"
    relay.state.channels.bind(UserKey("alice", "a@x.com"), "C1")

    message = await relay.dispatcher.dispatch_external(slack_event(text="a &lt; b"))

    assert message is not None
    assert message.sender == "Support Agent"
    assert message.target_user == "alice"
    assert message.target_contact == "a@x.com"
    assert message.text == "a < b"
    assert message.provenance is Provenance.EXTERNAL
    assert message.user_id == "U42"
    assert socket.events() == [SLACK_MESSAGE]
    assert socket.sent[0]["data"]["isFromSlack"] is True


@pytest.mark.asyncio
async def test_dispatch_external_unbound_channel_has_no_target(relay: Relay) -> None:
    message = await relay.dispatcher.dispatch_external(slack_event(channel="CUNKNOWN"))
    assert message is not None
    assert message.target_user is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "fields",
    [
        {"bot_id": "B1"},
        {"subtype": "channel_join"},
        {"subtype": "bot_message"},
        {"user": None},
    ],
)
async def test_dispatch_external_drops_echoes(relay: Relay, fields: dict) -> None:
    socket = await started(relay)

    assert await relay.dispatcher.dispatch_external(slack_event(**fields)) is None

    assert len(relay.state.slack_messages) == 0
    assert socket.sent == []


@pytest.mark.asyncio
async def test_dispatch_external_keeps_file_shares(relay: Relay) -> None:
    message = await relay.dispatcher.dispatch_external(slack_event(subtype="file_share"))
    assert message is not None


@pytest.mark.asyncio
async def test_dispatch_external_dedups_by_ts(relay: Relay) -> None:
    socket = await started(relay)
    event = slack_event()

    assert await relay.dispatcher.dispatch_external(event) is not None
    assert await relay.dispatcher.dispatch_external(event) is None

    assert len(relay.state.slack_messages) == 1
    assert socket.events() == [SLACK_MESSAGE]


def test_handle_channel_removed_invalidates_binding(relay: Relay) -> None:
    key = UserKey("alice", "a@x.com")
    relay.state.channels.bind(key, "C1")
    assert relay.dispatcher.handle_channel_removed("C1") == key
    assert relay.state.channels.lookup(key) is None


@pytest.mark.asyncio
async def test_dispatch_external_keeps_thread_context(relay: Relay) -> None:
    message = await relay.dispatcher.dispatch_external(
        slack_event(ts="1700000000.000300", thread_ts="1700000000.000100")
    )
    assert message is not None
    assert message.thread_ts == "1700000000.000100"
    assert message.to_wire()["threadTs"] == "1700000000.000100"
