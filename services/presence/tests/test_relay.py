import pytest
from conftest import FakeChannel

from presence.errors import ProtocolError, UnreachableUserError
from presence.events import Event
from presence.registry import PushChannelRegistry
from presence.relay import CallRelay, CallState

OFFER = {"type": "offer", "sdp": "v=0 offer"}
ANSWER = {"type": "answer", "sdp": "v=0 answer"}


@pytest.fixture
def channels() -> PushChannelRegistry:
    return PushChannelRegistry()


@pytest.fixture
def relay(channels: PushChannelRegistry) -> CallRelay:
    return CallRelay(channels)


def _online(channels: PushChannelRegistry, *nicks: str) -> list[FakeChannel]:
    result = []
    for nick in nicks:
        ch = FakeChannel(nick)
        channels.register(nick, ch)
        result.append(ch)
    return result


def test_offer_rings_callee(channels, relay) -> None:
    alice, bob = _online(channels, "alice", "bob")
    relay.offer("alice", "bob", OFFER)
    assert bob.sent == [
        Event("incoming_call", {"caller": "alice", "callee": "bob", "offer": OFFER})
    ]
    assert alice.sent == []
    assert relay.state("bob", "alice") is CallState.OFFERED


def test_offer_to_offline_callee_is_unreachable(channels, relay) -> None:
    _online(channels, "alice")
    with pytest.raises(UnreachableUserError) as exc:
        relay.offer("alice", "bob", OFFER)
    assert exc.value.nick == "bob"
    assert relay.state("alice", "bob") is CallState.IDLE


def test_second_offer_supersedes(channels, relay) -> None:
    _, bob = _online(channels, "alice", "bob")
    relay.offer("alice", "bob", OFFER)
    relay.offer("alice", "bob", {"type": "offer", "sdp": "v=0 second"})
    assert len(relay) == 1
    assert relay.get("alice", "bob").payload["sdp"] == "v=0 second"
    assert bob.topics() == ["incoming_call", "incoming_call"]


def test_answer_forwards_to_caller_and_completes(channels, relay) -> None:
    alice, bob = _online(channels, "alice", "bob")
    relay.offer("alice", "bob", OFFER)
    relay.answer("alice", "bob", ANSWER)
    assert alice.sent == [
        Event("call_accepted", {"caller": "alice", "callee": "bob", "answer": ANSWER})
    ]
    assert relay.state("alice", "bob") is CallState.IDLE


def test_answer_without_offer_is_rejected(channels, relay) -> None:
    alice, bob = _online(channels, "alice", "bob")
    with pytest.raises(ProtocolError):
        relay.answer("alice", "bob", ANSWER)
    assert alice.sent == [] and bob.sent == []


def test_answer_from_wrong_side_is_rejected(channels, relay) -> None:
    alice, _ = _online(channels, "alice", "bob")
    relay.offer("alice", "bob", OFFER)
    with pytest.raises(ProtocolError):
        relay.answer("bob", "alice", ANSWER)
    assert relay.state("alice", "bob") is CallState.OFFERED
    assert alice.sent == []


def test_offer_then_hangup_notifies_once(channels, relay) -> None:
    _, bob = _online(channels, "alice", "bob")
    relay.offer("alice", "bob", OFFER)
    bob.sent.clear()
    relay.hangup("alice", "bob")
    assert bob.sent == [Event("call_hangup", {"other": "alice"})]
    assert len(relay) == 0


def test_offer_then_hangup_offline_delivers_nothing(channels, relay) -> None:
    _, bob = _online(channels, "alice", "bob")
    relay.offer("alice", "bob", OFFER)
    bob.sent.clear()
    channels.unregister(bob)
    with pytest.raises(UnreachableUserError):
        relay.hangup("alice", "bob")
    assert bob.sent == []
    assert len(relay) == 0


def test_hangup_is_idempotent(channels, relay) -> None:
    _, bob = _online(channels, "alice", "bob")
    relay.hangup("alice", "bob")
    relay.hangup("alice", "bob")
    assert bob.topics() == ["call_hangup", "call_hangup"]


def test_callee_hangup_rejects_offer(channels, relay) -> None:
    alice, _ = _online(channels, "alice", "bob")
    relay.offer("alice", "bob", OFFER)
    relay.hangup("bob", "alice")
    assert alice.sent == [Event("call_hangup", {"other": "bob"})]
    assert relay.state("alice", "bob") is CallState.IDLE


def test_closed_callee_channel_makes_answer_and_hangup_non_fatal(channels, relay) -> None:
    alice, bob = _online(channels, "alice", "bob")
    relay.offer("alice", "bob", OFFER)
    bob.close()
    assert relay.drop_user("bob") == ["alice"]
    with pytest.raises(ProtocolError):
        relay.answer("alice", "bob", ANSWER)
    with pytest.raises(UnreachableUserError):
        relay.hangup("alice", "bob")
    assert alice.sent == [Event("call_hangup", {"other": "bob"})]


def test_drop_user_clears_every_session_naming_it(channels, relay) -> None:
    alice, bob, carol = _online(channels, "alice", "bob", "carol")
    relay.offer("alice", "bob", OFFER)
    relay.offer("carol", "alice", OFFER)
    relay.offer("bob", "carol", OFFER)
    notified = relay.drop_user("alice")
    assert sorted(notified) == ["bob", "carol"]
    assert relay.state("bob", "carol") is CallState.OFFERED
    assert len(relay) == 1
