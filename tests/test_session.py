import pytest

import hector.session
from hector.errors import (
    CannotSendToChannel,
    ErroneousNickname,
    NeedMoreParams,
    NicknameInUse,
    NoSuchNickOrChannel,
)
from hector.request import Request

from helpers import send


@pytest.fixture
def pair(hub, register):
    """alice and bob, both in #test, with join chatter cleared."""
    alice, alice_conn = register("alice", realname="Alice A")
    bob, bob_conn = register("bob", username="bobby")
    send(alice, "JOIN #test")
    send(bob, "JOIN #test")
    alice_conn.clear()
    bob_conn.clear()
    return alice, alice_conn, bob, bob_conn


def test_welcome_without_motd(register) -> None:
    alice, conn = register("alice")
    alice.welcome()
    assert conn.lines() == [
        ":hector.irc 001 alice :Welcome to IRC",
        ":hector.irc 422 alice :MOTD File is missing",
    ]


def test_welcome_with_motd(hub, register) -> None:
    from dataclasses import replace

    hub.config = replace(hub.config, motd="line one\nline two")
    alice, conn = register("alice")
    alice.welcome()
    assert conn.commands() == ["001", "375", "372", "372", "376"]
    assert str(conn.responses[2]) == ":hector.irc 372 alice :- line one"


def test_unknown_command_is_silently_ignored(register) -> None:
    alice, conn = register("alice")
    assert send(alice, "FROBNICATE a b :c") is None
    assert conn.responses == []


def test_request_is_cleared_after_each_command(register) -> None:
    alice, _ = register("alice")
    send(alice, "JOIN #test")
    with pytest.raises(RuntimeError):
        alice.request
    assert isinstance(send(alice, "PRIVMSG nobody :hi"), NoSuchNickOrChannel)
    with pytest.raises(RuntimeError):
        alice.request


def test_channel_privmsg_reaches_everyone_but_sender(pair) -> None:
    alice, alice_conn, bob, bob_conn = pair

    assert send(alice, "PRIVMSG #test :hi") is None

    assert alice_conn.responses == []
    assert bob_conn.lines() == [":alice!user@hector PRIVMSG #test :hi"]
    message = bob_conn.responses[0]
    assert message.source == "alice!user@hector"
    assert message.text == "hi"


def test_channel_notice_uses_notice_command(pair) -> None:
    _, alice_conn, bob, bob_conn = pair
    send(bob, "NOTICE #test :psst")
    assert alice_conn.lines() == [":bob!bobby@hector NOTICE #test :psst"]
    assert bob_conn.responses == []


def test_privmsg_to_channel_without_membership_is_rejected(hub, register, pair) -> None:
    _, alice_conn, _, bob_conn = pair
    carol, carol_conn = register("carol")

    error = send(carol, "PRIVMSG #test :let me in")

    assert isinstance(error, CannotSendToChannel)
    assert error.kind.numeric == "404"
    assert error.target == "#test"
    assert alice_conn.responses == []
    assert bob_conn.responses == []
    assert carol_conn.responses == []


def test_privmsg_to_missing_channel(register) -> None:
    alice, _ = register("alice")
    error = send(alice, "PRIVMSG #nowhere :hello")
    assert isinstance(error, NoSuchNickOrChannel)
    assert error.kind.numeric == "401"


def test_privmsg_to_nickname_is_delivered_once(register) -> None:
    alice, alice_conn = register("alice")
    bob, bob_conn = register("bob")

    send(alice, "PRIVMSG Bob :hey you")

    assert bob_conn.lines() == [":alice!user@hector PRIVMSG Bob :hey you"]
    assert alice_conn.responses == []


def test_privmsg_to_missing_nickname(register) -> None:
    alice, _ = register("alice")
    error = send(alice, "PRIVMSG ghost :boo")
    assert isinstance(error, NoSuchNickOrChannel)
    assert error.target == "ghost"


def test_privmsg_without_destination_or_text(register) -> None:
    alice, _ = register("alice")
    assert isinstance(send(alice, "PRIVMSG"), NeedMoreParams)
    assert isinstance(send(alice, "PRIVMSG #test"), NeedMoreParams)


def test_privmsg_updates_activity_clock(register, monkeypatch) -> None:
    alice, _ = register("alice")
    bob, _ = register("bob")
    start = alice.connected

    monkeypatch.setattr(hector.session, "_now", lambda: start + 30)
    assert alice.idle() == 30
    send(alice, "PRIVMSG bob :ping")
    assert alice.last_message == start + 30
    assert alice.idle() == 0

    monkeypatch.setattr(hector.session, "_now", lambda: start + 42)
    assert alice.idle() == 12


def test_idle_never_negative(register, monkeypatch) -> None:
    alice, _ = register("alice")
    monkeypatch.setattr(hector.session, "_now", lambda: alice.last_message - 5)
    assert alice.idle() == 0


def test_join_accepts_comma_separated_list(hub, register) -> None:
    alice, _ = register("alice")
    send(alice, "JOIN #one,#two")
    assert [c.name for c in alice.channels()] == ["#one", "#two"]


def test_join_of_malformed_channel_is_rejected(hub, register) -> None:
    alice, _ = register("alice")
    assert isinstance(send(alice, "JOIN nosigil"), NoSuchNickOrChannel)
    assert hub.channels.names() == []


def test_part_uses_text_as_reason(pair) -> None:
    alice, alice_conn, bob, bob_conn = pair

    send(bob, "PART #test :gotta go")

    assert alice_conn.lines() == [":bob!bobby@hector PART #test :gotta go"]
    assert bob.channels() == []


def test_part_of_missing_channel_fails(register) -> None:
    alice, _ = register("alice")
    assert isinstance(send(alice, "PART #missing"), NoSuchNickOrChannel)


def test_names(pair) -> None:
    alice, alice_conn, _, _ = pair
    send(alice, "NAMES #test")
    assert alice_conn.lines() == [
        ":hector.irc 353 alice = #test :alice bob",
        ":hector.irc 366 alice #test :End of /NAMES list.",
    ]


def test_topic_set_and_query(pair) -> None:
    alice, alice_conn, bob, bob_conn = pair

    send(alice, "TOPIC #test :fresh topic")
    assert bob_conn.lines() == [":alice!user@hector TOPIC #test :fresh topic"]

    bob_conn.clear()
    send(bob, "TOPIC #test")
    assert bob_conn.commands() == ["332", "333"]
    assert bob_conn.responses[0].text == "fresh topic"
    assert bob_conn.responses[1].args[:3] == ("bob", "#test", "alice")


def test_topic_by_non_member_is_rejected(pair, register) -> None:
    carol, _ = register("carol")
    assert isinstance(send(carol, "TOPIC #test :mine now"), CannotSendToChannel)


def test_ping_replies_with_pong_from_server(register) -> None:
    alice, conn = register("alice")
    send(alice, "PING :12345")
    assert conn.lines() == [":hector.irc PONG hector.irc :12345"]


def test_whois_existing_session(pair, monkeypatch) -> None:
    alice, alice_conn, bob, _ = pair
    monkeypatch.setattr(hector.session, "_now", lambda: bob.last_message + 7)

    send(alice, "WHOIS bob")

    assert alice_conn.lines() == [
        ":hector.irc 311 alice bob bobby hector.irc * :bobby",
        ":hector.irc 319 alice bob :#test",
        ":hector.irc 312 alice bob hector.irc :Hard Hecting",
        f":hector.irc 317 alice bob 7 {bob.connected} :seconds idle, signon time",
        ":hector.irc 318 alice bob :End of /WHOIS list.",
    ]


def test_whois_omits_channels_line_when_not_in_any(register) -> None:
    alice, alice_conn = register("alice")
    register("bob")
    send(alice, "WHOIS bob")
    assert alice_conn.commands() == ["311", "312", "317", "318"]


def test_whois_missing_nickname_still_ends_list(register) -> None:
    alice, conn = register("alice")

    assert send(alice, "WHOIS ghost") is None

    assert conn.lines() == [
        ":hector.irc 401 alice ghost :No such nick/channel",
        ":hector.irc 318 alice ghost :End of /WHOIS list.",
    ]


def test_who_channel_lists_every_member(pair) -> None:
    alice, alice_conn, _, _ = pair

    send(alice, "WHO #test")

    assert alice_conn.lines() == [
        ":hector.irc 352 alice #test user hector.irc hector.irc alice H :0 Alice A",
        ":hector.irc 352 alice #test bobby hector.irc hector.irc bob H :0 bobby",
        ":hector.irc 315 alice #test :End of /WHO list.",
    ]


def test_who_nickname(pair) -> None:
    alice, alice_conn, _, _ = pair
    send(alice, "WHO bob")
    assert alice_conn.lines() == [
        ":hector.irc 352 alice * bobby hector.irc hector.irc bob H :0 bobby",
        ":hector.irc 315 alice bob :End of /WHO list.",
    ]


def test_who_unknown_targets_are_silent(register) -> None:
    alice, conn = register("alice")

    assert send(alice, "WHO ghost") is None
    assert send(alice, "WHO #ghost") is None

    assert conn.lines() == [
        ":hector.irc 315 alice ghost :End of /WHO list.",
        ":hector.irc 315 alice #ghost :End of /WHO list.",
    ]


def test_nick_change_notifies_each_peer_once(hub, pair, register) -> None:
    alice, alice_conn, bob, bob_conn = pair
    # Sharing a second channel must not duplicate the notice.
    send(alice, "JOIN #other")
    send(bob, "JOIN #other")
    carol, carol_conn = register("carol")
    alice_conn.clear()
    bob_conn.clear()

    assert send(alice, "NICK Bob2") is None

    # The notice carries the full old source, not just the bare old nickname.
    assert bob_conn.lines() == [":alice!user@hector NICK Bob2"]
    assert alice_conn.lines() == [":alice!user@hector NICK Bob2"]
    assert carol_conn.responses == []
    assert alice.nickname == "Bob2"
    assert hub.nicknames.find("alice") is None
    assert hub.nicknames.find("bob2") is alice


def test_nickname_follows_registry_when_notice_delivery_fails(hub, pair, monkeypatch) -> None:
    alice, _, _, bob_conn = pair

    def explode(*args, **kwargs):
        raise RuntimeError("delivery failed")

    monkeypatch.setattr(bob_conn, "respond_with", explode)

    with pytest.raises(RuntimeError):
        send(alice, "NICK Bob2")

    assert alice.nickname == "Bob2"
    assert hub.nicknames.find("bob2") is alice
    assert hub.nicknames.find("alice") is None


def test_rename_scenario(hub, register) -> None:
    alice, _ = register("alice")
    other, other_conn = register("carol")
    send(alice, "JOIN #test")
    send(other, "JOIN #test")
    other_conn.clear()

    send(alice, "NICK Bob")

    assert len(other_conn.named("NICK")) == 1
    assert other_conn.responses[0].args == ("Bob",)
    assert hub.nicknames.find("alice") is None
    assert hub.nicknames.find("bob") is alice


def test_nick_change_to_taken_nickname(pair, hub) -> None:
    alice, alice_conn, bob, bob_conn = pair

    error = send(alice, "NICK BOB")

    assert isinstance(error, NicknameInUse)
    assert alice.nickname == "alice"
    assert hub.nicknames.find("alice") is alice
    assert hub.nicknames.find("bob") is bob
    assert alice_conn.responses == []
    assert bob_conn.responses == []


def test_nick_change_to_malformed_nickname(register) -> None:
    alice, _ = register("alice")
    assert isinstance(send(alice, "NICK -bad-"), ErroneousNickname)
    assert alice.nickname == "alice"


def test_quit_records_reason_and_closes(register) -> None:
    alice, conn = register("alice")
    send(alice, "QUIT :bye")
    assert alice.quit_message == "Quit: bye"
    assert conn.closed


def test_quit_without_reason_uses_default(register) -> None:
    alice, conn = register("alice")
    send(alice, "QUIT")
    assert alice.quit_message == "Connection closed"
    assert conn.closed


def test_quit_scenario(hub, pair) -> None:
    alice, alice_conn, bob, bob_conn = pair

    send(alice, "QUIT :bye")
    alice.destroy()

    assert bob_conn.lines() == [":alice!user@hector QUIT :Quit: bye"]
    assert alice_conn.lines() == [":hector.irc ERROR :Closing Link: alice[hector] (Quit: bye)"]
    assert hub.nicknames.find("alice") is None
    assert alice.channels() == []
    assert hub.channels.find("#test").sessions == [bob]


def test_destroy_notifies_peers_sharing_several_channels_once(hub, pair, register) -> None:
    alice, _, bob, bob_conn = pair
    carol, carol_conn = register("carol")
    for line in ("JOIN #other", "JOIN #third"):
        send(alice, line)
        send(bob, line)
    send(carol, "JOIN #third")
    bob_conn.clear()
    carol_conn.clear()

    alice.destroy()

    assert len(bob_conn.named("QUIT")) == 1
    assert len(carol_conn.named("QUIT")) == 1
    assert bob_conn.responses[0].text == "Connection closed"
    for name in ("#test", "#other", "#third"):
        assert not hub.channels.find(name).has_session(alice)


def test_destroy_runs_once(hub, pair) -> None:
    alice, alice_conn, _, bob_conn = pair
    alice.destroy()
    alice.destroy()
    assert len(bob_conn.responses) == 1
    assert len(alice_conn.responses) == 1
    assert alice.destroyed


def test_destroy_cleans_up_even_if_delivery_fails(hub, pair) -> None:
    alice, alice_conn, bob, _ = pair

    def explode(*args, **kwargs):
        raise RuntimeError("transport gone")

    alice_conn.respond_with = explode

    with pytest.raises(RuntimeError):
        alice.destroy()

    assert hub.nicknames.find("alice") is None
    assert not hub.channels.find("#test").has_session(alice)


def test_destroy_frees_nickname_for_reuse(hub, register) -> None:
    alice, _ = register("alice")
    alice.destroy()
    again, _ = register("Alice")
    assert hub.nicknames.find("alice") is again


def test_peer_sessions_are_self_plus_deduplicated_co_members(hub, pair, register) -> None:
    alice, _, bob, _ = pair
    carol, _ = register("carol")
    send(alice, "JOIN #other")
    send(bob, "JOIN #other")

    assert alice.peer_sessions() == [alice, bob]
    assert carol.peer_sessions() == [carol]


def test_receive_returns_errors_instead_of_raising(register) -> None:
    alice, _ = register("alice")
    error = alice.receive(Request(event_name="names", args=()))
    assert isinstance(error, NeedMoreParams)
    assert error.target == "NAMES"
