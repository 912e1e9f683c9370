from __future__ import annotations

import re

import pytest

from tagram.dispatch import (
    LOADAVG_UNAVAILABLE,
    REPLY_OVERHEAD,
    SHUTDOWN_ACK,
    Command,
    Dispatcher,
    classify,
    echo_body,
)
from tagram.server import RunState

LOADAVG_REPLY = re.compile(
    r"^<replyLoadAvg>(\d+\.\d+):(\d+\.\d+):(\d+\.\d+)</replyLoadAvg>$"
)


class TestClassify:
    @pytest.mark.parametrize(
        ("message", "command"),
        [
            ("<echo>hello</echo>", Command.ECHO),
            ("<echo></echo>", Command.ECHO),
            ("<loadavg/>", Command.LOADAVG),
            ("<shutdown/>", Command.SHUTDOWN),
            ("<loadavg/> ", Command.MALFORMED),
            ("<echo>unterminated", Command.MALFORMED),
            ("", Command.MALFORMED),
        ],
    )
    def test_grammar(self, message: str, command: Command) -> None:
        assert classify(message) is command

    def test_echo_wins_over_exact_matches(self) -> None:
        assert classify("<echo><shutdown/></echo>") is Command.ECHO


class TestEcho:
    def test_body(self, dispatcher: Dispatcher) -> None:
        assert dispatcher.dispatch("<echo>hello</echo>").text == "<reply>hello</reply>"

    def test_empty_body(self, dispatcher: Dispatcher) -> None:
        assert dispatcher.dispatch("<echo></echo>").text == "<reply></reply>"

    def test_body_with_tags(self, dispatcher: Dispatcher) -> None:
        reply = dispatcher.dispatch("<echo><b>x</b></echo>")
        assert reply.text == "<reply><b>x</b></reply>"

    def test_body_clamps_when_tags_overlap(self) -> None:
        assert echo_body("<echo>") == ""
        assert echo_body("<echo></echo>") == ""

    def test_repeated_requests_are_independent(self, dispatcher: Dispatcher) -> None:
        first = dispatcher.dispatch("<echo>same</echo>")
        second = dispatcher.dispatch("<echo>same</echo>")
        assert first == second


class TestLoadAvg:
    def test_formats_six_decimals(self, dispatcher: Dispatcher) -> None:
        reply = dispatcher.dispatch("<loadavg/>")
        assert reply.command is Command.LOADAVG
        assert reply.text == "<replyLoadAvg>0.250000:0.500000:1.750000</replyLoadAvg>"

    def test_system_load_average(self) -> None:
        reply = Dispatcher(RunState()).dispatch("<loadavg/>")
        if reply.text == LOADAVG_UNAVAILABLE:
            pytest.skip("load averages not available on this platform")
        match = LOADAVG_REPLY.match(reply.text)
        assert match is not None
        assert all(float(value) >= 0 for value in match.groups())

    def test_unavailable_falls_back_to_error(self) -> None:
        def broken() -> tuple[float, float, float]:
            raise OSError("getloadavg failed")

        reply = Dispatcher(RunState(), loadavg=broken).dispatch("<loadavg/>")
        assert reply.text == LOADAVG_UNAVAILABLE


class TestShutdown:
    def test_stops_run_state(self, dispatcher: Dispatcher, run_state: RunState) -> None:
        assert run_state.running
        reply = dispatcher.dispatch("<shutdown/>")
        assert reply.command is Command.SHUTDOWN
        assert reply.text == SHUTDOWN_ACK
        assert not run_state.running

    def test_other_commands_leave_run_state(
        self, dispatcher: Dispatcher, run_state: RunState
    ) -> None:
        for message in ("<echo>x</echo>", "<loadavg/>", "garbage", "<shutdown/>x"):
            dispatcher.dispatch(message)
        assert run_state.running


class TestMalformed:
    def test_wraps_verbatim(self, dispatcher: Dispatcher) -> None:
        assert dispatcher.dispatch("garbage").text == "<error>garbage</error>"

    def test_empty_message(self, dispatcher: Dispatcher) -> None:
        assert dispatcher.dispatch("").text == "<error></error>"

    def test_reply_growth_is_bounded(self, dispatcher: Dispatcher) -> None:
        message = "x" * 256
        reply = dispatcher.dispatch(message)
        assert len(reply.text) == len(message) + REPLY_OVERHEAD
