"""Tests for Dispatcher frame handling and notification fan-out."""

from __future__ import annotations

import json

import pytest

from bot_client.clock import ClockSync
from bot_client.dispatcher import Dispatcher
from bot_client.errors import BotServerError
from bot_client.model import BotModel
from bot_client.protocol import compute_digest
from bot_client.session import SessionController

from .conftest import stream_frame, stream_message


class FixedClock:
    def __init__(self, now: int) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def session(transport, events):
    controller = SessionController(transport, events, key="secret")
    controller.handle_open()
    transport.sent.clear()
    return controller


@pytest.fixture
def model():
    return BotModel()


@pytest.fixture
def clock():
    return FixedClock(100_000)


@pytest.fixture
def dispatcher(session, model, events, scheduler, clock):
    return Dispatcher(
        session, model, events, clock=ClockSync(clock=clock), scheduler=scheduler
    )


def send(dispatcher, frame):
    dispatcher.handle_frame(json.dumps(frame))


class TestStreamHandling:
    """Tests for Stream envelopes."""

    def test_burst_annotated_and_folded(self, dispatcher, model, recorder):
        """Test each message gets a local timestamp and lands in the model."""
        send(
            dispatcher,
            stream_frame(
                stream_message("WinchStatus", [0, {"pos": 1}], 900),
                stream_message("FlyerSensors", {"baro": 2}, 1000),
            ),
        )

        burst = recorder["messages"][0]
        assert [m.local_timestamp for m in burst] == [99_900, 100_000]
        assert model.winch(0) is burst[0]
        assert model.flyer is burst[1]

    def test_messages_event_after_per_message_events(self, dispatcher, events):
        """Test config/gimbal events fire before the whole-burst event."""
        order = []
        events.on("config", lambda m: order.append(("config", m.timestamp)))
        events.on("gimbal", lambda m: order.append(("gimbal", m.timestamp)))
        events.on("messages", lambda b: order.append(("messages", len(b))))

        send(
            dispatcher,
            stream_frame(
                stream_message("ConfigIsCurrent", {}, 1),
                stream_message("UnhandledGimbalPacket", {"raw": [1]}, 2),
                stream_message("ConfigIsCurrent", {}, 3),
            ),
        )
        assert order == [("config", 1), ("gimbal", 2), ("config", 3), ("messages", 3)]

    def test_model_updated_before_config_event(self, dispatcher, model, events):
        """Test listeners see the folded config when notified."""
        seen = []
        events.on("config", lambda m: seen.append(model.config is m))
        send(dispatcher, stream_frame(stream_message("ConfigIsCurrent", {}, 1)))
        assert seen == [True]

    def test_unhandled_gimbal_packet_only_relayed(self, dispatcher, model, recorder):
        """Test relayed variants do not change the model."""
        send(dispatcher, stream_frame(stream_message("UnhandledGimbalPacket", {}, 1)))
        assert len(recorder["gimbal"]) == 1
        assert model == BotModel()

    def test_clock_reset_across_bursts(self, dispatcher, clock, recorder):
        """Test a burst whose last timestamp went backward gets a new offset."""
        send(dispatcher, stream_frame(stream_message("FlyerSensors", {}, 1000)))
        clock.now = 200_000
        send(dispatcher, stream_frame(stream_message("FlyerSensors", {}, 500)))

        first, second = recorder["messages"]
        first_offset = first[0].local_timestamp - first[0].timestamp
        second_offset = second[0].local_timestamp - second[0].timestamp
        assert first_offset == 99_000
        assert second_offset == 199_500
        assert first_offset != second_offset

    def test_clock_offset_stable_across_bursts(self, dispatcher, clock, recorder):
        """Test increasing timestamps keep the first burst's offset."""
        send(dispatcher, stream_frame(stream_message("FlyerSensors", {}, 1000)))
        clock.now = 500_000
        send(
            dispatcher,
            stream_frame(
                stream_message("FlyerSensors", {}, 1100),
                stream_message("FlyerSensors", {}, 1200),
            ),
        )
        offsets = {
            m.local_timestamp - m.timestamp
            for burst in recorder["messages"]
            for m in burst
        }
        assert offsets == {99_000}

    def test_malformed_stream_ignored(self, dispatcher, model, recorder):
        """Test a burst with a malformed message changes nothing."""
        send(
            dispatcher,
            stream_frame(
                stream_message("FlyerSensors", {}, 1),
                {"message": {"WinchStatus": {}}, "timestamp": 2},
            ),
        )
        assert model == BotModel()
        assert recorder["messages"] == []
        assert len(recorder["log"]) == 1


class TestFrameCoalescing:
    """Tests for coalesced frame notifications."""

    def test_at_most_one_pending_frame(self, dispatcher, scheduler, model, recorder):
        """Test three bursts before the tick produce one frame with latest state."""
        for pos in (1, 2, 3):
            send(dispatcher, stream_frame(stream_message("WinchStatus", [0, {"pos": pos}], pos)))
            assert dispatcher.frame_pending

        assert scheduler.requests == 1
        assert recorder["frame"] == []

        scheduler.tick()
        assert recorder["frame"] == [model]
        assert recorder["frame"][0].winch(0).payload == [0, {"pos": 3}]
        assert not dispatcher.frame_pending

    def test_new_frame_after_tick(self, dispatcher, scheduler, recorder):
        """Test a burst after the tick schedules a new frame."""
        send(dispatcher, stream_frame(stream_message("FlyerSensors", {}, 1)))
        scheduler.tick()
        send(dispatcher, stream_frame(stream_message("FlyerSensors", {}, 2)))
        scheduler.tick()
        assert scheduler.requests == 2
        assert len(recorder["frame"]) == 2

    def test_headless_skips_frames(self, session, model, events, recorder):
        """Test no scheduler means no frame notifications and no error."""
        dispatcher = Dispatcher(session, model, events)
        send(dispatcher, stream_frame(stream_message("FlyerSensors", {}, 1)))
        assert not dispatcher.frame_pending
        assert recorder["frame"] == []
        assert len(recorder["messages"]) == 1

    def test_control_frames_do_not_schedule(self, dispatcher, scheduler):
        """Test only stream bursts request a frame."""
        send(dispatcher, {"AuthStatus": False})
        assert scheduler.requests == 0


class TestControlFrames:
    """Tests for Error, Auth and AuthStatus envelopes."""

    def test_auth_challenge(self, dispatcher, transport, recorder):
        """Test a challenge is logged and answered."""
        frame = {"Auth": {"challenge": "nonce"}}
        send(dispatcher, frame)
        assert recorder["log"] == [frame]
        assert transport.sent_json == [
            {"Auth": {"digest": compute_digest(b"nonce", "secret")}}
        ]

    def test_auth_challenge_without_key(self, transport, events, model, recorder):
        """Test no Auth frame is sent when no key is configured."""
        session = SessionController(transport, events)
        session.handle_open()
        dispatcher = Dispatcher(session, model, events)
        send(dispatcher, {"Auth": {"challenge": [1, 2, 3]}})
        assert not any("Auth" in f for f in transport.sent_json)
        assert len(recorder["log"]) == 1

    def test_auth_status_twice(self, dispatcher, session, recorder):
        """Test AuthStatus true twice emits one auth and two logs."""
        send(dispatcher, {"AuthStatus": True})
        send(dispatcher, {"AuthStatus": True})
        assert session.authenticated
        assert recorder["auth"] == [True]
        assert recorder["log"] == [{"AuthStatus": True}, {"AuthStatus": True}]

    def test_server_error_logged_then_raised(self, dispatcher, recorder):
        """Test an Error envelope is logged and surfaced as an exception."""
        with pytest.raises(BotServerError):
            send(dispatcher, {"Error": "Unauthorized"})
        assert recorder["log"] == [{"Error": "Unauthorized"}]

    def test_unrecognized_frame_logged(self, dispatcher, model, recorder, caplog):
        """Test unknown envelopes are logged without failing."""
        send(dispatcher, {"Surprise": 1})
        assert recorder["log"] == [{"Surprise": 1}]
        assert "Unrecognized" in caplog.text
        assert model == BotModel()

    def test_invalid_json_ignored(self, dispatcher, recorder, caplog):
        """Test undecodable frames are dropped."""
        dispatcher.handle_frame("{not json")
        assert recorder["log"] == []
        assert "Undecodable" in caplog.text


class TestDispatcherClose:
    """Tests for Dispatcher.close()."""

    def test_close_cancels_pending_frame(self, dispatcher, scheduler, recorder):
        """Test closing cancels the scheduled tick."""
        send(dispatcher, stream_frame(stream_message("FlyerSensors", {}, 1)))
        dispatcher.close()
        assert scheduler.cancelled == [1]
        scheduler.tick()
        assert recorder["frame"] == []

    def test_close_from_listener_mid_burst(self, dispatcher, events, scheduler):
        """Test closing from a notification prevents a new frame tick."""
        events.on("config", lambda _: dispatcher.close())
        send(dispatcher, stream_frame(stream_message("ConfigIsCurrent", {}, 1)))
        assert scheduler.requests == 0
        assert not dispatcher.frame_pending

    def test_closed_ignores_frames(self, dispatcher, model, recorder):
        """Test no processing happens after close."""
        dispatcher.close()
        send(dispatcher, stream_frame(stream_message("FlyerSensors", {}, 1)))
        assert model.flyer is None
        assert recorder["messages"] == []
