"""Unit tests for control message encoding and decoding."""

import json

import pytest

from lanspeed.errors import DecodeError
from lanspeed.messages import SpeedTestMessage, decode_message


@pytest.mark.unit
class TestDecodeMessage:
    """Tests for decode_message."""

    def test_start_with_duration(self) -> None:
        message = decode_message('{"type": "start", "duration": 3}')
        assert message.type == "start"
        assert message.duration == 3

    def test_start_without_duration(self) -> None:
        message = decode_message('{"type": "start"}')
        assert message.duration is None

    def test_stop(self) -> None:
        assert decode_message('{"type": "stop"}').type == "stop"

    def test_unknown_type_is_not_an_error(self) -> None:
        message = decode_message('{"type": "ping", "sequence": 4}')
        assert message.type == "ping"
        assert message.is_known is False

    def test_server_messages(self) -> None:
        assert decode_message('{"type": "speed", "speed": 941.2}').speed == 941.2
        assert decode_message('{"type": "final", "average": 12}').average == 12.0

    @pytest.mark.parametrize("raw", [
        "{not json",
        "",
        "[1, 2, 3]",
        '"start"',
        '{"duration": 5}',
        '{"type": 7}',
        '{"type": "start", "duration": "ten"}',
        '{"type": "start", "duration": -1}',
        '{"type": "start", "duration": 2.5}',
        '{"type": "start", "duration": true}',
        '{"type": "speed", "speed": "fast"}',
    ])
    def test_malformed_frames(self, raw: str) -> None:
        with pytest.raises(DecodeError):
            decode_message(raw)


@pytest.mark.unit
class TestEncodeMessage:
    """Tests for SpeedTestMessage.to_json."""

    def test_speed_always_carries_value(self) -> None:
        assert json.loads(SpeedTestMessage.speed_update(0).to_json()) == {"type": "speed", "speed": 0.0}

    def test_final(self) -> None:
        assert json.loads(SpeedTestMessage.final_result(42.5).to_json()) == {"type": "final", "average": 42.5}

    def test_start_omits_missing_duration(self) -> None:
        assert json.loads(SpeedTestMessage.start().to_json()) == {"type": "start"}
        assert json.loads(SpeedTestMessage.start(5).to_json()) == {"type": "start", "duration": 5}

    def test_stop(self) -> None:
        assert json.loads(SpeedTestMessage.stop().to_json()) == {"type": "stop"}
