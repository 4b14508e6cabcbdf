"""
Control channel messages
JSON objects exchanged over the WebSocket, one per text frame
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from lanspeed.errors import DecodeError

START = 'start'
STOP = 'stop'
SPEED = 'speed'
FINAL = 'final'

KNOWN_TYPES = (START, STOP, SPEED, FINAL)


@dataclass(frozen=True)
class SpeedTestMessage:
    """One control or reporting message"""
    type: str
    speed: Optional[float] = None
    average: Optional[float] = None
    duration: Optional[int] = None

    @classmethod
    def start(cls, duration: Optional[int] = None) -> 'SpeedTestMessage':
        return cls(type=START, duration=duration)

    @classmethod
    def stop(cls) -> 'SpeedTestMessage':
        return cls(type=STOP)

    @classmethod
    def speed_update(cls, speed: float) -> 'SpeedTestMessage':
        return cls(type=SPEED, speed=float(speed))

    @classmethod
    def final_result(cls, average: float) -> 'SpeedTestMessage':
        return cls(type=FINAL, average=float(average))

    @property
    def is_known(self) -> bool:
        return self.type in KNOWN_TYPES

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'type': self.type}
        if self.type == SPEED:
            data['speed'] = self.speed if self.speed is not None else 0.0
        elif self.type == FINAL:
            data['average'] = self.average if self.average is not None else 0.0
        elif self.type == START and self.duration is not None:
            data['duration'] = self.duration
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


def _number(data: Dict[str, Any], key: str) -> Optional[float]:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DecodeError(f"Field '{key}' must be a number, got {value!r}")
    return float(value)


def decode_message(raw: Union[str, bytes]) -> SpeedTestMessage:
    """
    Decode one text frame into a message.

    Unknown types decode successfully (callers ignore them); only frames that
    are not usable at all raise DecodeError.
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise DecodeError(f"Malformed JSON: {e}") from e

    if not isinstance(data, dict):
        raise DecodeError(f"Expected a JSON object, got {type(data).__name__}")

    message_type = data.get('type')
    if not isinstance(message_type, str):
        raise DecodeError("Missing or non-string 'type' field")

    duration = data.get('duration')
    if duration is not None:
        if isinstance(duration, bool) or not isinstance(duration, int) or duration < 0:
            raise DecodeError(f"Field 'duration' must be a non-negative integer, got {duration!r}")

    return SpeedTestMessage(
        type=message_type,
        speed=_number(data, 'speed'),
        average=_number(data, 'average'),
        duration=duration,
    )
