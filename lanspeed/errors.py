"""
Speed test error taxonomy
"""


class SpeedTestError(Exception):
    """Base class for all speed test failures"""


class TransportError(SpeedTestError):
    """A channel or bulk transfer read/write failed; the current run is over"""


class GenerationError(SpeedTestError):
    """The payload randomness source is unavailable"""


class DecodeError(SpeedTestError):
    """An inbound control frame could not be decoded"""


class RunCancelled(SpeedTestError):
    """An in-flight sample was interrupted because its run was stopped"""
