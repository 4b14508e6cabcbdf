"""
Throughput arithmetic
"""

BITS_PER_BYTE = 8
BITS_PER_MEGABIT = 1_000_000


def measure_speed(byte_count: int, elapsed_seconds: float) -> float:
    """Calculate throughput in Mbps from bytes transferred over elapsed seconds"""
    if elapsed_seconds <= 0:
        return 0.0
    return (byte_count * BITS_PER_BYTE) / BITS_PER_MEGABIT / elapsed_seconds
