"""
LAN Speed Test
Throughput test server: periodic speed samples and a final average over WebSocket
"""

__version__ = "1.0.0"
