"""
Endpoint Modules
===============

Route factories that register handlers on a FastAPI app.

Modules:
- speedtest: control WebSocket, per-connection session and driver supervision
- health: liveness and session snapshot
"""
