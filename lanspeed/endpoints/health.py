"""
Health Endpoint
==============

Reports liveness plus a snapshot of connections and running tests.
"""

import time

from fastapi.responses import JSONResponse

import lanspeed
from lanspeed.endpoints.speedtest import SpeedTestService


def create_health_endpoint(app, service: SpeedTestService):
    """
    Register GET /api/health on a FastAPI app.

    Args:
        app: FastAPI application instance
        service: shared speed test collaborators
    """

    @app.get("/api/health")
    async def get_health():
        """Health check endpoint for the speed test server"""
        uptime = time.time() - service.stats['start_time']
        return JSONResponse({
            "status": "healthy",
            "server": "lanspeed",
            "version": lanspeed.__version__,
            "timestamp": int(time.time()),
            "uptime_seconds": round(uptime, 1),
            "active_connections": len(service.connections),
            "running_tests": service.running_tests(),
            "total_connections": service.stats['connections'],
            "rejected_connections": service.stats['rejected'],
            "bulk_server": service.bulk_server.stats,
            "config": service.config.summary(),
            "sessions": {
                connection_id: connection.session.snapshot()
                for connection_id, connection in service.connections.items()
            },
        })
