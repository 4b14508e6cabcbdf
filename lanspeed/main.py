import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import lanspeed
from lanspeed.config import SpeedTestConfig, parse_address
from lanspeed.endpoints.health import create_health_endpoint
from lanspeed.endpoints.speedtest import SpeedTestService, create_speedtest_endpoint

logger = logging.getLogger(__name__)


def create_app(config: SpeedTestConfig, service: Optional[SpeedTestService] = None) -> FastAPI:
    """Build the speed test app around one immutable configuration"""
    config.validate()
    service = service or SpeedTestService(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("🚀 Initializing speed test services...")
        await service.start()
        logger.info(f"✅ Speed test server ready ({config.measurement_mode} mode, "
                    f"{config.chunk_size / 1048576:.1f}MB blocks)")
        try:
            yield
        finally:
            logger.info("🛑 Shutting down speed test services...")
            await service.shutdown()
            logger.info("✅ Speed test shutdown complete")

    app = FastAPI(title="LAN Speed Test", version=lanspeed.__version__, lifespan=lifespan)
    app.state.config = config
    app.state.service = service

    # The UI is served from elsewhere; accept any origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    create_speedtest_endpoint(app, service)
    create_health_endpoint(app, service)
    return app


async def run_server(config: SpeedTestConfig, ssl_keyfile: Optional[str] = None,
                     ssl_certfile: Optional[str] = None):
    """Run the speed test server with optional HTTPS support"""
    app = create_app(config)

    config_kwargs = {
        "app": app,
        "host": config.host,
        "port": config.port,
        "log_level": "warning",  # Reduce logging overhead
        "access_log": False,
        "loop": "asyncio",
    }

    if ssl_keyfile and ssl_certfile:
        config_kwargs["ssl_keyfile"] = ssl_keyfile
        config_kwargs["ssl_certfile"] = ssl_certfile
        logger.info(f"🔒 Starting speed test server with HTTPS on {config.host}:{config.port}")
    else:
        logger.info(f"🌐 Starting speed test server on {config.host}:{config.port}")

    server = uvicorn.Server(uvicorn.Config(**config_kwargs))
    await server.serve()


def build_parser():
    import argparse

    parser = argparse.ArgumentParser(description="LAN Speed Test Server")
    parser.add_argument("--addr", type=str, help="WebSocket server address, e.g. :8080")
    parser.add_argument("--test-addr", type=str, help="Speed test TCP server address, e.g. :3001")
    parser.add_argument("--chunk-size", type=int, help="Size of test data chunks in bytes")
    parser.add_argument("--mode", choices=["pull", "push"], help="Measurement strategy")
    parser.add_argument("--sample-interval", type=float, help="Seconds between speed samples")
    parser.add_argument("--log-level", type=str, help="Logging level (default INFO)")
    parser.add_argument("--ssl-keyfile", type=str, help="SSL key file path for HTTPS")
    parser.add_argument("--ssl-certfile", type=str, help="SSL certificate file path for HTTPS")
    return parser


def config_from_args(args, base: Optional[SpeedTestConfig] = None) -> SpeedTestConfig:
    """Layer command line options over environment configuration"""
    config = base or SpeedTestConfig.from_env()
    host = port = bulk_host = bulk_port = None
    if args.addr:
        host, port = parse_address(args.addr, config.host)
    if args.test_addr:
        bulk_host, bulk_port = parse_address(args.test_addr, config.bulk_host)

    config = config.with_overrides(
        host=host,
        port=port,
        bulk_host=bulk_host,
        bulk_port=bulk_port,
        chunk_size=args.chunk_size,
        measurement_mode=args.mode,
        sample_interval=args.sample_interval,
        log_level=args.log_level.upper() if args.log_level else None,
    )
    config.validate()
    return config


def main(argv=None):
    args = build_parser().parse_args(argv)
    config = config_from_args(args)

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    logger.info(f"Speed test server: {config.host}:{config.port}")
    logger.info(f"Chunk size: {config.chunk_size // 1024 // 1024}MB")

    try:
        asyncio.run(run_server(config, args.ssl_keyfile, args.ssl_certfile))
    except KeyboardInterrupt:
        logger.info("🛑 Speed test server interrupted")


if __name__ == "__main__":
    main()
