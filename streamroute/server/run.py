import asyncio
import logging
import argparse
import uvicorn
from streamroute.server.api import create_app
from streamroute.server.registry import StreamRegistry
from streamroute.server.tcp import TcpFrontend


def build_registry(args: argparse.Namespace) -> StreamRegistry:
    defaults = {"batch_size": args.batch_size}
    if args.redis_url:
        return StreamRegistry.from_redis(args.redis_url, **defaults)
    return StreamRegistry(**defaults)


async def main():
    parser = argparse.ArgumentParser(description="Streamroute Message Router")
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind to")
    parser.add_argument("--port", type=int, default=9000, help="Port to bind to")
    parser.add_argument(
        "--http", action="store_true", help="Serve the HTTP API instead of TCP"
    )
    parser.add_argument(
        "--redis-url",
        default=None,
        help="Redis URL for the log store (in-memory store when omitted)",
    )
    parser.add_argument(
        "--batch-size", type=int, default=50, help="Messages read per batch"
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level")

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    registry = build_registry(args)

    if args.http:
        config = uvicorn.Config(
            create_app(registry),
            host=args.host,
            port=args.port,
            log_level=args.log_level.lower(),
        )
        print(f"Starting Streamroute HTTP API on {args.host}:{args.port}...")
        try:
            await uvicorn.Server(config).serve()
        finally:
            await registry.close()
        return

    server = TcpFrontend(registry, host=args.host, port=args.port)

    print(f"Starting Streamroute Server on {args.host}:{args.port}...")
    try:
        await server.start()
    except asyncio.CancelledError:
        await server.stop()
    finally:
        await registry.close()


if __name__ == "__main__":
    asyncio.run(main())
