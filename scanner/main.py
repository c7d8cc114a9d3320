"""Opportunity scanner — application entry point.

Boots the FastAPI read API and provides the CLI entry point for one-shot
and continuous scanning.
"""

import logging

from fastapi import FastAPI

from scanner.api.routers import router

app = FastAPI(title="Opportunity Scanner API", version="0.1.0")
app.include_router(router)

logger = logging.getLogger("scanner")


@app.get("/health")
async def health():
    """Liveness check."""
    return {"status": "ok"}


# ── CLI ──────────────────────────────────────────────────────────────────


def _run_cli() -> None:
    """Parse CLI arguments and dispatch to the appropriate mode."""
    import argparse
    import asyncio
    import signal

    from scanner.api.routers import configure_routers
    from scanner.config import load_config
    from scanner.engine import ScanEngine
    from scanner.exchange.binance_client import BinanceClient

    parser = argparse.ArgumentParser(description="Autonomous crypto opportunity scanner")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--once",
        action="store_true",
        help="Run a single scan cycle, print the results and exit",
    )
    mode.add_argument(
        "--serve",
        action="store_true",
        help="Scan continuously and serve the read API",
    )
    parser.add_argument("--env", help="Path to a .env file")
    args = parser.parse_args()

    config = load_config(args.env)

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    pipeline_config = config.pipeline_config()
    client = BinanceClient(config, pipeline_config)
    engine = ScanEngine(config=config, client=client, pipeline_config=pipeline_config)
    configure_routers(engine=engine)

    if args.once:
        asyncio.run(_run_once(engine))
        return

    def handle_shutdown(signum, frame):
        logger.info("Shutdown signal received — stopping gracefully.")
        engine.stop()

    signal.signal(signal.SIGINT, handle_shutdown)

    if args.serve:
        asyncio.run(_run_with_server(engine, config.api_port))
    else:
        asyncio.run(engine.run())


async def _run_once(engine) -> None:
    """Run one cycle and print it."""
    from scanner.cli.dashboard import print_opportunities

    result = await engine.run_cycle()
    print_opportunities(result)


async def _run_with_server(engine, port: int = 8080) -> None:
    """Start the API server and the scan loop concurrently."""
    import asyncio

    import uvicorn

    uvi_config = uvicorn.Config(
        app,
        host="0.0.0.0",
        port=port,
        log_level="info",
    )
    server = uvicorn.Server(uvi_config)

    logger.info("API available at http://localhost:%d", port)
    results = await asyncio.gather(
        server.serve(),
        engine.run(),
        return_exceptions=True,
    )
    logger.info("Scanner stopped. Results: %s", [type(r).__name__ for r in results])


if __name__ == "__main__":
    _run_cli()
