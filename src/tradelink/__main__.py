"""
Entry point for the trading client.

Usage:
    python -m tradelink
    python -m tradelink --watch 60
    tradelink  # if installed via pip
"""

import argparse
import asyncio
import logging
import sys


logger = logging.getLogger("tradelink.cli")


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="tradelink",
        description="Check connectivity to the trading service and show its state",
    )
    parser.add_argument(
        "--watch",
        type=float,
        default=0.0,
        metavar="SECONDS",
        help="stay connected, subscribed to session broadcasts, for SECONDS",
    )
    parser.add_argument(
        "--status-interval",
        type=float,
        default=10.0,
        metavar="SECONDS",
        help="print the status panel every SECONDS while watching",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success).
    """
    from tradelink import __version__
    from tradelink.api.client import TradingClient
    from tradelink.config.settings import get_settings
    from tradelink.core.errors import TradeLinkError
    from tradelink.core.event_bus import Broadcast
    from tradelink.telemetry.logger import setup_logging
    from tradelink.telemetry.reporter import StatusReporter

    args = _parse_args(argv)

    print(
        f"""
╔═══════════════════════════════════════════════════════════════╗
║     TRADELINK CLIENT v{__version__:<34}      ║
║                                                               ║
║     Channel-first trading client with HTTP fallback           ║
╚═══════════════════════════════════════════════════════════════╝
    """
    )

    try:
        settings = get_settings()
    except Exception as e:
        print(f"Configuration error: {e}")
        print("\nSettings are read from the environment or a .env file, e.g.:")
        print("  API_BASE_URL=http://localhost:3007")
        print("  WS_URL=ws://localhost:3007/ws")
        return 1

    print("Configuration:")
    print(f"  REST API:         {settings.api_base_url}")
    print(f"  Channel:          {settings.ws_url}")
    print(f"  Connect timeout:  {settings.connect_timeout:.1f}s")
    print(f"  Request timeout:  {settings.request_timeout:.1f}s")
    print(f"  Reconnect:        {settings.max_reconnect_attempts} x {settings.reconnect_delay:.1f}s")
    print(f"  Resubscribe:      {'Enabled' if settings.resubscribe_on_reconnect else 'Disabled'}")
    print(f"  Worst-case call:  {settings.worst_case_call_seconds:.1f}s")
    print()

    pipeline = setup_logging(level=settings.log_level, log_file=settings.log_file)

    def on_sessions(broadcast: Broadcast[list]) -> None:
        active = sum(1 for s in broadcast.payload if s.is_active)
        logger.info(f"Sessions update: {len(broadcast.payload)} sessions, {active} active")

    async def run_client() -> int:
        client = TradingClient(settings)
        reporter = StatusReporter(client.metrics, title=f"TRADELINK v{__version__}")

        try:
            await client.connect()

            info = await client.get_server_info()
            sessions = await client.get_all_sessions()

            reporter.set_status(client.get_connection_status())
            reporter.display()

            print(f"Server: version={info.version or '?'} environment={info.environment or '?'}")
            print(f"Sessions: {len(sessions)}")
            for session in sessions:
                print(
                    f"  {session.symbol:<12} {session.status:<10} "
                    f"balance={session.current_balance:.2f} pnl={session.total_pnl:+.2f}"
                )

            if args.watch > 0:
                client.on("sessions", on_sessions)
                if not await client.subscribe_to_sessions():
                    logger.warning("Channel unavailable, no session broadcasts will arrive")

                loop = asyncio.get_running_loop()
                deadline = loop.time() + args.watch
                while (remaining := deadline - loop.time()) > 0:
                    await asyncio.sleep(min(args.status_interval, remaining))
                    reporter.set_status(client.get_connection_status())
                    reporter.display()

            reporter.print_summary()
            return 0

        except KeyboardInterrupt:
            print("\nInterrupted by user")
            return 0

        except TradeLinkError as e:
            print(f"\nError: {e}")
            return 1

        finally:
            await client.disconnect()

    try:
        return asyncio.run(run_client())
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 0
    finally:
        pipeline.stop()


if __name__ == "__main__":
    sys.exit(main())
