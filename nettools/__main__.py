"""Entry point for the NetTools command-line client."""

import argparse
import logging
import sys
from dataclasses import asdict

from PySide6.QtCore import QCoreApplication

from nettools.channel import ChannelState
from nettools.config import load_settings
from nettools.context import build_context
from nettools.logging_config import LOG_LEVELS, configure_logging
from nettools.models import Kind, Session

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nettools",
        description="Run ping, dig or traceroute on the remote executor and stream the output.",
    )
    parser.add_argument("tool", nargs="?", choices=[kind.value for kind in Kind])
    parser.add_argument("target", nargs="?", help="Hostname or IP address")
    parser.add_argument("--count", default="4", help="ping: number of echo requests (1-10)")
    parser.add_argument("--type", default="A", help="dig: record type (A, AAAA, MX, NS, TXT, SOA)")
    parser.add_argument("--max-hops", default="30", help="traceroute: maximum hops (1-30)")
    parser.add_argument(
        "--show", action="store_true", help="Print the persisted sessions and exit"
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        help="Override NETTOOLS_LOG_LEVEL for this run",
    )
    return parser


def parameters_for(kind: Kind, args) -> dict[str, str]:
    if kind is Kind.PING:
        return {"count": args.count}
    if kind is Kind.DIG:
        return {"type": args.type}
    return {"maxHops": args.max_hops}


def format_aggregates(session: Session) -> str:
    if session.aggregates is None:
        return ""
    parts = []
    for name, value in asdict(session.aggregates).items():
        if value is None:
            continue
        parts.append(f"{name}={value:.2f}" if isinstance(value, float) else f"{name}={value}")
    return ", ".join(parts)


def show_sessions(store) -> None:
    for kind, session in store.sessions().items():
        marker = "*" if kind is store.active_kind else " "
        state = "running" if session.running else "idle"
        print(f"{marker} {kind.value}: target={session.target or '-'} ({state})")
        print(f"    {format_aggregates(session)}")
        for query in session.history:
            print(
                f"    recent: {query.target} {query.record_type} "
                f"({query.record_count} records, {query.completed_at:%Y-%m-%d %H:%M:%S})"
            )


def main(argv=None) -> int:
    """Main entry point for the NetTools client."""
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.log_level)
    settings = load_settings()

    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    context = build_context(settings)

    if args.show:
        show_sessions(context.store)
        return 0

    if args.tool is None or args.target is None:
        parser.error("tool and target are required unless --show is given")

    kind = Kind(args.tool)
    parameters = parameters_for(kind, args)
    state = {"submitted": False, "printed": 0}

    context.store.set_active_kind(kind)

    def on_state_changed(channel_state):
        if channel_state is ChannelState.OPEN and not state["submitted"]:
            state["submitted"] = True
            context.dispatcher.submit(kind, args.target, parameters)
        elif channel_state is ChannelState.DISCONNECTED and state["submitted"]:
            print("Connection lost, waiting for reconnect...", file=sys.stderr)

    def on_rejected(kind_value, rejection, message):
        print(f"Rejected: {message}", file=sys.stderr)
        app.exit(2)

    def on_session_changed(session: Session):
        if len(session.raw_output) < state["printed"]:
            state["printed"] = 0
        for line in session.raw_output[state["printed"]:]:
            print(line, flush=True)
        state["printed"] = len(session.raw_output)

        if state["submitted"] and not session.running:
            summary = format_aggregates(session)
            if summary:
                print(f"\n{summary}")
            failed = any(line.startswith("Error: ") for line in session.raw_output)
            app.exit(1 if failed else 0)

    context.channel.state_changed.connect(on_state_changed)
    context.dispatcher.rejected.connect(on_rejected)
    context.store.on_change(kind, on_session_changed)

    logger.info("Connecting to %s", settings.endpoint)
    context.start()

    try:
        return app.exec()
    finally:
        context.stop()


if __name__ == "__main__":
    sys.exit(main())
