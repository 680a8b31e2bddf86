"""syscall-monitor CLI: operator front end for a running monitor.

Usage: syscall-monitor [OPTIONS]

Examples:
    syscall-monitor --log --syscall open
    syscall-monitor --block --syscall write --pid 4242
    syscall-monitor --log --file fsm_example1.json
    syscall-monitor --off
"""
from __future__ import annotations

import argparse
import logging
import sys

from syscall_monitor.control.client import ControlClient, RemoteEventView
from syscall_monitor.control.protocol import DEFAULT_HOST, DEFAULT_PORT
from syscall_monitor.domain.errors import MonitorError, TransportError
from syscall_monitor.domain.operations import EnforcementMode, OperationKind
from syscall_monitor.fsm.config import load_fsm
from syscall_monitor.fsm.orchestrator import Orchestrator
from syscall_monitor.fsm.state import FsmState

EPILOG = """\
Examples:
  %(prog)s --log --syscall open
  %(prog)s --log --file fsm_example1.json
  %(prog)s --off
"""


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="syscall-monitor",
        description="Control a running syscall monitor: mode, target, PID, FSM.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    modes = parser.add_mutually_exclusive_group()
    modes.add_argument(
        "--off", dest="mode", action="store_const", const=EnforcementMode.OFF,
        help="Set monitor to OFF mode",
    )
    modes.add_argument(
        "--log", dest="mode", action="store_const", const=EnforcementMode.LOG,
        help="Set monitor to LOG mode",
    )
    modes.add_argument(
        "--block", dest="mode", action="store_const", const=EnforcementMode.BLOCK,
        help="Set monitor to BLOCK mode",
    )
    parser.add_argument(
        "--syscall", metavar="NAME",
        help="Set syscall to monitor (open, read, write)",
    )
    parser.add_argument(
        "--pid", type=int, metavar="PID",
        help="Set PID to monitor/block (-1 = any process)",
    )
    parser.add_argument(
        "--file", metavar="JSON",
        help="Run FSM from JSON file (requires --log)",
    )
    parser.add_argument(
        "--host", default=DEFAULT_HOST,
        help=f"Monitor control address (default: {DEFAULT_HOST})",
    )
    parser.add_argument(
        "--port", type=int, default=DEFAULT_PORT,
        help=f"Monitor control port (default: {DEFAULT_PORT})",
    )
    parser.add_argument(
        "--poll-interval", type=float, default=1.0,
        help="FSM: seconds between observation checks (default: 1.0)",
    )
    parser.add_argument(
        "--settle-interval", type=float, default=1.0,
        help="FSM: pause after each transition (default: 1.0)",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Show debug logging",
    )
    return parser


def _run_fsm(client: ControlClient, fsm: FsmState, args: argparse.Namespace) -> int:
    ack = client.set_mode(EnforcementMode.LOG)
    print(f"[INFO] Mode changed to: {ack.state.mode.name}")

    orchestrator = Orchestrator(
        client,
        RemoteEventView(client),
        fsm,
        poll_interval=args.poll_interval,
        settle_interval=args.settle_interval,
        report=print,
    )
    print("[FSM] Press Ctrl+C to stop")
    try:
        orchestrator.run()
    except KeyboardInterrupt:
        print(f"\n[FSM] Stopped after {orchestrator.transitions} transitions")
    return 0


def _apply_flags(client: ControlClient, args: argparse.Namespace,
                 operation: OperationKind | None) -> None:
    if args.mode is not None:
        ack = client.set_mode(args.mode)
        print(f"[INFO] Mode changed to: {ack.state.mode.name}")
    if operation is not None:
        ack = client.set_target_operation(operation)
        print(f"[INFO] Target syscall set to: {ack.state.target_operation.label}")
    if args.pid is not None:
        ack = client.set_target_process(args.pid)
        print(f"[INFO] Target PID set to: {ack.state.process_filter}")


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        parser.print_help()
        return 1

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(message)s" if not args.verbose else "%(levelname)s %(name)s: %(message)s",
    )

    if args.file is not None and args.mode is not EnforcementMode.LOG:
        print("[ERROR] --file can only be used with --log mode")
        return 1

    # Everything that can be validated locally is, before touching the monitor.
    try:
        operation = None
        if args.syscall is not None:
            operation = OperationKind.from_name(args.syscall)
        fsm = load_fsm(args.file) if args.file is not None else None
    except MonitorError as exc:
        print(f"[ERROR] {exc}")
        return 1
    if fsm is not None:
        print(f"[FSM] Loaded FSM with {len(fsm)} states: {fsm.describe()}")

    print(f"[INFO] Opening control channel: {args.host}:{args.port}")
    try:
        with ControlClient(args.host, args.port) as client:
            if fsm is not None:
                return _run_fsm(client, fsm, args)
            _apply_flags(client, args, operation)
    except MonitorError as exc:
        print(f"[ERROR] {exc}")
        if isinstance(exc, TransportError):
            print("Make sure the monitored process is running with a SyscallMonitor")
        return 1

    print("[INFO] Commands executed successfully")
    return 0


if __name__ == "__main__":
    sys.exit(main())
