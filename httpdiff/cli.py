"""Command line entry point."""

import argparse
import logging
import signal
import sys
import threading

from httpdiff.concurrency import recovery_with_logger
from httpdiff.config import ConfigError, load_config
from httpdiff.dispatcher import Dispatcher
from httpdiff.httpclient import init_client
from httpdiff.logsetup import init_logger

DEFAULT_CONFIG_FILE = "./config/config.toml"
PROJECT_NAME = "Http-Diff"
_POLL_SECONDS = 0.1

_log = logging.getLogger("httpdiff.cli")


def build_parser():
    """Return the argument parser with its ``start`` command."""
    parser = argparse.ArgumentParser(prog="http-diff", description="HTTP 响应对比工具")
    commands = parser.add_subparsers(dest="command")
    start = commands.add_parser("start", help="开始运行数据对比任务", description="开始运行数据对比任务")
    start.add_argument("-c", "--config", default=DEFAULT_CONFIG_FILE, help="配置文件")
    return parser


def _shutdown_signals():
    names = ("SIGTERM", "SIGQUIT", "SIGINT")
    return [getattr(signal, name) for name in names if hasattr(signal, name)]


def install_shutdown_handler(event):
    """Set ``event`` on SIGTERM, SIGQUIT or SIGINT; return the replaced handlers."""

    def handle(signum, _frame):
        event.signal = signal.Signals(signum).name
        event.set()

    return {signum: signal.signal(signum, handle) for signum in _shutdown_signals()}


def _restore_handlers(previous):
    for signum, handler in previous.items():
        signal.signal(signum, handler if handler is not None else signal.SIG_DFL)


def _start(config_file):
    configs = load_config(config_file)
    init_logger(PROJECT_NAME, configs.logger)
    client = init_client(configs.http)
    _log.info("http-diff started")

    try:
        dispatcher = Dispatcher(configs.diff_configs, client)
    except (OSError, ValueError) as exc:
        _log.error("failed to create task dispatcher", extra={"error": str(exc)})
        raise

    shutdown = threading.Event()
    previous = install_shutdown_handler(shutdown)
    try:
        threading.Thread(
            target=recovery_with_logger,
            args=(dispatcher.start, "Dispatcher_Start"),
            daemon=True,
        ).start()
        while not shutdown.is_set():
            if dispatcher.wait(_POLL_SECONDS):
                _log.info("http-diff stopped, all tasks completed")
                break
        else:
            _log.info(
                "http-diff received shutdown signal",
                extra={"signal": getattr(shutdown, "signal", "")},
            )
            for task in dispatcher.tasks:
                task.stop()
    finally:
        _restore_handlers(previous)


def main(argv=None):
    """Run the command line; return the process exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 0
    try:
        _start(args.config)
    except (ConfigError, OSError, ValueError) as exc:
        print(f"Error executing command: {exc}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())