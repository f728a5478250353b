"""
LLMock CLI

Command-line interface for the LLMock server.

Commands:
    serve       - Start the mock server
    validate    - Validate a config file

Examples:
    # Start with defaults
    llmock serve

    # Start from a config file on another port
    llmock serve --config llmock.yaml --port 5116

    # Check a config file
    llmock validate llmock.yaml
"""

import argparse
import logging
import sys
from dataclasses import replace

from .common.exceptions import ConfigurationError
from .config import load_config, LOG_LEVELS
from .mock.server import MockServer


def _load(path):
    """Load config, printing the reason and exiting 1 on failure."""
    try:
        return load_config(path)
    except FileNotFoundError as e:
        print(f"Config file not found: {e}")
    except ConfigurationError as e:
        print(f"Invalid configuration: {e}")
    sys.exit(1)


def cmd_serve(args):
    """
    Start the mock server.

    Args:
        args: Parsed command-line arguments
    """
    config = _load(args.config)

    overrides = {}
    if args.host:
        overrides['host'] = args.host
    if args.port is not None:
        overrides['port'] = args.port
    if args.log_level:
        overrides['log_level'] = args.log_level
    if args.no_admin:
        overrides['admin_enabled'] = False
    if args.no_push:
        overrides['push_enabled'] = False
    if args.push_interval is not None:
        overrides['push_interval_ms'] = args.push_interval

    try:
        config = replace(config, **overrides)
    except ConfigurationError as e:
        print(f"Invalid configuration: {e}")
        sys.exit(1)

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper()),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    server = MockServer(config)

    # Start server (blocking)
    try:
        server.start()
    except KeyboardInterrupt:
        print("\nLLMock server stopped")


def cmd_validate(args):
    """
    Validate a config file and summarize it.

    Args:
        args: Parsed command-line arguments
    """
    config = _load(args.config_file)

    print(f"Config OK: {args.config_file}")
    print(f"   Rules: {len(config.rules)}")
    for index, rule in enumerate(config.rules):
        method = rule.method or '*'
        print(f"     #{index} {method} {rule.path_pattern}")

    print(f"   Hub contexts: {len(config.hub_contexts)}")
    for context in config.hub_contexts:
        state = 'active' if context.active else 'stopped'
        print(f"     {context.name} ({context.method} {context.path}, {state})")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='llmock',
        description="LLMock - mock LLM API server with real-time context broadcasting",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start the server from a config file
  %(prog)s serve --config llmock.yaml

  # Start without background pushes
  %(prog)s serve --no-push --port 5116

  # Validate a config file
  %(prog)s validate llmock.yaml
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # --- SERVE command ---
    serve_parser = subparsers.add_parser('serve', help='Start the mock server')
    serve_parser.add_argument('-c', '--config', help='YAML or JSON config file')
    serve_parser.add_argument('--host', help='Host to bind (default: 127.0.0.1)')
    serve_parser.add_argument('-p', '--port', type=int, help='Port to bind (default: 8080)')
    serve_parser.add_argument('--log-level', choices=list(LOG_LEVELS), help='Log level (default: info)')
    serve_parser.add_argument('--no-admin', action='store_true', help='Disable admin API')
    serve_parser.add_argument('--no-push', action='store_true', help='Disable background DataUpdate pushes')
    serve_parser.add_argument('--push-interval', type=int, help='Push interval in ms (default: 5000)')

    # --- VALIDATE command ---
    validate_parser = subparsers.add_parser('validate', help='Validate a config file')
    validate_parser.add_argument('config_file', help='YAML or JSON config file')

    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Dispatch to command handler
    if args.command == 'serve':
        cmd_serve(args)
    elif args.command == 'validate':
        cmd_validate(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == '__main__':
    main()
