"""CLI entry point for oauth-server.

Runs the authorization server and manages client registrations in the
local config file.
"""
import argparse
import sys
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from config import add_client, clear_config, config_path, load_config
from oauth_server.clients import generate_client_id, generate_client_secret

# Load environment: .env (local override)
_env_file = Path(".env")
if _env_file.exists():
    load_dotenv(_env_file)

VERSION = "1.0.0"


# ============== Commands ==============

def cmd_start(args):
    """Run the authorization server in the foreground."""
    from logging_config import setup_logging
    from main import create_app

    setup_logging(level=args.log_level, json_logs=args.json_logs)

    config = load_config()
    if args.host:
        config.data["host"] = args.host
    if args.port:
        config.data["port"] = args.port
    if args.dump:
        config.data["dump_requests"] = True

    app = create_app(config)

    print(f"Server is running at {config.host}:{config.port}")
    print(f"Point your OAuth client Auth endpoint to {config.issuer_url}/oauth/authorize")
    print(f"Point your OAuth client Token endpoint to {config.issuer_url}/oauth/token")
    uvicorn.run(app, host=config.host, port=config.port, log_level=args.log_level.lower())


def cmd_gen_client(args):
    """Generate a client id/secret pair, optionally registering it."""
    try:
        client_id = generate_client_id()
        client_secret = generate_client_secret(args.bytes)
    except ValueError as e:
        print(f"[X] {e}", file=sys.stderr)
        return 1

    print(f"Generated Client ID: {client_id}")
    print(f"Generated Client Secret ({args.bytes} random bytes): {client_secret}")
    print(f"Length of generated secret string: {len(client_secret)} characters")

    if args.register:
        try:
            add_client(client_id, client_secret, args.register)
        except ValueError as e:
            print(f"[X] {e}", file=sys.stderr)
            return 1
        print(f"\n[OK] Registered for redirect domain: {args.register}")
        print(f"  Config saved to: {config_path()}")
        print("  Restart the server to pick up the new client.")
    return 0


def cmd_reset(args):
    """Remove the config file (back to built-in defaults)."""
    path = config_path()
    clear_config()
    print(f"Config removed: {path}")
    return 0


def cmd_version(args):
    """Show version information."""
    print(f"oauth-server v{VERSION}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="oauth-server",
        description="OAuth2 authorization server (authorization code + password grants)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  oauth-server start --port 9096 --dump
  oauth-server gen-client --register http://localhost:3000/login/generic_oauth
  oauth-server version
"""
    )
    subparsers = parser.add_subparsers(dest="command")

    start = subparsers.add_parser("start", help="Run the server (default)")
    start.add_argument("--host", help="Bind address (default from config)")
    start.add_argument("--port", "-p", type=int, help="Listen port (default 9096)")
    start.add_argument("--dump", "-d", action="store_true", help="Dump requests to the log")
    start.add_argument("--log-level", default="INFO", help="Log level (default INFO)")
    start.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    start.set_defaults(func=cmd_start)

    gen = subparsers.add_parser("gen-client", help="Generate a client id and secret")
    gen.add_argument("--bytes", type=int, default=32, help="Random bytes in the secret (default 32)")
    gen.add_argument("--register", metavar="DOMAIN", help="Save the client with this redirect domain")
    gen.set_defaults(func=cmd_gen_client)

    reset = subparsers.add_parser("reset", help="Remove the config file")
    reset.set_defaults(func=cmd_reset)

    version = subparsers.add_parser("version", help="Show version")
    version.set_defaults(func=cmd_version)

    return parser


# ============== Main Entry Point ==============

def main(argv=None):
    """Main entry point for CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        args = parser.parse_args(["start"])

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
