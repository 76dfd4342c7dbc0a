"""CLI entry point for xiaoyue."""

from __future__ import annotations

import argparse
import sys

from xiaoyue.config import AppConfig, load_config
from xiaoyue.log import setup_logging


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="xiaoyue",
        description="Wallet-gated chat and Solana token-intelligence backend",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    for name, help_text in (
        ("serve", "Start the HTTP server"),
        ("config-check", "Validate configuration"),
        ("model-info", "Show language model and gate settings"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("-c", "--config", default="config.yaml", help="Path to config file")
        sub.add_argument("-e", "--env", default=".env", help="Path to .env file")

    args = parser.parse_args()

    if args.command is None:
        args.command = "serve"
        args.config = "config.yaml"
        args.env = ".env"

    if args.command == "config-check":
        _check_config(args.config, args.env)
    elif args.command == "model-info":
        _model_info(args.config, args.env)
    elif args.command == "serve":
        _serve(args.config, args.env)


def _load_or_exit(config_path: str, env_path: str) -> AppConfig:
    try:
        return load_config(config_path, env_path)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Run 'python install.py' first or copy config.example.yaml to config.yaml")
        sys.exit(1)
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)


def _check_config(config_path: str, env_path: str) -> None:
    """Validate configuration and print summary."""
    config = _load_or_exit(config_path, env_path)
    print(f"Configuration valid: {config_path}")
    print(f"  Data directory : {config.data_dir}")
    print(f"  Storage        : {config.storage.db_path}")
    print(f"  Chain RPC      : {config.chain.rpc_url} ({config.chain.commitment})")
    print(f"  Free limit     : {config.gate.free_limit}")
    print(f"  Anthropic      : {'configured' if config.anthropic else 'MISSING'}")
    print(f"  Listen         : {config.server.host}:{config.server.port}")
    if not config.anthropic:
        sys.exit(1)


def _model_info(config_path: str, env_path: str) -> None:
    config = _load_or_exit(config_path, env_path)
    ai = config.ai
    print("AI Model Configuration")
    print("=" * 50)
    print(f"  Model       : {ai.model}")
    print(f"  History     : last {ai.history_limit} messages")
    print(f"  Chat        : temperature={ai.chat.temperature} max_tokens={ai.chat.max_tokens}")
    print(f"  Analysis    : temperature={ai.analysis.temperature} max_tokens={ai.analysis.max_tokens}")
    print(f"  Reply mode  : {config.persona.reply_mode}")
    print(f"  Serialized  : {config.gate.serialize_sessions}")
    print()


def _serve(config_path: str, env_path: str) -> None:
    """Load config and run the HTTP server."""
    config = _load_or_exit(config_path, env_path)
    setup_logging(config.log_level, config.log_format)

    import uvicorn

    from xiaoyue.api.routes import create_app
    from xiaoyue.app import XiaoyueApp

    try:
        app = create_app(XiaoyueApp(config))
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    uvicorn.run(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
