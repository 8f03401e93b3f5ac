"""CLI entry point for eduassist."""

from __future__ import annotations

import argparse
import asyncio
import sys

from eduassist.config import AppConfig, load_config
from eduassist.errors import EduAssistError
from eduassist.log import setup_logging


def _add_config_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-c", "--config", default="config.yaml", help="Path to config file"
    )
    parser.add_argument(
        "-e", "--env", default=".env", help="Path to .env file"
    )


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="eduassist",
        description="Streaming tool-calling chat gateway for parents",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP gateway")
    _add_config_args(serve_parser)

    # config-check command
    check_parser = subparsers.add_parser("config-check", help="Validate configuration")
    _add_config_args(check_parser)

    # chat command
    chat_parser = subparsers.add_parser("chat", help="Chat with a running gateway from the terminal")
    _add_config_args(chat_parser)
    chat_parser.add_argument("--token", help="Bearer token (overrides client.token)")
    chat_parser.add_argument("--url", help="Gateway base URL (overrides client.base_url)")

    args = parser.parse_args()

    if args.command is None:
        # Default to serve
        args.command = "serve"
        args.config = "config.yaml"
        args.env = ".env"

    if args.command == "config-check":
        _check_config(args.config, args.env)
    elif args.command == "chat":
        _chat(args.config, args.env, token=args.token, url=args.url)
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
    print(f"  Data directory: {config.data_dir}")
    print(f"  Server: {config.server.host}:{config.server.port}")
    print(f"  Model: {config.ai.model} (max_tokens={config.ai.max_tokens}, temp={config.ai.temperature})")
    print(f"  Anthropic backend: {'configured' if config.anthropic else 'MISSING'}")
    print(f"  Storage: {config.storage.db_path}")
    print(f"  Allowed roles: {', '.join(config.auth.allowed_roles)}")
    print(f"  Tokens configured: {len(config.auth.tokens)}")
    print(f"  Client idle timeout: {config.client.idle_timeout:g}s")
    if not config.anthropic:
        sys.exit(1)


def _serve(config_path: str, env_path: str) -> None:
    """Load config and run the gateway under uvicorn."""
    import uvicorn

    from eduassist.app import EduAssistApp
    from eduassist.gateway.server import create_server

    config = _load_or_exit(config_path, env_path)
    setup_logging(config.log_level)

    server = create_server(EduAssistApp(config))
    uvicorn.run(
        server,
        host=config.server.host,
        port=config.server.port,
        log_level=config.log_level.lower(),
    )


def _chat(config_path: str, env_path: str, token: str | None, url: str | None) -> None:
    """Interactive terminal client for a running gateway."""
    from eduassist.client.session import ChatSession

    config = _load_or_exit(config_path, env_path)
    setup_logging(config.log_level)
    client_config = config.client.model_copy(
        update={k: v for k, v in (("token", token), ("base_url", url)) if v}
    )

    async def _repl() -> None:
        session = ChatSession.from_config(client_config)
        print(f"Connected to {client_config.base_url}. Type /new for a new conversation, /quit to exit.")
        try:
            while True:
                try:
                    line = await asyncio.to_thread(input, "> ")
                except EOFError:
                    break
                line = line.strip()
                if not line:
                    continue
                if line == "/quit":
                    break
                if line == "/new":
                    session.new_conversation()
                    print("(new conversation)")
                    continue
                try:
                    reply = await session.send(line, on_text=lambda t: print(t, end="", flush=True))
                except EduAssistError as e:
                    print(f"[{e.code}] {e.message}", file=sys.stderr)
                    continue
                if reply.interrupted:
                    print(" [interrupted]", end="")
                elif not reply.finalized:
                    # Apology text never arrives as a frame
                    print(reply.content, end="")
                print()
                if reply.context_used and reply.function_calls:
                    ctx = reply.context_used
                    print(
                        f"  ({reply.function_calls} tool calls, {ctx.grades_count} grades, "
                        f"{ctx.feedback_count} feedback, {ctx.violations_count} violations, "
                        f"strength {reply.prompt_strength:.2f})"
                    )
        finally:
            await session.aclose()

    asyncio.run(_repl())


if __name__ == "__main__":
    main()
