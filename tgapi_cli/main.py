"""Command-line front end for :mod:`tgapi`.

Examples::

    tgapi me
    tgapi send 42 "Build finished" --file report.pdf
    tgapi send "Hello *there*" --parse-mode MarkdownV2 --escape
    tgapi poll --offset 1001
    tgapi webhook set https://example.com/hook

The bot token comes from ``TELEGRAM_BOT_TOKEN`` (``.env`` is honoured);
``send`` falls back to ``TELEGRAM_CHAT_ID`` when no chat id is given.
Results are printed to stdout as JSON.
"""

import argparse
import json
import sys
from typing import Any, Optional, Sequence

from tgapi import TelegramClient, TelegramError
from tgapi_cli.config import DEFAULT_CHAT_ID, LOG_FILE, LOG_LEVEL, build_client
from tgapi_cli.logger import get_logger

logger = get_logger(LOG_LEVEL, LOG_FILE)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="tgapi",
        description="Telegram Bot API command-line client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment Variables:
  TELEGRAM_BOT_TOKEN  Bot token issued by BotFather (required)
  TELEGRAM_BOTNAME    Bot username (optional)
  TELEGRAM_CHAT_ID    Default chat for the send command (optional)
  LOG_LEVEL           DEBUG, INFO, WARNING, ... (default: INFO)
  LOG_FILE            Also write JSON logs to this rotating file (optional)
        """,
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("me", help="Show the bot's own user record")

    send = commands.add_parser("send", help="Send a message or a file")
    send.add_argument("args", nargs="+", metavar="[CHAT_ID] TEXT", help="Target chat (optional) and message text")
    send.add_argument("-f", "--file", default=None, help="File to upload; its extension picks the send method")
    send.add_argument("-c", "--caption", default="", help="Caption for the file (default: the message text)")
    send.add_argument("-p", "--parse-mode", default="Markdown", help="Telegram parse mode (default: Markdown)")
    send.add_argument("--escape", action="store_true", help="Escape MarkdownV2 special characters in TEXT")

    poll = commands.add_parser("poll", help="Fetch pending updates once, without blocking")
    poll.add_argument("-o", "--offset", type=int, default=0, help="First update id to return (default: 0)")
    poll.add_argument("-l", "--limit", type=int, default=100, help="Maximum number of updates (default: 100)")

    webhook = commands.add_parser("webhook", help="Manage the bot's webhook")
    actions = webhook.add_subparsers(dest="action", required=True)
    set_hook = actions.add_parser("set", help="Register a webhook URL")
    set_hook.add_argument("url")
    actions.add_parser("delete", help="Remove the webhook")
    actions.add_parser("info", help="Show webhook status")

    return parser.parse_args(argv)


def _split_send_args(args: Sequence[str]) -> tuple:
    """Return ``(chat_id, text)`` from the positional arguments of ``send``."""
    if len(args) >= 2:
        chat_id: Any = args[0]
        if chat_id.lstrip("-").isdigit():
            chat_id = int(chat_id)
        return chat_id, " ".join(args[1:])
    if DEFAULT_CHAT_ID is None:
        raise SystemExit("send: no CHAT_ID given and TELEGRAM_CHAT_ID is not set")
    return DEFAULT_CHAT_ID, args[0]


def run_command(client: TelegramClient, args: argparse.Namespace) -> Any:
    """Execute the parsed sub-command and return Telegram's decoded response."""
    if args.command == "me":
        return client.get_me()
    if args.command == "poll":
        return client.get_updates(args.offset, args.limit)
    if args.command == "webhook":
        if args.action == "set":
            return client.set_webhook(args.url)
        if args.action == "delete":
            return client.delete_webhook()
        return client.get_webhook_info()

    chat_id, text = _split_send_args(args.args)
    if args.escape and args.parse_mode == "MarkdownV2":
        text = client.escape_markdown(text)
    logger.info("Sending", extra={"chat_id": chat_id, "has_file": bool(args.file)})
    return client.send(chat_id, text, file=args.file, caption=args.caption, parse_mode=args.parse_mode)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    try:
        with build_client() as client:
            result = run_command(client, args)
    except (TelegramError, OSError) as exc:
        logger.error("Command failed", extra={"command": args.command, "error": str(exc)})
        return 1

    print(json.dumps(result, indent=2, ensure_ascii=False))
    if isinstance(result, dict) and not result.get("ok", True):
        logger.warning("Telegram returned ok=false", extra={"command": args.command, "api_response": result})
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
