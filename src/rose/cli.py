"""Interactive command-line chat with Rose, for local testing."""

import argparse
import logging
import uuid
from pathlib import Path

from .app import Rose, build
from .config import load_config
from .engine import ChatReply

BANNER = """
╔══════════════════════════════════════════╗
║              Rose v0.1.0                 ║
║     Virtual Receptionist (local chat)    ║
╚══════════════════════════════════════════╝

Commands:
  /arrive [location]  - Walk in again (new session, greeting)
  /leave <message>    - Leave a message for the owners
  /inbox              - Collect messages left for you
  /sweep              - Apply the history and message retention window
  /help               - Show this help
  /exit, /quit        - Exit the CLI

Type your message and press Enter.
"""


class CLI:
    """Interactive chat loop speaking as a single identity."""

    def __init__(
        self,
        rose: Rose,
        identity_key: str,
        display_name: str,
        location: str = "the lobby",
    ) -> None:
        self.rose = rose
        self.identity_key = identity_key
        self.display_name = display_name
        self.location = location
        self.session_id = str(uuid.uuid4())

    def _format_reply(self, reply: ChatReply) -> str:
        """Format a reply for display."""
        output = ["\n" + "─" * 40, f"Rose: {reply.text}"]
        if reply.actions:
            for action in reply.actions:
                output.append(f"  [action] {action.type} -> {action.target or '-'}")
        if reply.suggested_animation:
            output.append(f"  [animation] {reply.suggested_animation}")
        output.append("─" * 40)
        return "\n".join(output)

    async def _arrive(self, location: str | None = None) -> None:
        if location:
            self.location = location
        arrival = await self.rose.engine.handle_arrival(
            self.identity_key, self.display_name, self.location
        )
        self.session_id = arrival.session_id
        if arrival.greeting:
            print(f"\nRose: {arrival.greeting}")
        print(f"(role: {arrival.role_label}, session: {self.session_id})")

    async def _collect_messages(self) -> None:
        queue = self.rose.engine.messages
        pending = await queue.pending(self.identity_key) if queue else []
        if not pending:
            print("No messages.")
            return
        for message in pending:
            print(f"  From {message.from_name}: {message.content}")
            await queue.mark_delivered(message.id)

    async def _handle_command(self, command: str) -> bool:
        """Handle a special command. Returns True if should continue, False to exit."""
        cmd, _, arg = command.strip().partition(" ")
        cmd = cmd.lower()

        if cmd in ("/exit", "/quit", "exit", "quit"):
            print("\nGoodbye!")
            return False

        if cmd == "/arrive":
            await self._arrive(arg.strip() or None)
            return True

        if cmd == "/leave":
            if not arg.strip():
                print("Usage: /leave <message>")
                return True
            count = await self.rose.engine.leave_message(
                self.identity_key, self.display_name, arg.strip()
            )
            print(f"Message left for {count} owner(s)")
            return True

        if cmd == "/inbox":
            await self._collect_messages()
            return True

        if cmd == "/sweep":
            exchanges = await self.rose.sweep_history()
            messages = await self.rose.sweep_messages()
            print(f"Removed {exchanges} old exchange(s) and {messages} old message(s)")
            return True

        if cmd == "/help":
            print(BANNER)
            return True

        return True

    async def run(self) -> None:
        """Run the interactive CLI."""
        print(BANNER)
        self.rose.start()

        try:
            await self._arrive()
            while True:
                try:
                    user_input = input("you> ").strip()

                    if not user_input:
                        continue

                    if user_input.startswith("/") or user_input.lower() in ("exit", "quit"):
                        if not await self._handle_command(user_input):
                            break
                        continue

                    reply = await self.rose.engine.handle_message(
                        self.identity_key,
                        self.display_name,
                        self.location,
                        self.session_id,
                        user_input,
                    )
                    print(self._format_reply(reply))

                except (KeyboardInterrupt, EOFError):
                    print("\nGoodbye!")
                    break
        finally:
            self.rose.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="rose", description="Chat with Rose locally.")
    parser.add_argument("--key", default="local-user", help="Identity key to speak as")
    parser.add_argument("--name", default="Visitor", help="Display name")
    parser.add_argument("--location", default="the lobby", help="Arrival location")
    parser.add_argument("--config", type=Path, default=None, help="Path to config.json")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


async def run_cli(argv: list[str] | None = None) -> None:
    """Run the CLI with configuration from file and environment."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config(args.config)
    if not config.api_key:
        print("Note: GROQ_API_KEY not set, Rose will answer with fallback lines.")

    cli = CLI(build(config), args.key, args.name, args.location)
    await cli.run()
