"""
Terminal front end for the chat-ops orchestrator.

Simulates one chat channel in the terminal: every line you type is posted as
a user message and handled by the orchestrator, exactly as a live chat
message would be.
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Optional

from .config import config
from .handler import MessageProcessor, ProcessingResult
from .operations import OperationRegistry
from .platform import Author, InMemoryPlatform
from .provider import ProviderClient
from .tracing import init_tracing_client, shutdown_tracing

logger = logging.getLogger(__name__)

CHANNEL_ID = "cli"


COMMANDS = (
    ("/checklist", "checklist of the last message"),
    ("/log", "execution log of the last message as JSON"),
    ("/operations", "operations the provider may call"),
    ("/verbose", "toggle debug logging"),
    ("/clear", "start the channel over"),
    ("/help", "this list"),
    ("/quit", "leave"),
)


def setup_logging(verbose: bool = False) -> None:
    """Send logs to stderr so they do not interleave with replies."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def print_banner() -> None:
    print(f"\nchat-ops orchestrator: #{CHANNEL_ID} (model {config.orchestrator.model})")
    print("Anything not starting with / is posted to the channel.")
    for name, help_text in COMMANDS:
        print(f"  {name.ljust(12)} {help_text}")
    print()


def print_operations(processor: MessageProcessor) -> None:
    """Print registered operations."""
    deduplicator = processor.loop.executor.deduplicator
    print("\nRegistered Operations:")
    print("─" * 64)
    for i, (name, op) in enumerate(OperationRegistry.all_operations().items(), start=1):
        flag = " [once]" if deduplicator.is_single_execution(name) else ""
        print(f"{i}. {name.ljust(22)} - {op.description}{flag}")
    print()


def print_checklist(processor: MessageProcessor, last: Optional[ProcessingResult]) -> None:
    if last is None or last.orchestration is None:
        print("\nNo checklist available. Send a message first.\n")
        return
    renderer = processor.loop.renderer
    log = last.orchestration.execution_log
    if not renderer.should_display(log):
        print("\nThe last message did not need a checklist.\n")
        return
    print("\n" + renderer.render(log).as_text() + "\n")


def print_log(last: Optional[ProcessingResult]) -> None:
    if last is None or last.orchestration is None:
        print("\nNo execution log available. Send a message first.\n")
        return
    entries = last.orchestration.execution_log.to_list()
    print(json.dumps(entries, indent=2, ensure_ascii=False, default=str))
    print()


class InteractiveCLI:
    """Posts typed lines into a simulated channel and shows the replies."""

    def __init__(
        self,
        processor: MessageProcessor,
        platform: InMemoryPlatform,
        user: Author,
        verbose: bool = False,
    ):
        self.processor = processor
        self.platform = platform
        self.user = user
        self.verbose = verbose
        self.last: Optional[ProcessingResult] = None
        self.platform.create_channel(CHANNEL_ID, "cli")

    def toggle_verbose(self) -> None:
        self.verbose = not self.verbose
        logging.getLogger().setLevel(logging.DEBUG if self.verbose else logging.WARNING)
        print(f"debug logging {'on' if self.verbose else 'off'}")

    def clear_history(self) -> None:
        self.platform.delete_channel(CHANNEL_ID)
        self.platform.create_channel(CHANNEL_ID, "cli")
        self.last = None
        print(f"#{CHANNEL_ID} cleared")

    async def send(self, text: str) -> Optional[ProcessingResult]:
        message = self.platform.post(CHANNEL_ID, content=text, author=self.user)
        self.last = await self.processor.handle(message)
        return self.last

    async def process_message(self, text: str) -> None:
        result = await self.send(text)
        if result is None:
            print("(ignored)\n")
            return

        print(f"\n{result.reply}\n")
        orch = result.orchestration
        if orch is not None:
            note = f"[{orch.stop_reason} after {orch.rounds} round(s), {len(orch.execution_log)} call(s)"
            if orch.new_channel_id:
                note += f", channel is now {orch.new_channel_id}"
            print(note + "]\n")

    def _dispatch(self, command: str) -> bool:
        """Run a slash command. Returns False when the CLI should exit."""
        actions = {
            "/checklist": lambda: print_checklist(self.processor, self.last),
            "/log": lambda: print_log(self.last),
            "/operations": lambda: print_operations(self.processor),
            "/verbose": self.toggle_verbose,
            "/clear": self.clear_history,
            "/help": print_banner,
        }
        if command in ("/quit", "/exit"):
            return False
        action = actions.get(command)
        if action is None:
            print(f"unknown command {command}, try /help")
        else:
            action()
        return True

    async def run(self) -> None:
        print_banner()
        while True:
            try:
                line = (await asyncio.to_thread(input, f"#{CHANNEL_ID}> ")).strip()
            except EOFError:
                break

            if line.startswith("/"):
                if not self._dispatch(line.split()[0].lower()):
                    break
            elif line:
                try:
                    await self.process_message(line)
                except Exception as e:
                    logger.debug("Message handling failed", exc_info=True)
                    print(f"error: {e}\n")


async def _main(args: argparse.Namespace) -> None:
    settings = config
    provider = ProviderClient(
        base_url=args.base_url or settings.orchestrator.base_url,
        api_key=settings.orchestrator.api_key,
    )
    platform = InMemoryPlatform()
    processor = MessageProcessor.from_config(settings, platform, provider)
    # A single simulated channel accepts every message.
    processor.allowed_channel = ""
    cli = InteractiveCLI(
        processor,
        platform,
        Author(id=args.user_id, name=args.user_name),
        verbose=args.verbose,
    )

    try:
        if args.message:
            result = await cli.send(args.message)
            if args.json:
                output = {
                    "message": args.message,
                    "reply": result.reply if result else None,
                    "stop_reason": (
                        result.orchestration.stop_reason
                        if result and result.orchestration
                        else None
                    ),
                    "execution_log": (
                        result.orchestration.execution_log.to_list()
                        if result and result.orchestration
                        else []
                    ),
                }
                print(json.dumps(output, indent=2, ensure_ascii=False, default=str))
            else:
                print(result.reply if result else "(message ignored)")
        else:
            await cli.run()
    finally:
        encoder = processor.builder.encoder
        if encoder is not None:
            await encoder.close()
        await provider.close()


def main() -> None:
    """Console entry point (``chatops-interactive``)."""
    parser = argparse.ArgumentParser(
        description="Talk to the chat-ops orchestrator from a terminal.",
        formatter_class=argparse.RawTextHelpFormatter,
        epilog="""
Examples:
  %(prog)s                                   # one simulated channel
  %(prog)s -v                                # same, with debug logs on stderr
  %(prog)s -m "create a channel called news" # one message, then exit

Type /help inside the CLI for its commands.
""",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("-m", "--message", type=str, help="Handle a single message and exit")
    parser.add_argument(
        "--base-url",
        type=str,
        default=None,
        help=f"Provider endpoint URL (default: {config.orchestrator.base_url})",
    )
    parser.add_argument("--user-id", type=str, default="cli-user", help="Simulated author id")
    parser.add_argument("--user-name", type=str, default="you", help="Simulated author name")
    parser.add_argument("--json", action="store_true", help="Output results as JSON (for scripting)")

    args = parser.parse_args()
    setup_logging(args.verbose)
    init_tracing_client(config.langfuse)

    try:
        asyncio.run(_main(args))
    except KeyboardInterrupt:
        print("\ninterrupted")
    finally:
        shutdown_tracing()


if __name__ == "__main__":
    main()
