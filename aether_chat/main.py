"""
Console entry point - streams gateway replies to the terminal with
Ctrl-C to stop a generation in progress.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from typing import Any

from aether_chat.chat import StreamController, calculate_context_budget
from aether_chat.clients import LLMClient, SearchClient
from aether_chat.config import Configuration
from aether_chat.store import InMemoryChatStore, Message


def _configure_advanced_logging(logging_config: dict[str, Any]) -> None:
    """
    Logging configuration with hierarchical loggers and feature control.

    Sets per-module levels on parent loggers so children inherit, and
    stores feature flags for ``should_log_feature``.
    """
    level_map = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }

    global_level = logging_config.get("level", "WARNING")
    logging.getLogger().setLevel(level_map.get(global_level, logging.WARNING))

    module_logger_map = {
        "stream": {
            "loggers": ["aether_chat.chat"],
            "default_level": "INFO",
            "features": ["llm_replies", "frames"],
        },
        "gateway": {
            "loggers": ["aether_chat.clients", "httpx"],
            "default_level": "INFO",
            "features": ["http_requests"],
        },
        "store": {
            "loggers": ["aether_chat.store"],
            "default_level": "WARNING",
            "features": [],
        },
    }

    modules_config = logging_config.get("modules", {})

    for module_name, module_config in modules_config.items():
        if not isinstance(module_config, dict):
            continue

        module_level = module_config.get(
            "level",
            module_logger_map.get(module_name, {}).get("default_level", global_level),
        )
        level_value = level_map.get(module_level, logging.WARNING)

        for logger_name in module_logger_map.get(module_name, {}).get("loggers", []):
            logging.getLogger(logger_name).setLevel(level_value)

        if not hasattr(logging, "_module_features"):
            logging._module_features = {}  # type: ignore[attr-defined]
        logging._module_features[module_name] = module_config.get("enable_features", {})  # type: ignore[attr-defined]


# Configure logging for the application
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
)


class _TerminalPrinter:
    """Prints newly streamed text as the store's streaming state grows."""

    def __init__(self) -> None:
        self._printed = 0

    def reset(self) -> None:
        self._printed = 0

    def __call__(self, kind: str, payload: Any) -> None:
        if kind != "streaming_state":
            return
        text = payload.current_chunk
        if len(text) < self._printed:
            # New turn
            self._printed = 0
        if len(text) > self._printed:
            sys.stdout.write(text[self._printed:])
            sys.stdout.flush()
            self._printed = len(text)


async def _run_turn(controller: StreamController, prompt: str) -> None:
    """Run one turn; SIGINT stops the generation instead of the program."""
    loop = asyncio.get_running_loop()
    handler_installed = False
    if sys.platform != "win32":
        loop.add_signal_handler(signal.SIGINT, controller.stop_generation)
        handler_installed = True
    try:
        await controller.send_message(prompt)
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)
    sys.stdout.write("\n")


async def main(argv: list[str] | None = None) -> None:
    """Send the prompt given on the command line, or read prompts from stdin."""
    args = sys.argv[1:] if argv is None else argv
    config = Configuration()

    logging_config = config.get_logging_config()
    if "format" in logging_config:
        for handler in logging.getLogger().handlers:
            if isinstance(handler, logging.StreamHandler):
                handler.setFormatter(logging.Formatter(logging_config["format"]))
    _configure_advanced_logging(logging_config)

    settings = config.get_chat_settings()
    store = InMemoryChatStore(
        active_model=settings.model,
        activity_limit=config.get_activity_config()["max_events"],
    )
    printer = _TerminalPrinter()
    store.subscribe(printer)

    search_client = SearchClient.from_config(config.get_search_config())

    def on_error(error: Exception) -> None:
        sys.stderr.write(f"\n[Error: {error}]\n")

    def on_complete(message: Message) -> None:
        if message.metadata is not None:
            logging.info(
                f"Turn complete: finish_reason={message.metadata.finish_reason}, "
                f"tokens={message.metadata.tokens.input}/{message.metadata.tokens.output}, "
                f"latency={message.metadata.latency}ms"
            )
        budget = calculate_context_budget(store.list_messages(), settings)
        logging.info(f"Context estimate: {budget.total} tokens, {budget.remaining} remaining")

    async with LLMClient(config) as llm_client:
        controller = StreamController(
            llm_client,
            store,
            settings,
            search_client=search_client,
            on_error=on_error,
            on_complete=on_complete,
            chat_logging_conf=config.get_chat_logging_config(),
        )
        try:
            if args:
                await _run_turn(controller, " ".join(args))
                return

            while True:
                try:
                    prompt = await asyncio.to_thread(input, "> ")
                except EOFError:
                    break
                if not prompt.strip():
                    continue
                printer.reset()
                await _run_turn(controller, prompt)
        except KeyboardInterrupt:
            logging.info("Keyboard interrupt received, shutting down...")
        finally:
            if search_client is not None:
                await search_client.close()
            usage = store.get_usage()
            logging.info(
                f"Session usage: {usage.total_tokens} tokens over {usage.requests} request(s)"
            )


def cli_main() -> None:
    """Synchronous CLI entrypoint that runs the async main."""
    asyncio.run(main())


if __name__ == "__main__":
    cli_main()
