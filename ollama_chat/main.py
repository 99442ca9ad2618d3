"""Main application entry point.

Runs FastAPI with the NiceGUI chat page mounted on the same server.
Environment variables are loaded from .env file.
"""

import logging
import os
import sys

from dotenv import load_dotenv

# Load environment variables before any other imports that might need them
load_dotenv()

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


def run_integrated() -> None:
    """Run FastAPI with NiceGUI mounted on the same server.

    FastAPI serves the JSON API, NiceGUI serves the chat page, and both
    share one ChatController.
    """
    import uvicorn
    from nicegui import ui

    from ollama_chat.api.app import create_app
    from ollama_chat.chat.controller import ChatController
    from ollama_chat.config import get_app_config
    from ollama_chat.ui.chat_page import register_pages

    config = get_app_config()
    controller = ChatController.from_config(config)
    app = create_app(controller)
    register_pages(controller)

    ui.run_with(
        app,
        title="Ollama Chat",
        favicon="🤖",
        storage_secret=os.getenv("NICEGUI_STORAGE_SECRET", "ollama-chat-secret"),
    )

    logger.info(f"Starting integrated server on http://localhost:{config.port}")
    logger.info(f"API docs available at http://localhost:{config.port}/docs")
    logger.info(f"Chat UI available at http://localhost:{config.port}/")

    uvicorn.run(
        app,
        host=config.host,
        port=config.port,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )


def run_api_only() -> None:
    """Run the headless JSON API without the browser UI."""
    import uvicorn

    from ollama_chat.api.app import create_app
    from ollama_chat.config import get_app_config

    config = get_app_config()
    uvicorn.run(
        create_app(),
        host=config.host,
        port=config.port,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )


def main() -> None:
    """Application entry point.

    Set RUN_MODE=api to serve only the JSON API. Default is integrated mode
    (API and chat page on one port).
    """
    mode = os.getenv("RUN_MODE", "integrated").lower()

    logger.info(f"Starting Ollama Chat in {mode} mode")

    if mode == "api":
        run_api_only()
    else:
        run_integrated()


if __name__ == "__main__":
    main()
