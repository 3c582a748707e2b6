"""Application entry point.

Runs FastAPI (port 8000) with NiceGUI mounted for the chat interface.
Environment variables are loaded from .env file.
"""

import logging
import os
import sys

from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


def run_integrated() -> None:
    """Serve the API and the chat UI from one process on one port."""
    import uvicorn
    from nicegui import ui

    from streamchat.api.app import create_app
    from streamchat.ui.chat_page import chat_page  # noqa: F401 - registers the page

    port = int(os.getenv("PORT", "8000"))
    # The UI calls back into this same server
    os.environ.setdefault("API_BASE_URL", f"http://localhost:{port}")

    app = create_app()
    ui.run_with(
        app,
        title="Chat Assistant",
        storage_secret=os.getenv("NICEGUI_STORAGE_SECRET", "streamchat-secret"),
    )

    logger.info(f"Starting integrated server on http://localhost:{port}")
    logger.info(f"API docs available at http://localhost:{port}/docs")

    uvicorn.run(
        app,
        host=os.getenv("HOST", "0.0.0.0"),
        port=port,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )


def run_separate() -> None:
    """Run the API (port 8000) and the UI (port 8080) as two processes."""
    import asyncio
    import subprocess

    async def run_servers() -> None:
        logger.info("Starting FastAPI on http://localhost:8000")
        logger.info("Starting NiceGUI on http://localhost:8080")

        api_proc = subprocess.Popen(
            [
                sys.executable,
                "-m",
                "uvicorn",
                "streamchat.api.app:app",
                "--host",
                os.getenv("HOST", "0.0.0.0"),
                "--port",
                "8000",
            ]
        )
        ui_proc = subprocess.Popen(
            [sys.executable, "-c", "from streamchat.ui.chat_page import main; main()"]
        )

        try:
            while api_proc.poll() is None and ui_proc.poll() is None:
                await asyncio.sleep(1)
        finally:
            logger.info("Shutting down servers...")
            api_proc.terminate()
            ui_proc.terminate()
            api_proc.wait()
            ui_proc.wait()

    try:
        asyncio.run(run_servers())
    except KeyboardInterrupt:
        pass


def main() -> None:
    """Start the app; RUN_MODE=separate splits API and UI across two ports."""
    mode = os.getenv("RUN_MODE", "integrated").lower()
    logger.info(f"Starting streamchat in {mode} mode")

    if mode == "separate":
        run_separate()
    else:
        run_integrated()


if __name__ == "__main__":
    main()
