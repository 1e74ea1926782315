import sys
import threading
import time
import webbrowser

import uvicorn

from navhub.config import Settings, load_settings, setup_logging

SETTINGS = load_settings()


def docs_url(settings: Settings) -> str:
    return f"http://{settings.host}:{settings.port}/docs"


def run_uvicorn():
    """
    Run the storage API via uvicorn in this process
    (called in a background thread).
    """
    config = uvicorn.Config(
        "navhub.main:create_app",
        factory=True,
        host=SETTINGS.host,
        port=SETTINGS.port,
        log_level=SETTINGS.log_level.lower(),
    )
    server = uvicorn.Server(config)
    server.run()


def open_browser_once():
    url = docs_url(SETTINGS)
    print(f"[server] Opening {url}")
    try:
        webbrowser.open(url)
    except webbrowser.Error:
        pass


def main():
    setup_logging(SETTINGS.log_level)

    t = threading.Thread(target=run_uvicorn, daemon=True)
    t.start()

    # give it a moment to boot before opening browser
    time.sleep(1.0)
    if "--no-browser" not in sys.argv:
        open_browser_once()

    print(f"[server] Serving data from {SETTINGS.data_dir}. Press Ctrl+C to quit.")
    try:
        while t.is_alive():
            t.join(timeout=1.0)
    except KeyboardInterrupt:
        print("\n[server] Shutting down.")


if __name__ == "__main__":
    main()
