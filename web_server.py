"""Web server entry point for the TaskHub API"""

import os
import socket
import sys

import uvicorn
from dotenv import load_dotenv

# Load environment variables from .env file BEFORE importing anything else
load_dotenv()

from taskhub.utils.exceptions import ConfigError
from taskhub_web.app import create_app


def _port_in_use(host: str, port: int) -> bool:
    """Return True if the given port is already in use."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        try:
            s.bind((host, port))
            return False
        except OSError:
            return True


def main() -> None:
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "5000"))
    if _port_in_use(host, port):
        print(f"Port {port} is already in use. Set PORT to a different number.")
        sys.exit(1)

    try:
        app = create_app()
    except ConfigError as e:
        print(f"Configuration error: {e}")
        sys.exit(1)

    print(f"Starting TaskHub API at http://localhost:{port}/api/v1")
    # Single worker: the file engine has no cross-process locking.
    uvicorn.run(app, host=host, port=port, workers=1, reload=False)


if __name__ == "__main__":
    main()
