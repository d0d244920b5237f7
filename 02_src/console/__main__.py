"""Run the console client: python -m console [user_id]."""

import asyncio
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from .console import ChatConsole


def main():
    project_root = Path(__file__).resolve().parent.parent.parent
    load_dotenv(project_root / ".env")

    api_host = os.getenv("API_HOST", "localhost")
    api_port = int(os.getenv("API_PORT", "8000"))
    user_id = sys.argv[1] if len(sys.argv) > 1 else "guest_user"

    console = ChatConsole(api_url=f"http://{api_host}:{api_port}", user_id=user_id)
    asyncio.run(console.run())


if __name__ == "__main__":
    main()
