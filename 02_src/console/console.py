"""Interactive console client for the BorAI API."""

import asyncio
import json
import sys
from typing import Callable

import httpx

from borai.logging_config import get_logger

logger = get_logger(__name__)

HELP_TEXT = """Commands:
  /new [mode]       start a new conversation
  /clear            clear the current conversation
  /mode <mode>      switch mode (standard, tutor, research)
  /sessions         list conversations
  /select <id>      switch to a conversation
  /delete <id>      delete a conversation
  /quit             sign out and exit
Anything else is sent as a message."""


def _default_write(text: str) -> None:
    sys.stdout.write(text)
    sys.stdout.flush()


class ChatConsole:
    """Line-oriented chat client printing streamed replies as they arrive."""

    def __init__(
        self,
        api_url: str = "http://localhost:8000",
        user_id: str = "guest_user",
        display_name: str | None = None,
        write: Callable[[str], None] = _default_write,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._api_url = api_url.rstrip("/")
        self._user_id = user_id
        self._display_name = display_name
        self._write = write
        self._client = httpx.AsyncClient(
            base_url=self._api_url, transport=transport, timeout=None
        )
        self.current_session_id: str | None = None

    @property
    def _user_path(self) -> str:
        return f"/api/users/{self._user_id}"

    async def start(self) -> None:
        """Sign in and select the most recent conversation."""
        response = await self._client.post(
            f"{self._user_path}/sign-in",
            json={"display_name": self._display_name},
        )
        response.raise_for_status()
        sessions = response.json()
        current = next((s for s in sessions if s["current"]), sessions[0])
        self.current_session_id = current["id"]
        self._write(f"Signed in as {self._user_id}. Conversation: {current['title']}\n")

    async def stop(self) -> None:
        """Sign out and close the HTTP client."""
        try:
            await self._client.post(f"{self._user_path}/sign-out")
        except httpx.HTTPError as e:
            logger.error("Sign-out failed: %s", e)
        finally:
            await self._client.aclose()

    async def run(self) -> None:
        """Read lines from stdin until /quit or EOF."""
        await self.start()
        self._write(HELP_TEXT + "\n")
        try:
            while True:
                try:
                    line = await asyncio.to_thread(input, "> ")
                except EOFError:
                    break
                if not await self.handle_line(line):
                    break
        finally:
            await self.stop()

    async def handle_line(self, line: str) -> bool:
        """Handle one input line. Returns False when the user quits."""
        line = line.strip()
        if not line:
            return True
        if not line.startswith("/"):
            await self.send(line)
            return True

        command, _, argument = line.partition(" ")
        argument = argument.strip()
        try:
            if command == "/quit":
                return False
            if command == "/new":
                await self._new(argument or "standard")
            elif command == "/clear":
                await self._post(f"/sessions/{self.current_session_id}/clear")
                self._write("Conversation cleared.\n")
            elif command == "/mode" and argument:
                await self._request(
                    "PUT",
                    f"/sessions/{self.current_session_id}/mode",
                    json={"mode": argument},
                )
                self._write(f"Mode: {argument}\n")
            elif command == "/sessions":
                await self._list()
            elif command == "/select" and argument:
                session = await self._post(f"/sessions/{argument}/select")
                self.current_session_id = session["id"]
                self._write(f"Conversation: {session['title']}\n")
            elif command == "/delete" and argument:
                session = await self._request("DELETE", f"/sessions/{argument}")
                self.current_session_id = session["id"]
                self._write(f"Deleted. Conversation: {session['title']}\n")
            else:
                self._write(HELP_TEXT + "\n")
        except httpx.HTTPStatusError as e:
            self._write(f"Error: {_detail(e.response)}\n")
        return True

    async def send(self, text: str) -> None:
        """Submit a message and print the reply while it streams."""
        printed = 0
        citations: list[dict] = []
        async with self._client.stream(
            "POST",
            f"{self._user_path}/messages/stream",
            json={"text": text, "session_id": self.current_session_id},
        ) as response:
            if response.status_code >= 400:
                await response.aread()
                self._write(f"Error: {_detail(response)}\n")
                return
            async for line in response.aiter_lines():
                if not line:
                    continue
                event = json.loads(line)
                if event["event"] == "error":
                    self._write(f"Error: {event['detail']}\n")
                    return
                message = event.get("message", {})
                if message.get("role") != "model":
                    continue
                if event["event"] == "message_updated":
                    delta = event.get("delta", "")
                    self._write(delta)
                    printed += len(delta)
                elif event["event"] in ("turn_completed", "turn_failed"):
                    self._write(message["text"][printed:])
                    citations = message.get("citations", [])
        self._write("\n")
        if citations:
            self._write("Sources:\n")
            for index, citation in enumerate(citations, start=1):
                self._write(f"  [{index}] {citation['title']} - {citation['uri']}\n")

    async def _new(self, mode: str) -> None:
        session = await self._post("/sessions", json={"mode": mode})
        self.current_session_id = session["id"]
        self._write("New conversation started.\n")

    async def _list(self) -> None:
        sessions = await self._request("GET", "/sessions")
        for session in sessions:
            marker = "*" if session["id"] == self.current_session_id else " "
            self._write(
                f"{marker} {session['id']}  {session['title']}  ({session['mode']})\n"
            )

    async def _post(self, path: str, json: dict | None = None):
        return await self._request("POST", path, json=json)

    async def _request(self, method: str, path: str, json: dict | None = None):
        response = await self._client.request(
            method, f"{self._user_path}{path}", json=json
        )
        response.raise_for_status()
        return response.json()


def _detail(response: httpx.Response) -> str:
    try:
        return response.json().get("detail", response.text)
    except ValueError:
        return response.text or str(response.status_code)
