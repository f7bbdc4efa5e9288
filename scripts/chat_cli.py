#!/usr/bin/env python3
"""Interactive chat CLI for trying out the concierge's streaming endpoint."""

import sys

import httpx
from pydantic import ValidationError
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt

from concierge.models.events import ErrorEvent, TextEvent, ToolResultEvent, ToolStartEvent, parse_sse_line


class ChatCLI:
    """Interactive chat interface for the concierge.

    The server keeps no conversation state, so the CLI holds the history and
    re-sends it with every message, like the web widget does.
    """

    def __init__(self, base_url: str = "http://localhost:8000"):
        """Initialize chat CLI."""
        self.base_url = base_url
        self.session_id: str | None = None
        self.history: list[dict[str, str]] = []
        self.console = Console()
        self.client = httpx.Client(timeout=60.0)

    def start(self) -> None:
        """Start the interactive chat session."""
        self.console.print(
            Panel.fit(
                "[bold blue]Rentagun Concierge - Interactive Chat[/bold blue]\n"
                "Type your messages to chat with the concierge.\n"
                "Commands: /help, /clear, /quit",
                border_style="blue",
            )
        )

        if not self._test_connection():
            self.console.print(f"[red]❌ Cannot connect to the service at {self.base_url}.[/red]")
            return

        self.console.print("[green]✅ Connected to concierge service[/green]\n")

        try:
            while True:
                user_input = Prompt.ask("\n[bold cyan]You[/bold cyan]")

                if user_input.lower() in ["/quit", "/exit", "quit", "exit"]:
                    break
                elif user_input.lower() == "/help":
                    self._show_help()
                    continue
                elif user_input.lower() == "/clear":
                    self.session_id = None
                    self.history = []
                    self.console.print("[yellow]🔄 Conversation cleared[/yellow]")
                    continue
                elif user_input.strip() == "":
                    continue

                self.history.append({"role": "user", "content": user_input})
                reply = self._stream_reply()
                if reply:
                    self.history.append({"role": "assistant", "content": reply})

        except KeyboardInterrupt:
            pass
        finally:
            self.console.print("\n[yellow]👋 Goodbye![/yellow]")
            self.client.close()

    def _test_connection(self) -> bool:
        try:
            response = self.client.get(f"{self.base_url}/api/health")
            return response.status_code == 200
        except httpx.HTTPError:
            return False

    def _stream_reply(self) -> str:
        """Send the history and render the streamed reply; returns the assistant text."""
        payload: dict = {"messages": self.history}
        if self.session_id:
            payload["sessionId"] = self.session_id

        text_parts: list[str] = []
        self.console.print("\n[bold green]Concierge[/bold green]")

        try:
            with self.client.stream("POST", f"{self.base_url}/api/chat", json=payload) as response:
                if response.status_code != 200:
                    response.read()
                    self.console.print(f"[red]❌ API Error: {response.status_code} - {response.text}[/red]")
                    self.history.pop()
                    return ""

                self.session_id = response.headers.get("X-Session-Id", self.session_id)

                for line in response.iter_lines():
                    try:
                        event = parse_sse_line(line)
                    except ValidationError:
                        self.console.print(f"[red]Unrecognized event: {line}[/red]")
                        continue

                    if isinstance(event, TextEvent):
                        text_parts.append(event.content)
                        self.console.print(event.content, end="", markup=False, highlight=False)
                    elif isinstance(event, ToolStartEvent):
                        self.console.print(f"\n[dim]🔧 Running {event.tool}...[/dim]")
                    elif isinstance(event, ToolResultEvent) and event.display:
                        self.console.print(
                            Panel(Markdown(event.display), title=f"[magenta]{event.tool}[/magenta]", border_style="magenta")
                        )
                    elif isinstance(event, ErrorEvent):
                        self.console.print(f"\n[red]❌ {event.message}[/red]")

        except httpx.HTTPError as e:
            self.console.print(f"[red]❌ Connection error: {e}[/red]")
            return ""

        self.console.print()
        return "".join(text_parts)

    def _show_help(self) -> None:
        help_text = """
[bold]Available Commands:[/bold]
• /help - Show this help message
• /clear - Clear the conversation and start over
• /quit or /exit - Exit the chat

[bold]Things to try:[/bold]
1. "Do you have a Glock 19?"
2. "Is it available January 20-27?"
3. "Where's my order RAG-5682? My email is customer@example.com"
4. "How does the FFL pickup work?"
        """

        self.console.print(Panel(help_text.strip(), title="[cyan]❓ Help[/cyan]", border_style="cyan"))


def main():
    """Main entry point for the chat CLI."""
    base_url = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:8000"

    chat = ChatCLI(base_url)
    chat.start()


if __name__ == "__main__":
    main()
