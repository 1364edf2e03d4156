from typing import List, Optional

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from seed_hunter.search import SearchResult
from seed_hunter.state_queue import SingleSlotQueue
from seed_hunter.state_snapshot import SearchSnapshot

COLORS = {
    "seed": "bold yellow",
    "plaintext": "green",
    "ciphertext": "cyan",
    "match": "bold spring_green2",
}


def words_table(words: List[int], style: str, highlight_first: bool = False) -> Table:
    """Four words per row, offset in the first column."""
    table = Table(show_header=False, show_edge=False, padding=(0, 1), box=None)
    table.add_column("Offset", style="dim", justify="right", no_wrap=True)
    for _ in range(4):
        table.add_column(style=style, no_wrap=True)

    for row in range(0, len(words), 4):
        cells = []
        for i, word in enumerate(words[row:row + 4], start=row):
            text = f"{word:08X}"
            if highlight_first and i == 0:
                text = f"[{COLORS['match']}]{text}[/{COLORS['match']}]"
            cells.append(text)
        table.add_row(f"{row * 4:03x}", *cells)
    return table


def render(state: Optional[SearchSnapshot]):
    """Render the search progress snapshot."""
    if state is None:
        return Panel("Waiting for first candidate…", title="Seed Search", border_style="dim")

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Field", style="dim", justify="right")
    table.add_column("Value")
    table.add_row("Start seed", f"{state.start_seed:08X}")
    table.add_row("Current seed", f"[{COLORS['seed']}]{state.current_seed:08X}[/{COLORS['seed']}]")
    table.add_row("Fingerprint", f"{state.fingerprint:08X}")
    table.add_row("Candidates", f"{state.iterations:,}")
    table.add_row("Rate", f"{state.rate:,.0f}/s")
    table.add_row("Elapsed", f"{state.elapsed:,.1f}s")

    border = "green" if state.complete else "blue"
    return Panel(table, title=f"Seed Search  |  {state.state}  |  v{state.version}", border_style=border)


def render_result(result: SearchResult) -> Panel:
    """Render the FOUND report."""
    body = Group(
        Text.from_markup(f"Seed: [{COLORS['seed']}]{result.seed:08X}[/{COLORS['seed']}]"),
        Text(f"Candidates tried: {result.iterations:,}", style="dim"),
        Text(""),
        Text("Key Data", style="bold"),
        words_table(result.plaintext_words, COLORS["plaintext"]),
        Text(""),
        Text("Seed Data", style="bold"),
        words_table(result.ciphertext_words, COLORS["ciphertext"], highlight_first=True),
    )
    return Panel(body, title="**** FOUND ****", border_style="green")


def ui_loop(state_queue: SingleSlotQueue[SearchSnapshot], console: Optional[Console] = None) -> None:
    """Loop the UI until the search closes the queue."""
    with Live(render(None), console=console, refresh_per_second=10, screen=False) as live:
        while True:
            state = state_queue.get()
            if state is None:
                break
            live.update(render(state))
