"""Rich console output for similarity passes."""
from typing import List
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from entrysim.models import SimilarityEdge
from entrysim.runner import PassReport
from entrysim.utils import format_duration


class ConsoleFormatter:
    def format(self, report: PassReport) -> str:
        console = Console(record=True, width=120)
        mode = " [yellow](dry run)[/]" if report.dry_run else ""
        console.print(Panel(
            f"[bold cyan]🔗 Entrysim Similarity Pass[/]{mode} — threshold {report.threshold:.2f}, "
            f"{report.total_created} new edge(s)",
            expand=False,
        ))

        table = Table(show_header=True, header_style="bold")
        table.add_column("User")
        table.add_column("Entries", justify="right")
        table.add_column("Comparisons", justify="right")
        table.add_column("Candidates", justify="right")
        table.add_column("New", justify="right")
        table.add_column("Existing", justify="right")
        table.add_column("Time", justify="right")
        table.add_column("Status")
        for u in report.users:
            status = "[green]ok[/]" if u.ok else f"[red]{u.error}[/]"
            table.add_row(
                f"{u.username} (#{u.user_id})",
                str(u.entries),
                str(u.comparisons),
                str(u.candidates),
                str(u.created),
                str(u.skipped),
                format_duration(u.duration_ms),
                status,
            )
        console.print(table)
        return console.export_text()

    def format_edges(self, entry_id: int, edges: List[SimilarityEdge]) -> str:
        console = Console(record=True, width=120)
        if not edges:
            console.print(f"No similar entries stored for entry {entry_id}")
            return console.export_text()
        console.print(f"[bold]Entries similar to {entry_id}[/]")
        for e in sorted(edges, key=lambda e: e.similarity, reverse=True):
            other = e.similar_entry_id if e.entry_id == entry_id else e.entry_id
            console.print(f"   {other:>8}  [dim]{e.similarity:.3f}[/]")
        return console.export_text()
