"""JSON output."""
import json
from typing import List, Optional
from entrysim.models import SimilarityEdge
from entrysim.runner import PassReport


class JSONFormatter:
    def __init__(self, indent: Optional[int] = 2):
        self.indent = indent

    def format(self, report: PassReport) -> str:
        return json.dumps({
            "threshold": report.threshold,
            "dry_run": report.dry_run,
            "created": report.total_created,
            "error": str(report.error) if report.error else None,
            "users": [{
                "user_id": u.user_id,
                "username": u.username,
                "entries": u.entries,
                "comparisons": u.comparisons,
                "candidates": u.candidates,
                "created": u.created,
                "skipped": u.skipped,
                "duration_ms": round(u.duration_ms, 1),
                "error": str(u.error) if u.error else None,
            } for u in report.users],
        }, indent=self.indent, ensure_ascii=False)

    def format_edges(self, entry_id: int, edges: List[SimilarityEdge]) -> str:
        return json.dumps([{
            "entry_id": e.entry_id,
            "similar_entry_id": e.similar_entry_id,
            "similarity": round(e.similarity, 4),
        } for e in edges], indent=self.indent, ensure_ascii=False)
