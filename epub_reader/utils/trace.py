from __future__ import annotations

import json
import os
import time
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .logging import configure_logging


LOGGER = configure_logging().getChild("summaries.trace")


@dataclass(slots=True)
class TraceEvent:
    t: float
    type: str
    data: Dict[str, Any]


class SummaryTracer:
    """Collect structured events for a summarization run (chapters, retries, aggregate)."""

    def __init__(self, run_id: Optional[str] = None, out_dir: str = "logs/summaries") -> None:
        self.run_id = run_id or str(uuid.uuid4())
        self.out_dir = str(out_dir)
        self.events: List[TraceEvent] = []
        self._path = os.path.join(self.out_dir, f"{self.run_id}.jsonl")
        self._summary_path = os.path.join(self.out_dir, f"{self.run_id}.summary.json")

    # --- Emission API ---------------------------------------------------------
    def ev(self, event_type: str, **data: Any) -> None:
        """Record a generic event."""
        self.events.append(TraceEvent(t=time.time(), type=event_type, data=data))
    # -------------------------------------------------------------------------

    def flush_jsonl(self) -> str:
        os.makedirs(self.out_dir, exist_ok=True)
        with open(self._path, "w", encoding="utf-8") as handle:
            for event in self.events:
                payload = {"t": event.t, "type": event.type, **event.data}
                handle.write(json.dumps(payload, ensure_ascii=False) + "\n")
        summary_payload = self.build_summary()
        with open(self._summary_path, "w", encoding="utf-8") as handle:
            json.dump(summary_payload, handle, ensure_ascii=False, indent=2)
        LOGGER.info("[summaries] Trace saved: %s", self._path)
        return self._path

    @property
    def path(self) -> str:
        return self._path

    @property
    def summary_path(self) -> str:
        return self._summary_path

    def as_list(self) -> List[Dict[str, Any]]:
        return [{"t": event.t, "type": event.type, **event.data} for event in self.events]

    def build_summary(self) -> Dict[str, Any]:
        events = self.as_list()
        metadata: Dict[str, Any] = {}
        chapters: List[Dict[str, Any]] = []
        retries: List[Dict[str, Any]] = []
        skipped: List[str] = []
        failed: List[Dict[str, Any]] = []
        elapsed: float | None = None
        outcome: str | None = None

        for event in events:
            event_type = event.get("type")

            if event_type == "start_run":
                metadata = {
                    key: value
                    for key, value in event.items()
                    if key not in {"t", "type"}
                }

            elif event_type == "chapter_summarized":
                chapters.append(
                    {
                        "index": event.get("index"),
                        "title": event.get("title"),
                        "chars": event.get("chars"),
                    }
                )

            elif event_type == "chapter_skipped":
                skipped.append(str(event.get("title", "")))

            elif event_type == "chapter_failed":
                failed.append({"title": event.get("title"), "error": event.get("error")})

            elif event_type == "retry_scheduled":
                retries.append(
                    {
                        "context": event.get("context"),
                        "attempt": event.get("attempt"),
                        "delay_s": event.get("delay_s"),
                        "reason": event.get("reason"),
                    }
                )

            elif event_type == "end_run":
                elapsed = event.get("elapsed_s")
                outcome = event.get("outcome")

        return {
            "trace_schema": "v1-summaries",
            "run_id": self.run_id,
            "metadata": metadata,
            "chapters": chapters,
            "skipped": skipped,
            "failed": failed,
            "retries": retries,
            "outcome": outcome,
            "elapsed_s": elapsed,
        }


__all__ = ["SummaryTracer", "TraceEvent"]
