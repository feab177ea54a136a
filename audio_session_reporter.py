import csv
import json
import time
from pathlib import Path

from logging_utils import log_event

SESSION_FIELDS = [
    "session_id",
    "started_at",
    "ended_at",
    "seconds",
    "preset",
    "left_hz",
    "right_hz",
    "carrier_hz",
    "beat_hz",
    "band",
    "waveform",
    "volume",
    "pink_noise",
    "automation",
    "measured_left_hz",
    "measured_right_hz",
    "left_rms",
    "right_rms",
]


class AudioSessionReporter:
    """Persists per-playback-session summaries to JSON and CSV reports."""

    def __init__(self, report_dir: Path, max_sessions: int = 200):
        self.report_dir = Path(report_dir)
        self.report_dir.mkdir(parents=True, exist_ok=True)
        self.json_path = self.report_dir / "playback_session_report.json"
        self.csv_path = self.report_dir / "playback_session_report.csv"
        self.max_sessions = max(1, int(max_sessions))

    def _load_existing_sessions(self) -> list[dict]:
        if not self.json_path.exists():
            return []
        try:
            with open(self.json_path, "r", encoding="utf-8") as f:
                payload = json.load(f)
            sessions = payload.get("sessions", [])
            return sessions if isinstance(sessions, list) else []
        except (OSError, ValueError, AttributeError):
            return []

    def save_session(self, session_summary: dict) -> bool:
        sessions = self._load_existing_sessions()
        sessions.append(dict(session_summary))
        if len(sessions) > self.max_sessions:
            sessions = sessions[-self.max_sessions:]

        payload = {
            "generated_at": time.time(),
            "session_count": len(sessions),
            "latest": sessions[-1],
            "sessions": sessions,
        }

        try:
            with open(self.json_path, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)

            with open(self.csv_path, "w", newline="", encoding="utf-8") as f:
                writer = csv.DictWriter(f, fieldnames=SESSION_FIELDS)
                writer.writeheader()
                for row in sessions:
                    writer.writerow({key: row.get(key, "") for key in SESSION_FIELDS})
        except (OSError, TypeError, ValueError) as e:
            log_event("ERROR", "Report", "Failed to write session report", error=e)
            return False
        return True
