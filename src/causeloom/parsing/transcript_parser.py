from __future__ import annotations

import json
import re
from datetime import datetime
from typing import List, Optional

from causeloom.errors import InputContractError
from causeloom.models.transcript import TranscriptLine

_TIMESTAMP_RE = re.compile(r"^\[(\d{1,2}):(\d{2}):(\d{2})\]\s*")
_SPEAKER_RE = re.compile(r"^(?P<speaker>[^:]{1,80}?)\s*:\s*(?P<text>.*)$")


class TranscriptParser:
    """Turn raw session logs into ``TranscriptLine`` sequences."""

    @staticmethod
    def parse_log(text: str, session_date: Optional[datetime] = None) -> List[TranscriptLine]:
        """Parse ``Speaker: text`` lines, one utterance per line.

        An optional ``[HH:MM:SS]`` prefix becomes the line timestamp (on
        *session_date*, or today's date when omitted).  Blank lines are
        skipped and indices are assigned consecutively from 0.  A line with
        no speaker separator continues the previous utterance.
        """
        base = session_date or datetime.now()
        lines: List[TranscriptLine] = []
        for number, raw in enumerate(text.splitlines(), start=1):
            stripped = raw.strip()
            if not stripped:
                continue

            timestamp = None
            stamp = _TIMESTAMP_RE.match(stripped)
            if stamp:
                hours, minutes, seconds = (int(g) for g in stamp.groups())
                if hours > 23 or minutes > 59 or seconds > 59:
                    raise InputContractError(f"Invalid timestamp on log line {number}: {raw!r}")
                timestamp = base.replace(
                    hour=hours, minute=minutes, second=seconds, microsecond=0,
                )
                stripped = stripped[stamp.end():]

            match = _SPEAKER_RE.match(stripped)
            if match is None or not match.group("speaker").strip():
                if not lines:
                    raise InputContractError(
                        f"Log line {number} has no speaker and nothing to continue: {raw!r}"
                    )
                prev = lines[-1]
                lines[-1] = prev.model_copy(update={"text": f"{prev.text} {stripped}".strip()})
                continue

            lines.append(TranscriptLine(
                index=len(lines),
                speaker=match.group("speaker").strip(),
                text=match.group("text").strip(),
                timestamp=timestamp,
            ))
        return lines

    @staticmethod
    def parse_jsonl(text: str) -> List[TranscriptLine]:
        """Validate one JSON object per non-blank line into ``TranscriptLine``.

        Objects without an ``index`` take their position in the file.
        """
        lines: List[TranscriptLine] = []
        for number, raw in enumerate(text.splitlines(), start=1):
            if not raw.strip():
                continue
            try:
                data = json.loads(raw)
            except json.JSONDecodeError as exc:
                raise InputContractError(f"Invalid JSON on line {number}: {exc.msg}") from exc
            if not isinstance(data, dict):
                raise InputContractError(f"Line {number} is not a JSON object")
            data.setdefault("index", len(lines))
            lines.append(TranscriptLine.model_validate(data))
        return lines
