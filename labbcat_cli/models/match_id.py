"""
Interpreter for the compound match identifier strings returned in search results.

A match ID is a semicolon-delimited list of segments, for example::

    g_243;em_12_20035;n_72700-n_72709;p_76;#=ew_0_123;prefix=024-

- the first segment is always the graph (transcript) ID
- ``<start>-<end>`` is the matched interval, either as anchor IDs
  (``n_72700-n_72709``) or as offsets in seconds (``39.400-46.279``)
- ``em_...`` / ``m_...`` identifies the utterance
- ``p_...`` identifies the participant
- ``#=...`` identifies the target annotation
- ``prefix=...`` is the prefix used when naming fragments

Other ``key=value`` segments (e.g. ``[0,0]=ew_0_123`` or ``name=...``) may
follow and are ignored.
"""

from dataclasses import dataclass
from typing import Optional

ANCHOR_PREFIX = "n_"
PREFIX_KEY = "prefix="
TARGET_KEY = "#="
PARTICIPANT_PREFIX = "p_"
UTTERANCE_PREFIXES = ("em_", "m_")


def _is_keyed(segment: str) -> bool:
    return (
        "=" in segment
        or segment.startswith(PARTICIPANT_PREFIX)
        or segment.startswith(UTTERANCE_PREFIXES)
    )


def _parse_float(text: str) -> Optional[float]:
    try:
        return float(text)
    except ValueError:
        return None


@dataclass(frozen=True)
class MatchId:
    """A parsed match identifier. Build instances with :meth:`parse`."""

    graph_id: Optional[str] = None
    start_anchor_id: Optional[str] = None
    end_anchor_id: Optional[str] = None
    start_offset: Optional[float] = None
    end_offset: Optional[float] = None
    utterance_id: Optional[str] = None
    participant_id: Optional[str] = None
    target_id: Optional[str] = None
    prefix: Optional[str] = None

    @property
    def transcript_id(self) -> Optional[str]:
        """The transcript identifier (same as :attr:`graph_id`)."""
        return self.graph_id

    @property
    def has_offsets(self) -> bool:
        return self.start_offset is not None and self.end_offset is not None

    @classmethod
    def parse(cls, text: Optional[str]) -> "MatchId":
        """
        Parses a match ID string. Never raises; segments that cannot be
        interpreted leave the corresponding fields as None.
        """
        if not text:
            return cls()

        segments = text.split(";")
        fields: dict[str, Optional[str | float]] = {"graph_id": segments[0]}
        rest = segments[1:]

        interval = next(
            (s for s in rest if not _is_keyed(s) and s.find("-") > 0), None
        )
        if interval is not None:
            start, _, end = interval.partition("-")
            if start.startswith(ANCHOR_PREFIX):
                fields["start_anchor_id"] = start
                fields["end_anchor_id"] = end
            else:
                start_offset = _parse_float(start)
                end_offset = _parse_float(end)
                if start_offset is not None and end_offset is not None:
                    fields["start_offset"] = start_offset
                    fields["end_offset"] = end_offset

        for segment in rest:
            if segment.startswith(PREFIX_KEY):
                fields["prefix"] = segment[len(PREFIX_KEY) :]
            elif segment.startswith(TARGET_KEY):
                fields["target_id"] = segment[len(TARGET_KEY) :]
            elif segment.startswith(UTTERANCE_PREFIXES):
                fields["utterance_id"] = segment
            elif segment.startswith(PARTICIPANT_PREFIX):
                fields["participant_id"] = segment

        return cls(**fields)

    def __str__(self) -> str:
        parts = [self.graph_id or ""]
        if self.utterance_id:
            parts.append(self.utterance_id)
        if self.start_anchor_id is not None:
            parts.append(f"{self.start_anchor_id}-{self.end_anchor_id}")
        elif self.has_offsets:
            parts.append(f"{self.start_offset}-{self.end_offset}")
        if self.participant_id:
            parts.append(self.participant_id)
        if self.target_id:
            parts.append(f"{TARGET_KEY}{self.target_id}")
        if self.prefix is not None:
            parts.append(f"{PREFIX_KEY}{self.prefix}")
        return ";".join(parts)
