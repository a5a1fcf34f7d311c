"""
Translation merge - reconciles translated text with baseline inline events.

A baseline line such as

    `anim|wave`Hello `sfx|bell` world.`flag|greeted`

carries events a translator may drop or move. Merging keeps the
translator's visible text and the events they kept (in their order),
then re-inserts every baseline event they lost:

    lost BEFORE events + translated text + lost MID events + lost AFTER events

Events are matched by their exact body string.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from parley.dialog.models import DialogueGraph, InlineEvent, Position

logger = logging.getLogger(__name__)

DEFAULT_MARKER = "`"


def split_segments(text: str, marker: str = DEFAULT_MARKER) -> list[tuple[bool, str]]:
    """
    Split text into (is_event, body) segments.

    Segments between markers alternate visible / event. With an odd
    number of markers the final segment has no closing marker; it is
    returned as visible text with its marker kept.
    """
    parts = text.split(marker)
    unmatched = len(parts) % 2 == 0

    segments = []
    for index, part in enumerate(parts):
        if unmatched and index == len(parts) - 1:
            segments.append((False, marker + part))
        else:
            segments.append((index % 2 == 1, part))
    return segments


@lru_cache(maxsize=4096)
def _classify(text: str, marker: str) -> tuple[tuple[str, Position], ...]:
    segments = split_segments(text, marker)
    has_visible = [not is_event and bool(body.strip()) for is_event, body in segments]

    classified = []
    for index, (is_event, body) in enumerate(segments):
        if not is_event:
            continue
        if not any(has_visible[:index]):
            position = Position.BEFORE
        elif not any(has_visible[index + 1:]):
            position = Position.AFTER
        else:
            position = Position.MID
        classified.append((body, position))
    return tuple(classified)


def classify_events(text: str, marker: str = DEFAULT_MARKER) -> list[InlineEvent]:
    """Inline events of a baseline text with their position class."""
    return [
        InlineEvent(body=body, position=position)
        for body, position in _classify(text or "", marker)
    ]


def merge(baseline_text: str, translated_raw_text: str, marker: str = DEFAULT_MARKER) -> str:
    """
    Merge a translated line into its baseline.

    Returns the baseline unchanged when the translation has neither
    visible text nor markers. An unmatched marker in the translation is
    dropped. Never raises.
    """
    baseline_text = baseline_text or ""
    translated_raw_text = translated_raw_text or ""
    segments = split_segments(translated_raw_text, marker)
    if translated_raw_text.count(marker) % 2 == 1:
        # A dangling marker would pair with the first reinserted event
        segments[-1] = (False, segments[-1][1][len(marker):])

    translated_events = [body for is_event, body in segments if is_event]
    visible = ''.join(body.strip() for is_event, body in segments if not is_event)
    if not visible and not translated_events:
        return baseline_text

    kept = set(translated_events)
    missing: dict[Position, list[str]] = {position: [] for position in Position}
    for body, position in _classify(baseline_text, marker):
        if body not in kept:
            missing[position].append(body)

    def wrap(body: str) -> str:
        return f"{marker}{body}{marker}"

    parts = [wrap(body) for body in missing[Position.BEFORE]]
    for is_event, body in segments:
        parts.append(wrap(body) if is_event else body.strip())
    parts.extend(wrap(body) for body in missing[Position.MID])
    parts.extend(wrap(body) for body in missing[Position.AFTER])
    return ''.join(parts)


def apply_translation(
    baseline: DialogueGraph,
    translated: DialogueGraph,
    marker: str = DEFAULT_MARKER,
) -> int:
    """
    Patch a baseline graph in place with one translated document.

    Lines are matched by id, choices by their index within the line.
    Lines or choices the translation leaves out keep their baseline text.

    Returns:
        Number of texts patched
    """
    patched = 0
    for line_id, translated_line in translated.lines.items():
        line = baseline.lines.get(line_id)
        if line is None:
            logger.warning(f"Translation line '{line_id}' not in baseline '{baseline.name}'")
            continue

        if translated_line.text is not None:
            line.text = merge(line.text or "", translated_line.text, marker)
            patched += 1

        for index, choice in enumerate(translated_line.choices):
            if index >= len(line.choices):
                logger.warning(f"Translation choice {index} of '{line_id}' not in baseline")
                break
            if choice.text:
                line.choices[index].text = merge(line.choices[index].text, choice.text, marker)
                patched += 1

    logger.debug(f"Patched {patched} texts in '{baseline.name}'")
    return patched
