"""
Event feed reader for JSON Lines files.

Each line holds one decoded chain event (see ``equiclear.core.events``).
Used to replay captured feeds and to ingest events offline.
"""

import json
from pathlib import Path
from typing import Iterator, Union

from equiclear.core.errors import InvalidEventError
from equiclear.core.events import parse_event
from equiclear.utils.logger import get_logger

logger = get_logger("feed")


def read_event_file(filepath: Union[str, Path]) -> Iterator:
    """
    Yield typed events from a JSONL file, in file order.

    Args:
        filepath: Path to the JSONL file

    Raises:
        FileNotFoundError: file does not exist
        InvalidEventError: a line is not valid JSON or not a valid event
    """
    filepath = Path(filepath)
    count = 0

    with open(filepath, "r", encoding="utf-8") as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue

            try:
                payload = json.loads(line)
            except json.JSONDecodeError as e:
                raise InvalidEventError(
                    f"{filepath}:{line_num}: invalid JSON ({e.msg})",
                    details={"line": line_num},
                ) from e

            try:
                event = parse_event(payload)
            except InvalidEventError as e:
                raise InvalidEventError(
                    f"{filepath}:{line_num}: {e.message}",
                    details={"line": line_num, **e.details},
                ) from e

            count += 1
            yield event

    logger.debug(f"Read {count} events from {filepath}")


def write_event_file(filepath: Union[str, Path], events) -> int:
    """Write events as JSON Lines. Returns the number written."""
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    count = 0
    with open(filepath, "w", encoding="utf-8") as f:
        for event in events:
            f.write(json.dumps(event.to_dict()) + "\n")
            count += 1
    return count
