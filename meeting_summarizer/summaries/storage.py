"""Filesystem helpers for exporting summaries as Markdown."""
from __future__ import annotations

from pathlib import Path
from typing import Mapping, Optional

import yaml

_FRONT_MATTER_DELIMITER = "---"


def render_summary(body: str, metadata: Optional[Mapping[str, object]] = None) -> str:
    """Return summary markdown, prefixed with YAML front matter when metadata is given."""
    if metadata is not None and not isinstance(metadata, Mapping):
        raise TypeError("metadata must be a mapping")
    serialized_metadata = dict(metadata or {})
    body = body if body.endswith("\n") else f"{body}\n"
    if not serialized_metadata:
        return body
    front_matter = yaml.safe_dump(serialized_metadata, sort_keys=True, allow_unicode=True).strip()
    sections = [
        f"{_FRONT_MATTER_DELIMITER}\n{front_matter}\n{_FRONT_MATTER_DELIMITER}",
        "",  # blank line between metadata and body
        body,
    ]
    return "\n".join(sections)


def write_summary(markdown_path: Path, body: str, metadata: Optional[Mapping[str, object]] = None) -> Path:
    """Persist summary markdown with YAML front matter and return the path."""
    markdown_path = Path(markdown_path).expanduser()
    markdown_path.parent.mkdir(parents=True, exist_ok=True)
    markdown_path.write_text(render_summary(body, metadata), encoding="utf-8")
    return markdown_path
