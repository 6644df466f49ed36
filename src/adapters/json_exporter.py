"""JSON export/import of the OIDC setup summary.

Why JSON:
- `secrets set --from-summary` reads back what `oidc setup` produced.
- The file is a hand-off artifact for operators; no schema versioning.
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import ValidationError

from core.domain.models import SetupSummary
from core.errors import ConfigurationError


def export_summary_json(*, summary: SetupSummary, output_path: Path) -> Path:
    """Write `SetupSummary` as UTF-8 JSON with camelCase keys, overwriting."""

    output_path.parent.mkdir(parents=True, exist_ok=True)
    payload = summary.model_dump(mode="json", by_alias=True)
    output_path.write_text(
        json.dumps(payload, ensure_ascii=False, indent=4) + "\n",
        encoding="utf-8",
    )
    return output_path


def load_summary_json(path: Path) -> SetupSummary:
    if not path.is_file():
        raise ConfigurationError(f"Summary file not found: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return SetupSummary.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as exc:
        raise ConfigurationError(f"Invalid summary file {path}: {exc}") from exc
