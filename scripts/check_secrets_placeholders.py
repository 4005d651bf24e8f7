"""Fail pre-commit if secrets example placeholders are removed."""

from __future__ import annotations

import sys
from pathlib import Path

REQUIRED_MARKERS = {
    Path("config") / "secrets.yaml.example": [
        "your_bot_token_here",
        "alarm.local.replace-me",
    ],
    Path(".env.example"): [
        "your_bot_token_here",
        "alarm.local.replace-me",
    ],
}


def find_missing(root: Path) -> dict[Path, list[str]]:
    missing: dict[Path, list[str]] = {}
    for relative, markers in REQUIRED_MARKERS.items():
        example = root / relative
        content = example.read_text(encoding="utf-8") if example.exists() else ""
        absent = [marker for marker in markers if marker not in content]
        if absent:
            missing[relative] = absent
    return missing


def main(root: Path | None = None) -> int:
    root = root or Path(__file__).resolve().parents[1]
    missing = find_missing(root)
    for relative, markers in missing.items():
        marker_list = ", ".join(markers)
        print(
            f"[check-secrets-placeholders] Missing placeholder(s) in {relative.as_posix()}: "
            f"{marker_list}. Never commit real credentials to example files.",
            file=sys.stderr,
        )
    return 1 if missing else 0


if __name__ == "__main__":
    raise SystemExit(main())
