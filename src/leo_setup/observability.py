"""Structured logging and run-output helpers."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, TextIO

Level = Literal["debug", "info", "warning", "error"]


@dataclass(slots=True)
class StructuredLogger:
    records: list[dict[str, Any]] = field(default_factory=list)
    echo: TextIO | None = None
    annotations: bool = False

    def log(
        self,
        *,
        operation: str,
        stage: str,
        message: str,
        level: Level = "info",
        extra: dict[str, Any] | None = None,
    ) -> None:
        record: dict[str, Any] = {
            "level": level,
            "operation": operation,
            "stage": stage,
            "message": message,
        }
        if extra is not None:
            record["extra"] = extra
        self.records.append(record)
        if self.echo is not None:
            self.echo.write(self._render(record) + "\n")
            self.echo.flush()

    def records_for_stage(self, stage: str) -> list[dict[str, Any]]:
        return [record for record in self.records if record.get("stage") == stage]

    def to_json_lines(self, path: str | Path) -> Path:
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        lines = [json.dumps(record, sort_keys=True) for record in self.records]
        output_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return output_path

    def _render(self, record: dict[str, Any]) -> str:
        text = f"[{record['operation']}:{record['stage']}] {record['message']}"
        if self.annotations and record["level"] in ("warning", "error"):
            return f"::{record['level']}::{text}"
        return text


def write_outputs(path: str | Path, outputs: Mapping[str, str]) -> Path:
    """Append ``name=value`` lines to a runner output file."""
    output_path = Path(path)
    with output_path.open("a", encoding="utf-8") as handle:
        for name, value in outputs.items():
            handle.write(f"{name}={value}\n")
    return output_path


def append_path(path: str | Path, directory: str | Path) -> Path:
    """Append *directory* to a runner PATH file."""
    output_path = Path(path)
    with output_path.open("a", encoding="utf-8") as handle:
        handle.write(f"{directory}\n")
    return output_path


def append_summary(path: str | Path, markdown: str) -> Path:
    output_path = Path(path)
    with output_path.open("a", encoding="utf-8") as handle:
        handle.write(markdown if markdown.endswith("\n") else markdown + "\n")
    return output_path
