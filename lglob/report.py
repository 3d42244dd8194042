"""Text and JSON renderings of checker results."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Tuple

from .dialects import Dialect
from .extractor import Extraction
from .listing import FunctionBlock
from .resolver import FileResult
from .whitelist import IN_MODULE, is_table


def _value_label(value: Any) -> str:
    if value is IN_MODULE:
        return "in-module"
    if is_table(value):
        fields = ", ".join(sorted(value)) if value else ""
        return f"table {{{fields}}}"
    return str(value)


def format_xref(extraction: Extraction) -> str:
    """List every qualified name with the lines reading and writing it."""

    usage: Dict[str, Dict[str, List[int]]] = defaultdict(lambda: {"get": [], "set": []})
    for ref in extraction.references:
        lines = usage[ref.name][ref.access]
        if ref.line not in lines:
            lines.append(ref.line)
    rendered: List[str] = []
    for name in sorted(usage):
        entry = usage[name]
        parts = []
        if entry["get"]:
            parts.append("get " + ",".join(str(line) for line in sorted(entry["get"])))
        if entry["set"]:
            parts.append("set " + ",".join(str(line) for line in sorted(entry["set"])))
        rendered.append(f"{name}\t{'; '.join(parts)}")
    return "\n".join(rendered)


def format_dump(result: FileResult) -> str:
    """Describe everything the extractor and resolver learned about a file."""

    extraction = result.extraction
    lines: List[str] = [f"File: {result.filename}"]
    lines.append("References:")
    for ref in extraction.sorted_references():
        lines.append(f"  {ref.line}: {ref.access} {ref.name}")
    if extraction.requires:
        lines.append("Requires:")
        for record in extraction.requires:
            alias = f" as {record.alias_name}" if record.alias_name else ""
            lines.append(f"  {record.line}: {record.module}{alias}")
    known = [local for local in extraction.known]
    if known:
        lines.append("Known locals:")
        for local in known:
            lines.append(f"  {local.name} -> {local.reference_name}")
    remarks = {key: value for key, value in extraction.remarks.as_dict().items() if value is not None}
    if remarks:
        lines.append("Remarks:")
        for key in sorted(remarks):
            lines.append(f"  {key}: {remarks[key]}")
    if result.definitions:
        lines.append("Definitions:")
        for name in sorted(result.definitions):
            lines.append(f"  {name}: {_value_label(result.definitions[name])}")
    if result.exports:
        lines.append("Exports: " + ", ".join(result.exports))
    return "\n".join(lines)


def format_range(blocks: Iterable[FunctionBlock], dialect: Dialect, first: int, last: int) -> str:
    """Render the decoded instructions whose source line is within range."""

    rendered: List[str] = []
    for block in blocks:
        selected = [ins for ins in block.instructions if first <= ins.line <= last]
        if not selected:
            continue
        rendered.append(f"{block.kind} <{block.source}:{block.line_defined},{block.last_line}>")
        for instruction in selected:
            event = dialect.decode(instruction)
            detail = event.kind
            if event.name:
                detail += f" {event.name}"
            if event.upvalue:
                detail += f" (upvalue {event.upvalue})"
            rendered.append(f"  {instruction.describe()}\t=> {detail}")
    return "\n".join(rendered)


@dataclass
class RunReport:
    """Summarises a checker run over many files."""

    results: List[FileResult] = field(default_factory=list)
    skipped: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def failed(self) -> List[FileResult]:
        return [result for result in self.results if not result.passed]

    @property
    def passed(self) -> bool:
        return not self.failed

    def to_text(self) -> str:
        lines: List[str] = []
        lines.append(f"Checked {len(self.results)} file(s), {len(self.failed)} failed")
        diagnostics = sum(len(result.diagnostics) for result in self.results)
        lines.append(f"Diagnostics: {diagnostics}")
        if self.skipped:
            lines.append("Skipped:")
            lines.extend(f"  - {name}: {reason}" for name, reason in self.skipped)
        warnings = [warning for result in self.results for warning in result.warnings]
        if warnings:
            lines.append("Warnings:")
            lines.extend(f"  - {warning}" for warning in warnings)
        return "\n".join(lines)

    def to_json(self) -> Dict[str, object]:
        files: List[Dict[str, object]] = []
        for result in self.results:
            files.append(
                {
                    "filename": result.filename,
                    "passed": result.passed,
                    "diagnostics": [diagnostic.as_dict() for diagnostic in result.diagnostics],
                    "warnings": list(result.warnings),
                    "requires": [
                        {"line": record.line, "module": record.module, "alias": record.alias_name}
                        for record in result.extraction.requires
                    ],
                    "remarks": result.extraction.remarks.as_dict(),
                    "exports": list(result.exports),
                }
            )
        return {
            "passed": self.passed,
            "files": files,
            "skipped": [{"filename": name, "reason": reason} for name, reason in self.skipped],
        }
