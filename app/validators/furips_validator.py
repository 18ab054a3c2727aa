"""
app/validators/furips_validator.py

Structural (field-count) validation for FURIPS1, FURIPS2 and FURTRAN files.
"""

from __future__ import annotations

from collections.abc import Iterator

from app.domain.furips import (
    PREVIEW_MAX_CHARS,
    SCHEMAS_BY_KIND,
    FileValidationResult,
    LineValidationError,
)

FIELD_DELIMITER = ","


def iter_lines(content: str) -> Iterator[tuple[int, list[str]]]:
    """
    Yield ``(line_number, fields)`` for every non-blank line.

    Line numbers are 1-based over non-blank lines only; every stage of the
    pipeline goes through this function so reported numbers always agree.
    """

    line_number = 0
    for raw_line in content.strip().split("\n"):
        line = raw_line.rstrip("\r")
        if line.strip() == "":
            continue
        line_number += 1
        yield line_number, line.split(FIELD_DELIMITER)


def _preview(line: str) -> str:
    if len(line) > PREVIEW_MAX_CHARS:
        return line[:PREVIEW_MAX_CHARS] + "..."
    return line


class FuripsFileValidator:
    """
    Checks every line against the expected column count for its file kind.

    Never raises for malformed content and never stops at the first bad
    line: all errors come back in one ``FileValidationResult``.
    """

    def validate(self, content: str, expected_fields: int) -> FileValidationResult:
        errors: list[LineValidationError] = []
        total_lines = 0
        valid_lines = 0

        for line_number, fields in iter_lines(content):
            total_lines += 1
            actual = len(fields)
            if actual != expected_fields:
                errors.append(
                    LineValidationError(
                        line=line_number,
                        expected_fields=expected_fields,
                        actual_fields=actual,
                        preview=_preview(FIELD_DELIMITER.join(fields)),
                    )
                )
                continue
            valid_lines += 1

        return FileValidationResult(
            is_valid=not errors,
            errors=errors,
            total_lines=total_lines,
            valid_lines=valid_lines,
        )

    def validate_kind(self, content: str, kind: str) -> FileValidationResult:
        """
        Validate ``content`` against the compiled-in schema for ``kind``.
        """

        schema = SCHEMAS_BY_KIND.get(kind)
        if schema is None:
            raise ValueError(f"Unsupported file kind: {kind!r}")
        return self.validate(content, schema.expected_fields)
