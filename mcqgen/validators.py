"""Validation of parsed question records prior to persistence."""
from __future__ import annotations

import re

from .models import OPTION_LABELS, QuestionRecord


OPTION_MARKER_PATTERN = re.compile(r"^\s*\(([A-Da-d])\)\s*(.+?)\s*$")
OPTIONS_HEADER_PATTERN = re.compile(r"^[\s*_#]*options\s*[*_]*\s*:", re.IGNORECASE)


class ValidationError(ValueError):
    """Raised when a parsed record fails validation."""


def is_option_line(line: str) -> bool:
    return bool(OPTION_MARKER_PATTERN.match(line))


def is_options_header(line: str) -> bool:
    return bool(OPTIONS_HEADER_PATTERN.match(line))


def _assert_options(record: QuestionRecord) -> None:
    labels = set(record.options)
    if len(record.options) != len(OPTION_LABELS) or labels != set(OPTION_LABELS):
        found = ", ".join(sorted(labels)) or "none"
        raise ValidationError(f"Expected options A, B, C and D; found {found}")
    texts = [text.strip() for text in record.options.values()]
    if not all(texts):
        raise ValidationError("Options must provide non-empty text")
    if len({text.lower() for text in texts}) != len(texts):
        raise ValidationError("Duplicate option text detected")


def _assert_question(record: QuestionRecord) -> None:
    lines = [line for line in record.question_lines if line.strip()]
    if not lines:
        raise ValidationError("Question body is empty")
    for line in lines:
        if is_option_line(line) or is_options_header(line):
            raise ValidationError(f"Question body contains option text: {line!r}")


def validate_record(record: QuestionRecord) -> None:
    """Validate a parsed record for structural completeness."""

    _assert_question(record)
    _assert_options(record)
    if record.correct_answer not in OPTION_LABELS:
        raise ValidationError(f"Correct answer {record.correct_answer!r} is not one of A-D")
    if not record.explanation.strip():
        raise ValidationError("Explanation is empty")


def is_valid(record: QuestionRecord) -> bool:
    try:
        validate_record(record)
    except ValidationError:
        return False
    return True


__all__ = [
    "ValidationError",
    "is_option_line",
    "is_options_header",
    "is_valid",
    "validate_record",
]
