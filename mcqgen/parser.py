"""Turn free-text assistant replies into question records.

The reply format is a tolerant grammar: four labelled sections
(``Question:``, ``Options:``, ``Correct Answer:``, ``Explanation:``) separated
by blank lines, and option lines of the form ``(a) text``. Anything else is
content. Parsing never raises; malformed input yields empty fields that the
validator rejects later.
"""
from __future__ import annotations

import re
from typing import Dict, List, Optional, Sequence, Tuple

from .models import QuestionRecord
from .validators import OPTION_MARKER_PATTERN, is_options_header


PARAGRAPH_SPLIT = re.compile(r"\n[ \t]*\n")
BLOCK_DELIMITER = re.compile(r"^[ \t]*-{3,}[ \t]*$", re.MULTILINE)


def _label(name: str) -> re.Pattern:
    return re.compile(rf"^[\s*_#]*{name}\s*[*_]*\s*:[*_]*\s*", re.IGNORECASE)


QUESTION_LABEL = _label(r"question(?:\s*\d+)?")
OPTIONS_LABEL = _label(r"options")
ANSWER_LABEL = _label(r"correct\s+answer")
EXPLANATION_LABEL = _label(r"explanation")

ANSWER_LETTER = re.compile(r"^[\s(\[*_]*([A-Za-z])(?:[\s)\].:*_]|$)")


def split_blocks(text: str, count: int) -> List[str]:
    """Split a multi-question reply on ``---`` lines, keeping at most ``count`` blocks."""

    blocks = [block.strip() for block in BLOCK_DELIMITER.split(text or "")]
    return [block for block in blocks if block][:count]


def _paragraphs(text: str) -> List[str]:
    normalized = (text or "").replace("\r\n", "\n").replace("\r", "\n")
    return [part.strip() for part in PARAGRAPH_SPLIT.split(normalized) if part.strip()]


def _find(paragraphs: Sequence[str], label: re.Pattern) -> Optional[int]:
    for index, paragraph in enumerate(paragraphs):
        if label.match(paragraph):
            return index
    return None


def _section(
    paragraphs: Sequence[str], start: Optional[int], label: re.Pattern, stops: Sequence[Optional[int]]
) -> str:
    """Text from the paragraph at ``start`` up to the nearest later section start."""

    if start is None:
        return ""
    later = [stop for stop in stops if stop is not None and stop > start]
    end = min(later) if later else len(paragraphs)
    body = "\n\n".join(paragraphs[start:end])
    return label.sub("", body, count=1).strip()


def _lines(text: str) -> List[str]:
    return [line.strip() for line in text.splitlines() if line.strip()]


def _option_entries(lines: Sequence[str]) -> List[Tuple[str, str]]:
    entries = []
    for line in lines:
        match = OPTION_MARKER_PATTERN.match(line)
        if match:
            entries.append((match.group(1).upper(), match.group(2).strip()))
    return entries


def _resplit_question(lines: Sequence[str]) -> Tuple[List[str], List[Tuple[str, str]]]:
    """Move option lines that leaked into the question body after an ``Options:`` line."""

    question: List[str] = []
    relocated: List[Tuple[str, str]] = []
    in_options = False
    for line in lines:
        if is_options_header(line):
            in_options = True
            trailing = OPTIONS_LABEL.sub("", line, count=1).strip()
            if trailing:
                relocated.extend(_option_entries([trailing]))
            continue
        match = OPTION_MARKER_PATTERN.match(line)
        if in_options and match:
            relocated.append((match.group(1).upper(), match.group(2).strip()))
            continue
        question.append(line)
    return question, relocated


def _correct_answer(section: str) -> Tuple[Optional[str], str]:
    """Return the answer letter and any text following the answer line."""

    lines = section.splitlines()
    if not lines:
        return None, ""
    match = ANSWER_LETTER.match(lines[0])
    letter = match.group(1).upper() if match else None
    trailing = "\n".join(lines[1:]).strip()
    return letter, trailing


def parse_question_record(text: str) -> QuestionRecord:
    """Parse a single-question reply into a :class:`QuestionRecord`."""

    paragraphs = _paragraphs(text)
    question_at = _find(paragraphs, QUESTION_LABEL)
    options_at = _find(paragraphs, OPTIONS_LABEL)
    answer_at = _find(paragraphs, ANSWER_LABEL)
    explanation_at = _find(paragraphs, EXPLANATION_LABEL)

    question_body = _section(
        paragraphs, question_at, QUESTION_LABEL, (options_at, answer_at, explanation_at)
    )
    question_lines, relocated = _resplit_question(_lines(question_body))

    options_body = _section(paragraphs, options_at, OPTIONS_LABEL, (answer_at, explanation_at))
    options: Dict[str, str] = {}
    for label, option_text in relocated + _option_entries(_lines(options_body)):
        options[label] = option_text

    answer_body = _section(paragraphs, answer_at, ANSWER_LABEL, (explanation_at,))
    correct_answer, trailing = _correct_answer(answer_body)

    explanation = _section(paragraphs, explanation_at, EXPLANATION_LABEL, ())
    if explanation_at is None:
        explanation = EXPLANATION_LABEL.sub("", trailing, count=1).strip()
    if not explanation and correct_answer:
        explanation = f"The correct answer is ({correct_answer.lower()})."

    return QuestionRecord(
        question_lines=question_lines,
        options=options,
        correct_answer=correct_answer,
        explanation=explanation,
    )


__all__ = ["parse_question_record", "split_blocks"]
