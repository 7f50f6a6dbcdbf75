"""Prompt text sent to the assistant."""
from __future__ import annotations

from typing import Optional

from .catalog import BookInfo
from .structures import StructureTemplate


RELATED_CONTENT_THRESHOLD = 20

CATEGORY_NOTES = {
    "Science": "Use only the Science section (Physics, Chemistry, Biology, Science & Technology).",
    "CSAT": "Use only the CSAT section.",
    "PreviousYearPaper": "Cover all relevant sections of the previous year papers.",
}

RESPONSE_FORMAT = """\
Use this EXACT structure with PLAIN TEXT headers for every MCQ:
Question: [Full question text including statements, A/R, etc.]

Options:
(a) [Option A]
(b) [Option B]
(c) [Option C]
(d) [Option D]

Correct Answer: [Correct option letter, e.g. (a)]

Explanation: [2-3 sentences based on the book and chapter]

- Separate each section with EXACTLY one blank line.
- Never put options inside the Question section.
- Start directly with "Question:" and add no introductory text.
- When more than one MCQ is requested, separate MCQs with a line containing only ---"""


def _scope(book: BookInfo, chapter: Optional[str]) -> str:
    if chapter:
        return f'the chapter "{chapter}" of {book.book_name}'
    return f"the entire {book.book_name}"


def build_generation_prompt(
    book: BookInfo,
    category: str,
    chapter: Optional[str],
    theme: str,
    structure: StructureTemplate,
    count: int,
    question_number: int,
    query: str = "",
) -> str:
    """Compose the generation turn for one or more MCQs."""

    if question_number > RELATED_CONTENT_THRESHOLD:
        source_rule = (
            f"This is question {question_number} of the session. If {_scope(book, chapter)} "
            "has no new material left, you MAY use general knowledge that is clearly related "
            "to its subject matter."
        )
    else:
        source_rule = (
            f"This is question {question_number} of the session. Use ONLY the content of "
            f"{_scope(book, chapter)}; do not use other chapters or outside sources."
        )

    lines = [
        "You are an exam-preparation assistant for the TrainWithMe platform.",
        "",
        f"Reference book: {book.book_name} (File ID: {book.file_id})",
        f"Category: {category}",
        f"Description: {book.description}",
    ]
    note = CATEGORY_NOTES.get(category)
    if note:
        lines.append(note)
    lines.extend(
        [
            "",
            f"Generate {count} difficult MCQ(s) from {_scope(book, chapter)}.",
            f'Focus on the theme: "{theme}".',
            source_rule,
            "Do not repeat questions asked earlier in this conversation.",
            "",
            f"Structure: {structure.name}. {structure.instructions}",
            "Example:",
            structure.example,
            "",
            RESPONSE_FORMAT,
        ]
    )
    if query.strip():
        lines.extend(["", f'User request: "{query.strip()}"'])
    return "\n".join(lines)


def build_theme_prompt(book: BookInfo, category: str, chapter: Optional[str]) -> str:
    """Ask for the distinct themes of a chapter, one per line."""

    return "\n".join(
        [
            f"Analyze {_scope(book, chapter)} (category {category}, File ID: {book.file_id}).",
            "List the distinct topical themes an examiner could ask about.",
            "Return between 5 and 15 themes, one per line, with no numbering and no other text.",
        ]
    )


__all__ = ["RELATED_CONTENT_THRESHOLD", "build_generation_prompt", "build_theme_prompt"]
