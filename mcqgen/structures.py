"""Question-format templates and their per-session rotation."""
from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Dict, Optional, Sequence


@dataclass(frozen=True)
class StructureTemplate:
    key: str
    name: str
    instructions: str
    example: str
    marker: Optional[str] = None


STRUCTURES = (
    StructureTemplate(
        key="statement_count",
        name="Statement-Based",
        instructions=(
            'Give 3 numbered statements followed by "How many of the above statements are '
            'correct?". Provide exactly 4 options: (a) Only one, (b) Only two, (c) All three, '
            "(d) None."
        ),
        example=(
            "Question: Consider the following statements regarding Fundamental Rights:\n"
            "1. They are absolute and cannot be suspended.\n"
            "2. They are available only to citizens.\n"
            "3. The Right to Property is a Fundamental Right.\n"
            "How many of the above statements are correct?\n\n"
            "Options:\n(a) Only one\n(b) Only two\n(c) All three\n(d) None\n\n"
            "Correct Answer: (d)\n\n"
            "Explanation: Fundamental Rights can be suspended during a National Emergency, "
            "several are available to foreigners, and the Right to Property was removed by the "
            "44th Amendment."
        ),
        marker="How many of the above statements are correct?",
    ),
    StructureTemplate(
        key="assertion_reason",
        name="Assertion-Reason",
        instructions=(
            'Give two statements labelled "Assertion (A)" and "Reason (R)". Provide exactly 4 '
            "options: (a) Both A and R are true, and R is the correct explanation of A, "
            "(b) Both A and R are true, but R is NOT the correct explanation of A, "
            "(c) A is true, but R is false, (d) A is false, but R is true."
        ),
        example=(
            "Question:\n"
            "Assertion (A): The Indian National Congress adopted the policy of non-cooperation "
            "in 1920.\n"
            "Reason (R): The Rowlatt Act and Jallianwala Bagh massacre created widespread "
            "discontent.\n\n"
            "Options:\n"
            "(a) Both A and R are true, and R is the correct explanation of A\n"
            "(b) Both A and R are true, but R is NOT the correct explanation of A\n"
            "(c) A is true, but R is false\n"
            "(d) A is false, but R is true\n\n"
            "Correct Answer: (a)\n\n"
            "Explanation: The discontent after 1919 led Congress to launch the Non-Cooperation "
            "Movement in 1920, so R explains A."
        ),
        marker="Assertion (A)",
    ),
    StructureTemplate(
        key="statement_combination",
        name="Multiple Statements with Specific Combinations",
        instructions=(
            "Give 3 numbered statements followed by options naming combinations. Provide exactly "
            "4 options: (a) 1 and 2 only, (b) 2 and 3 only, (c) 1 and 3 only, (d) 1, 2, and 3."
        ),
        example=(
            "Question: With reference to agricultural soils, consider the following statements:\n"
            "1. A high content of organic matter drastically reduces water-holding capacity.\n"
            "2. Soil does not play any role in the nitrogen cycle.\n"
            "3. Irrigation over a long period of time can contribute to soil salinity.\n"
            "Which of the statements given above is/are correct?\n\n"
            "Options:\n(a) 1 and 2 only\n(b) 2 and 3 only\n(c) 1 and 3 only\n(d) 1, 2, and 3\n\n"
            "Correct Answer: (b)\n\n"
            "Explanation: Organic matter increases water retention, soil drives nitrogen fixation "
            "and long-term irrigation can salinise soil."
        ),
        marker="Which of the statements given above is/are correct?",
    ),
    StructureTemplate(
        key="chronological",
        name="Chronological Order",
        instructions=(
            'List 4 events to arrange in order. The question MUST start with "Arrange the '
            'following events in chronological order:". Provide exactly 4 options: '
            "(a) 1, 2, 3, 4, (b) 2, 1, 3, 4, (c) 1, 3, 2, 4, (d) 3, 2, 1, 4."
        ),
        example=(
            "Question: Arrange the following events in chronological order:\n"
            "1. Battle of Plassey\n2. Third Battle of Panipat\n3. Regulating Act of 1773\n"
            "4. Treaty of Bassein\nSelect the correct order:\n\n"
            "Options:\n(a) 1, 2, 3, 4\n(b) 2, 1, 3, 4\n(c) 1, 3, 2, 4\n(d) 3, 2, 1, 4\n\n"
            "Correct Answer: (a)\n\n"
            "Explanation: Plassey was fought in 1757, Panipat in 1761, the Regulating Act passed "
            "in 1773 and the Treaty of Bassein was signed in 1802."
        ),
        marker="Arrange the following events in chronological order:",
    ),
    StructureTemplate(
        key="direct",
        name="Direct Question with Single Correct Answer",
        instructions="Ask a single direct question with four options, exactly one of them correct.",
        example=(
            "Question: Which one of the following is a tributary of the Brahmaputra?\n\n"
            "Options:\n(a) Gandak\n(b) Kosi\n(c) Subansiri\n(d) Yamuna\n\n"
            "Correct Answer: (c)\n\n"
            "Explanation: The Subansiri joins the Brahmaputra in Assam; the others are "
            "tributaries of the Ganga."
        ),
    ),
)

DEFAULT_STRUCTURE = STRUCTURES[-1]


class StructureSelector:
    """Random structure choice that never repeats the previous pick for a session."""

    def __init__(
        self,
        catalog: Sequence[StructureTemplate] = STRUCTURES,
        rng: Optional[random.Random] = None,
    ) -> None:
        if not catalog:
            raise ValueError("Structure catalog must not be empty")
        self._catalog = tuple(catalog)
        self._rng = rng or random.Random()
        self._last: Dict[str, str] = {}

    def select(self, session_key: str) -> StructureTemplate:
        previous = self._last.get(session_key)
        candidates = [s for s in self._catalog if s.key != previous] or list(self._catalog)
        choice = self._rng.choice(candidates)
        self._last[session_key] = choice.key
        return choice


def detect_structure(text: str) -> StructureTemplate:
    """Guess which structure a reply used from its wording."""

    for structure in STRUCTURES:
        if structure.marker and structure.marker in text:
            return structure
    return DEFAULT_STRUCTURE


__all__ = ["STRUCTURES", "StructureSelector", "StructureTemplate", "detect_structure"]
