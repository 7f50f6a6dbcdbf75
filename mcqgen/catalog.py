"""Static book, category and chapter metadata."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple


UNAVAILABLE_FILE_MARKERS = ("pending", "[TBD")


@dataclass(frozen=True)
class BookInfo:
    """Reference book backing a category."""

    book_name: str
    file_id: str
    description: str
    chapters: Tuple[str, ...] = ()
    aliases: Dict[str, str] = field(default_factory=dict)

    @property
    def is_available(self) -> bool:
        return bool(self.file_id) and not self.file_id.startswith(UNAVAILABLE_FILE_MARKERS)


FILE_IDS = {
    "TamilnaduHistory": "file-UyQKVs91xYHfadeHSjdDw2",
    "Spectrum": "file-UwRi9bH3uhVh4YBXNbMv1w",
    "ArtAndCulture": "file-Gn3dsACNC2MP2xS9QeN3Je",
    "FundamentalGeography": "file-CMWSg6udmgtVZpNS3tDGHW",
    "IndianGeography": "file-U1nQNyCotU2kcSgF6hrarT",
    "Atlas": "pending",
    "Science": "file-TGgc65bHqVMxpmj5ULyR6K",
    "Environment": "file-Yb1cfrHMATDNQgyUa6jDqw",
    "Economy": "file-TJ5Djap1uv4fZeyM5c6sKU",
    "CSAT": "file-TGgc65bHqVMxpmj5ULyR6K",
    "CurrentAffairs": "file-5BX6sBLZ2ws44NBUTbcyWg",
    "PreviousYearPaper": "file-TGgc65bHqVMxpmj5ULyR6K",
    "Polity": "file-G15UzpuvCRuMG4g6ShCgFK",
}

POLITY_CHAPTERS = (
    "Historical Background",
    "Making of the Constitution",
    "Salient Features of the Constitution",
    "Preamble of the Constitution",
    "Union and its Territory",
    "Citizenship",
    "Fundamental Rights",
    "Directive Principles of State Policy",
    "Fundamental Duties",
    "Amendment of the Constitution",
    "Basic Structure of the Constitution",
    "Parliamentary System",
    "Federal System",
    "Centre-State Relations",
    "Emergency Provisions",
    "President",
    "Vice-President",
    "Prime Minister",
    "Central Council of Ministers",
    "Parliament",
    "Supreme Court",
    "Governor",
    "Chief Minister",
    "High Court",
    "Panchayati Raj",
    "Municipalities",
    "Election Commission",
    "Comptroller and Auditor General of India",
    "Attorney General of India",
    "Anti-Defection Law",
)

CATALOG: Dict[str, BookInfo] = {
    "TamilnaduHistory": BookInfo(
        "Tamilnadu History Book",
        FILE_IDS["TamilnaduHistory"],
        "Published by Tamilnadu Government, covering Indian history",
    ),
    "Spectrum": BookInfo(
        "Spectrum Book",
        FILE_IDS["Spectrum"],
        "Spectrum book for Modern Indian History",
    ),
    "ArtAndCulture": BookInfo(
        "Nitin Singhania Art and Culture Book",
        FILE_IDS["ArtAndCulture"],
        "Nitin Singhania book for Indian Art and Culture",
    ),
    "FundamentalGeography": BookInfo(
        "NCERT Class 11th Fundamentals of Physical Geography",
        FILE_IDS["FundamentalGeography"],
        "NCERT Class 11th book on Fundamental Geography",
    ),
    "IndianGeography": BookInfo(
        "NCERT Class 11th Indian Geography",
        FILE_IDS["IndianGeography"],
        "NCERT Class 11th book on Indian Geography",
    ),
    "Atlas": BookInfo(
        "Atlas",
        FILE_IDS["Atlas"],
        "General knowledge or internet-based (file pending)",
    ),
    "Science": BookInfo(
        "Disha IAS Previous Year Papers (Science Section)",
        FILE_IDS["Science"],
        "Disha IAS book, Science section (Physics, Chemistry, Biology, Science & Technology)",
    ),
    "Environment": BookInfo(
        "Shankar IAS Environment Book",
        FILE_IDS["Environment"],
        "Shankar IAS book for Environment",
    ),
    "Economy": BookInfo(
        "Ramesh Singh Indian Economy Book",
        FILE_IDS["Economy"],
        "Ramesh Singh book for Indian Economy",
    ),
    "CSAT": BookInfo(
        "Disha IAS Previous Year Papers (CSAT Section)",
        FILE_IDS["CSAT"],
        "Disha IAS book, CSAT section",
    ),
    "CurrentAffairs": BookInfo(
        "Vision IAS Current Affairs Magazine",
        FILE_IDS["CurrentAffairs"],
        "Vision IAS Current Affairs resource",
    ),
    "PreviousYearPaper": BookInfo(
        "Disha IAS Previous Year Papers",
        FILE_IDS["PreviousYearPaper"],
        "Disha IAS book for Previous Year Papers",
    ),
    "Polity": BookInfo(
        "Laxmikanth Book",
        FILE_IDS["Polity"],
        "Laxmikanth book for Indian Polity",
        chapters=POLITY_CHAPTERS,
        aliases={
            "fr": "Fundamental Rights",
            "dpsp": "Directive Principles of State Policy",
            "sc": "Supreme Court",
            "cag": "Comptroller and Auditor General of India",
            "centre state relations": "Centre-State Relations",
            "vice president": "Vice-President",
            "council of ministers": "Central Council of Ministers",
        },
    ),
}

CHAPTER_IN_QUERY = re.compile(r"\bfrom\s+(?:the\s+)?(.+?)\s+of\s+the\s+", re.IGNORECASE)
ENTIRE_BOOK = "entire-book"
ENTIRE_BOOK_ALIASES = {"entire book", "entire-book", "whole book", "all chapters"}


def get_book(category: str) -> Optional[BookInfo]:
    return CATALOG.get(category)


def available_file_ids() -> Tuple[str, ...]:
    """Distinct reference file ids that can be attached to the assistant."""

    seen = []
    for info in CATALOG.values():
        if info.is_available and info.file_id not in seen:
            seen.append(info.file_id)
    return tuple(seen)


def chapter_from_query(query: str) -> Optional[str]:
    """Extract the chapter from queries like ``Generate 1 MCQ from X of the Y Book``."""

    match = CHAPTER_IN_QUERY.search(query or "")
    return match.group(1).strip() if match else None


def _key(text: str) -> str:
    return re.sub(r"[\s_]+", " ", text.replace("-", " ")).strip().lower()


def normalize_chapter(category: str, chapter: Optional[str]) -> Optional[str]:
    """Map a chapter name to its canonical spelling; ``None`` means the entire book."""

    if chapter is None or not chapter.strip():
        return None
    key = _key(chapter)
    if key in ENTIRE_BOOK_ALIASES:
        return None
    info = CATALOG.get(category)
    if info is None:
        return chapter.strip()
    for alias, canonical in info.aliases.items():
        if _key(alias) == key:
            return canonical
    for canonical in info.chapters:
        if _key(canonical) == key:
            return canonical
    return chapter.strip()


__all__ = [
    "CATALOG",
    "ENTIRE_BOOK",
    "BookInfo",
    "available_file_ids",
    "chapter_from_query",
    "get_book",
    "normalize_chapter",
]
