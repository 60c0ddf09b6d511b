"""Class identity (batch / year / semester / section) and the shared ClassKey function."""

import re
from typing import Any

from pydantic import BaseModel, Field, field_validator

from app.core.enums import Section

_ORDINALS = {1: "1st", 2: "2nd", 3: "3rd", 4: "4th"}
_LEVEL_RE = re.compile(r"^([1-4])\s*(st|nd|rd|th)?\s*(year)?$", re.IGNORECASE)
_TERM_RE = re.compile(r"^(sem(ester)?)?\s*([1-8])$", re.IGNORECASE)
_BATCH_RE = re.compile(r"^(\d{4})-(\d{4})$")


def normalize_level(value: Any) -> str:
    """2, "2", "2nd", "2nd Year", "2ndYear" -> "2nd Year"."""
    match = _LEVEL_RE.match(str(value).strip())
    if not match:
        raise ValueError("Year must be one of: 1st Year, 2nd Year, 3rd Year, 4th Year")
    return f"{_ORDINALS[int(match.group(1))]} Year"


def normalize_term(value: Any) -> str:
    """3, "3", "Sem 3", "Sem3", "semester 3" -> "Sem 3"."""
    match = _TERM_RE.match(str(value).strip())
    if not match:
        raise ValueError("Semester must be between 1 and 8")
    return f"Sem {int(match.group(3))}"


def term_number(term: str) -> int:
    return int(normalize_term(term).split()[1])


def make_class_key(batch: str, level: Any, term: Any, section: Any) -> str:
    """Deterministic bucket key, e.g. 2023-2027_2ndYear_Sem3_A.

    Every producer (mark/edit/assign/student enrolment) and consumer (history,
    reports) uses this function.
    """
    section_value = section.value if isinstance(section, Section) else str(section).strip().upper()
    return "_".join(
        [
            str(batch).strip(),
            normalize_level(level).replace(" ", ""),
            normalize_term(term).replace(" ", ""),
            section_value,
        ]
    )


class ClassIdentity(BaseModel):
    """The class-identity tuple shared by rosters, the ledger and advisor assignments."""

    batch: str = Field(..., description="Batch in YYYY-YYYY format, e.g. 2023-2027")
    year: str = Field(..., description="Year of study; 2, 2nd or 2nd Year")
    semester: str = Field(..., description="Semester; 3 or Sem 3")
    section: Section

    @field_validator("batch", mode="before")
    @classmethod
    def _check_batch(cls, v: Any) -> str:
        text = str(v).strip()
        match = _BATCH_RE.match(text)
        if not match:
            raise ValueError("Batch must be in format YYYY-YYYY (e.g., 2022-2026)")
        if int(match.group(2)) <= int(match.group(1)):
            raise ValueError("Batch end year must be after its start year")
        return text

    @field_validator("year", mode="before")
    @classmethod
    def _normalize_year(cls, v: Any) -> str:
        return normalize_level(v)

    @field_validator("semester", mode="before")
    @classmethod
    def _normalize_semester(cls, v: Any) -> str:
        return normalize_term(v)

    @field_validator("section", mode="before")
    @classmethod
    def _normalize_section(cls, v: Any) -> Any:
        return str(v).strip().upper() if isinstance(v, str) else v

    @property
    def class_key(self) -> str:
        return make_class_key(self.batch, self.year, self.semester, self.section)

    @property
    def display(self) -> str:
        return f"{self.year} | Semester {term_number(self.semester)} | Section {self.section.value}"
