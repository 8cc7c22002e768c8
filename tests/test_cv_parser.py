from datetime import datetime

import pytest

from cvbuilder.services.cv_parser import (
    CVParseError,
    UnsupportedFileError,
    detect_file_kind,
    extract_positions,
    extract_skills,
    extract_text,
    parse_cv_text,
    text_preview,
)

from conftest import docx_bytes, pdf_bytes

SAMPLE_CV = """Jane Marie Doe
SENIOR SOFTWARE ENGINEER
jane.doe@example.com | +15551234567
linkedin.com/in/janedoe
Austin, Texas, United States

Experience
Backend Engineer
Globex Corporation
Jan 2021 - Present
• Built billing APIs in Flask
• Cut p95 latency by 40%
Data Analyst
Initech
2018 - 2020
• Automated weekly reports
Education
BSc Computer Science
Skills
Python
PostgreSQL
Kubernetes
"""


@pytest.mark.parametrize("filename, content_type, kind", [
    ("cv.PDF", None, "pdf"),
    ("upload", "application/pdf", "pdf"),
    ("cv.docx", None, "docx"),
    ("notes.txt", None, "text"),
    ("cv", "text/plain", "text"),
    ("photo.png", "image/png", None),
])
def test_detect_file_kind(filename, content_type, kind):
    assert detect_file_kind(filename, content_type) == kind


def test_extract_text_from_pdf():
    text = extract_text(pdf_bytes("Jane Doe\njane@example.com\nSkills\nPython"), "cv.pdf")

    lines = [line.strip() for line in text.split("\n") if line.strip()]
    assert lines == ["Jane Doe", "jane@example.com", "Skills", "Python"]


def test_extract_text_from_docx():
    text = extract_text(docx_bytes(["Jane Doe", "Backend Engineer"]), "cv.docx")

    assert text == "Jane Doe\nBackend Engineer"


def test_extract_text_from_plain_text():
    assert extract_text("Jane Doe, Backend Engineer".encode("utf-8"), "cv.txt") == "Jane Doe, Backend Engineer"


def test_pdf_without_text_is_rejected():
    with pytest.raises(CVParseError, match="readable text"):
        extract_text(pdf_bytes(""), "scan.pdf")


def test_corrupt_files_are_rejected():
    with pytest.raises(CVParseError, match="PDF"):
        extract_text(b"definitely not a pdf", "cv.pdf")
    with pytest.raises(CVParseError, match="DOCX"):
        extract_text(b"definitely not a docx", "cv.docx")


def test_unsupported_file_type():
    with pytest.raises(UnsupportedFileError):
        extract_text(b"\x89PNG\r\n", "photo.png", "image/png")


def test_parse_profile():
    profile = parse_cv_text(SAMPLE_CV)["profile"]

    assert profile == {
        "firstName": "Jane",
        "lastName": "Marie Doe",
        "headline": "SENIOR SOFTWARE ENGINEER",
        "summary": "Extracted from uploaded CV",
        "location": "Austin, Texas, United States",
        "emailAddress": "jane.doe@example.com",
        "phoneNumbers": ["+15551234567"],
        "publicProfileUrl": "https://linkedin.com/in/janedoe",
    }


def test_parse_profile_defaults_when_nothing_matches():
    parsed = parse_cv_text("CV 2024\n12345")

    assert parsed["profile"]["firstName"] == "N/A"
    assert parsed["profile"]["lastName"] == "N/A"
    assert parsed["profile"]["headline"] == "Professional"
    assert parsed["profile"]["emailAddress"] == ""
    assert parsed["profile"]["phoneNumbers"] == []
    assert parsed["positions"] == []
    assert parsed["educations"] == []
    assert parsed["skills"] == []


def test_name_skips_contact_and_title_lines():
    parsed = parse_cv_text("ENGINEERING MANAGER\njohn@example.com\nJohn Smith\n")

    assert (parsed["profile"]["firstName"], parsed["profile"]["lastName"]) == ("John", "Smith")


def test_extract_positions():
    positions = extract_positions(SAMPLE_CV, today=datetime(2024, 6, 1))

    assert [p["title"] for p in positions] == ["Backend Engineer", "Data Analyst"]
    current, previous = positions
    assert current["companyName"] == "Globex Corporation"
    assert current["isCurrent"] is True
    assert current["description"] == "Built billing APIs in Flask\nCut p95 latency by 40%"
    assert current["summary"] == "Built billing APIs in Flask"
    assert current["startDate"] == {"month": 1, "year": 2023}
    assert previous["companyName"] == "Initech"
    assert previous["isCurrent"] is False
    assert previous["description"] == "Automated weekly reports"


def test_extract_skills_stops_at_next_section():
    skills = extract_skills("Skills\nPython\nA very long line that is clearly not a skill\nSQL\nEducation\nMIT")

    assert skills == [
        {"name": "Python", "endorsementCount": None},
        {"name": "SQL", "endorsementCount": None},
    ]


def test_text_preview():
    assert text_preview("short") == "short"
    assert text_preview("x" * 1500) == "x" * 1000 + "..."
