"""
Text extraction and heuristic profile parsing for uploaded CV files.

PDFs are read with PyMuPDF, DOCX files with python-docx; plain text files
are decoded as UTF-8. :func:`parse_cv_text` then pulls a LinkedIn-style
profile (contact details, positions, skills) out of the raw text with
regular expressions and section headings, without calling the model API.
"""
import io
import logging
import re
from datetime import datetime

import docx
import fitz  # PyMuPDF

logger = logging.getLogger(__name__)

PDF = "pdf"
DOCX = "docx"
TEXT = "text"

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
TEXT_EXTENSIONS = (".txt", ".md")

MIN_TEXT_LENGTH = 10
PREVIEW_LENGTH = 1000

EMAIL_RE = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
PHONE_RE = re.compile(r"\+\d{10,15}")
LINKEDIN_RE = re.compile(r"linkedin\.com/in/[^\s)]+", re.IGNORECASE)
LOCATION_RE = re.compile(r"[A-Za-z ]+, *[A-Za-z ]+, *[A-Za-z ]+")

HEADLINE_WORDS = ("DEVELOPER", "ENGINEER", "DESIGNER", "SPECIALIST")
NAME_SKIP_WORDS = HEADLINE_WORDS + ("MANAGER", "DIRECTOR")
POSITION_WORDS = ("Developer", "Engineer", "Designer", "Manager", "Specialist", "Analyst")

EXPERIENCE_HEADINGS = ("experience", "experiencia")
EDUCATION_HEADINGS = ("education", "educación")
SKILLS_HEADINGS = ("skills", "aptitudes", "habilidades")


class CVParseError(Exception):
    """The upload could not be turned into text."""


class UnsupportedFileError(CVParseError):
    pass


def detect_file_kind(filename, content_type=None):
    name = (filename or "").lower()
    if content_type == "application/pdf" or name.endswith(".pdf"):
        return PDF
    if content_type == DOCX_MIME or name.endswith(".docx"):
        return DOCX
    if (content_type or "").startswith("text/") or name.endswith(TEXT_EXTENSIONS):
        return TEXT
    return None


def _pdf_text(data):
    with fitz.open(stream=data, filetype="pdf") as doc:
        blocks = []
        for page in doc:
            blocks.extend(page.get_text("blocks"))

    # reading order: top to bottom, then left to right
    blocks.sort(key=lambda b: (b[1], b[0]))
    return "\n".join(block[4] for block in blocks)


def _docx_text(data):
    document = docx.Document(io.BytesIO(data))
    return "\n".join(paragraph.text for paragraph in document.paragraphs)


def extract_text(data, filename, content_type=None):
    """Return the text of an uploaded PDF, DOCX or plain text file.

    Raises :class:`UnsupportedFileError` for other file types and
    :class:`CVParseError` when the file is unreadable or holds no text.
    """
    kind = detect_file_kind(filename, content_type)
    if kind is None:
        raise UnsupportedFileError("Unsupported file type. Upload a PDF, DOCX or plain text file.")

    try:
        if kind == PDF:
            text = _pdf_text(data)
        elif kind == DOCX:
            text = _docx_text(data)
        else:
            text = data.decode("utf-8", errors="replace")
    except Exception as e:
        logger.warning(f"⚠️ Could not read {kind} upload {filename!r}: {e}")
        raise CVParseError(f"Failed to extract text from {kind.upper()} file.") from e

    if len(text.strip()) < MIN_TEXT_LENGTH:
        raise CVParseError(
            f"Failed to extract text from {kind.upper()} file. "
            "Please ensure the file contains readable text."
        )

    logger.info(f"📄 Extracted {len(text)} characters from {filename!r}")
    return text


def _lines(text):
    return [line.strip() for line in text.split("\n") if line.strip()]


def _has_any(line, words):
    return any(word in line for word in words)


def extract_name(lines):
    """First and last name from the first lines that look like a person's name."""
    for line in lines[:10]:
        if "@" in line or "www." in line or "+" in line:
            continue
        if _has_any(line, NAME_SKIP_WORDS) or not 5 <= len(line) <= 50:
            continue

        words = [word for word in line.split(" ") if len(word) > 1]
        if 2 <= len(words) <= 4 and all(word.isalpha() for word in words):
            return words[0], " ".join(words[1:])
    return "", ""


def extract_location(lines):
    for line in lines:
        match = LOCATION_RE.search(line)
        if match:
            return match.group(0).strip()
    return ""


def extract_headline(lines):
    for line in lines:
        if _has_any(line, HEADLINE_WORDS):
            return line
    return ""


def _position_title(line):
    return (
        "-" not in line
        and "•" not in line
        and 5 < len(line) < 80
        and "Present" not in line
        and "Presente" not in line
        and _has_any(line, POSITION_WORDS)
    )


def extract_positions(text, today=None):
    """Job positions listed under the experience heading.

    A position starts at a line carrying a job-title word; the next short
    line is taken as the company and the following "•" bullets as its
    description.
    """
    lines = _lines(text)
    year = (today or datetime.utcnow()).year
    positions = []

    in_section = False
    for i, line in enumerate(lines):
        lower = line.lower()
        if not in_section:
            in_section = _has_any(lower, EXPERIENCE_HEADINGS)
            continue
        if _has_any(lower, EDUCATION_HEADINGS + SKILLS_HEADINGS):
            break
        if not _position_title(line):
            continue

        position = {
            "title": line,
            "companyName": "",
            "location": "",
            "startDate": {"month": 1, "year": year - 1},
            "endDate": None,
            "isCurrent": False,
            "description": "",
            "summary": "",
        }

        following = lines[i + 1:i + 10]
        if following:
            company = following[0]
            if ("•" not in company and "-" not in company and len(company) < 50
                    and not _has_any(company, POSITION_WORDS[:4])):
                position["companyName"] = company

        for candidate in following[:4]:
            if "-" in candidate and ("Present" in candidate or "Presente" in candidate):
                position["isCurrent"] = True
                break

        bullets = []
        for candidate in following:
            if candidate.startswith("•"):
                bullets.append(candidate[1:].strip())
            elif bullets:
                break
        position["description"] = "\n".join(bullets)
        position["summary"] = bullets[0] if bullets else ""

        positions.append(position)

    return positions


def extract_skills(text):
    """Short lines under the skills heading, one skill per line."""
    skills = []
    in_section = False
    for line in _lines(text):
        lower = line.lower()
        if not in_section:
            in_section = _has_any(lower, SKILLS_HEADINGS)
            continue
        if _has_any(lower, EXPERIENCE_HEADINGS + EDUCATION_HEADINGS):
            break
        if len(line) < 30:
            skills.append({"name": line, "endorsementCount": None})
    return skills


def parse_cv_text(text, today=None):
    """Build the imported profile dict from extracted CV text."""
    lines = _lines(text)
    first_name, last_name = extract_name(lines)

    email = EMAIL_RE.search(text)
    linkedin = LINKEDIN_RE.search(text)

    return {
        "profile": {
            "firstName": first_name or "N/A",
            "lastName": last_name or "N/A",
            "headline": extract_headline(lines) or "Professional",
            "summary": "Extracted from uploaded CV",
            "location": extract_location(lines),
            "emailAddress": email.group(0) if email else "",
            "phoneNumbers": PHONE_RE.findall(text),
            "publicProfileUrl": f"https://{linkedin.group(0)}" if linkedin else "",
        },
        "positions": extract_positions(text, today),
        "educations": [],
        "skills": extract_skills(text),
    }


def text_preview(text):
    if len(text) > PREVIEW_LENGTH:
        return text[:PREVIEW_LENGTH] + "..."
    return text
