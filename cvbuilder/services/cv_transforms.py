# cvbuilder/services/cv_transforms.py
"""
Pure helpers for CV documents: defaults, validation, merge, keyword
extraction, completeness scoring, share tokens and plain-text export.

All functions take and return camelCase dicts (the stored JSON shape) and
never hand back an object that shares mutable state with an input.
"""
import copy
import logging
import random
import re
import secrets
import string
import time
from datetime import datetime, timezone

from pydantic import ValidationError

from cvbuilder.schemas.cv import CVData, dump, parse_date

logger = logging.getLogger(__name__)

SHARE_TOKEN_ALPHABET = string.ascii_letters + string.digits
SHARE_TOKEN_LENGTH = 32

_BASE36 = string.digits + string.ascii_lowercase
_NON_WORD = re.compile(r"[^\w]", re.ASCII)


class CVValidationError(ValueError):
    """Raised when a CV document does not satisfy the CV schema."""

    def __init__(self, errors):
        self.errors = errors
        messages = ", ".join(err["message"] for err in errors) or "Invalid CV data format"
        super().__init__(f"Invalid CV data: {messages}")


def format_validation_errors(exc: ValidationError):
    """Flatten a pydantic error into JSON-safe ``{path, message}`` entries."""
    return [
        {
            "path": ".".join(str(part) for part in err["loc"]),
            "message": err["msg"],
        }
        for err in exc.errors()
    ]


def now_iso() -> str:
    """Current UTC time in the ``2024-01-31T12:00:00.000Z`` form."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def create_default_cv_data(name: str, template: str = "modern") -> dict:
    return {
        "name": name,
        "template": template,
        "contact": {
            "name": "",
            "email": "",
            "phone": "",
            "location": "",
        },
        "summary": "",
        "experience": [],
        "education": [],
        "skills": [],
        "projects": [],
        "certifications": [],
        "languages": [],
        "awards": [],
        "publications": [],
        "volunteerWork": [],
        "customSections": [],
        "metadata": {
            "lastModified": now_iso(),
            "version": 1,
        },
    }


def validate_and_sanitize_cv_data(data) -> dict:
    """Validate ``data`` against the CV schema and return the cleaned dict.

    Unknown keys are dropped. Raises :class:`CVValidationError`.
    """
    try:
        return dump(CVData.model_validate(data))
    except ValidationError as e:
        raise CVValidationError(format_validation_errors(e)) from e


def _current_version(data) -> int:
    metadata = (data or {}).get("metadata") or {}
    return metadata.get("version") or 0


def transform_cv_data_for_storage(data: dict) -> dict:
    """Stamp ``lastModified`` and bump ``metadata.version`` before a write."""
    stored = copy.deepcopy(data)
    stored["metadata"] = {
        **(stored.get("metadata") or {}),
        "lastModified": now_iso(),
        "version": _current_version(data) + 1,
    }
    return stored


def merge_cv_data(existing: dict, updates: dict) -> dict:
    """Shallow-merge ``updates`` over ``existing`` and validate the result.

    Top-level keys from ``updates`` replace those of ``existing`` wholesale;
    ``metadata`` is merged key by key. The version always goes up by one.
    """
    merged = {**copy.deepcopy(existing), **copy.deepcopy(updates)}
    merged["metadata"] = {
        **((existing or {}).get("metadata") or {}),
        **((updates or {}).get("metadata") or {}),
        "lastModified": now_iso(),
        "version": _current_version(existing) + 1,
    }
    return validate_and_sanitize_cv_data(merged)


def transform_cv_record_to_response(cv) -> dict:
    return {
        "id": cv.id,
        "userId": cv.user_id,
        "name": cv.name,
        "description": cv.description,
        "template": cv.template,
        "data": copy.deepcopy(cv.data),
        "isPublic": cv.is_public,
        "shareToken": cv.share_token,
        "createdAt": cv.created_at.isoformat() if cv.created_at else None,
        "updatedAt": cv.updated_at.isoformat() if cv.updated_at else None,
    }


def _add_words(keywords, text):
    for word in (text or "").split():
        cleaned = _NON_WORD.sub("", word).lower()
        if len(cleaned) > 2:
            keywords[cleaned] = None


def extract_keywords_from_cv(data: dict) -> list:
    """Collect lower-cased search/ATS keywords, first-seen order, no repeats."""
    keywords = {}

    contact_name = (data.get("contact") or {}).get("name")
    if contact_name:
        for word in contact_name.split(" "):
            keywords[word.lower()] = None

    _add_words(keywords, data.get("summary"))

    for exp in data.get("experience", []):
        _add_words(keywords, exp.get("title"))
        _add_words(keywords, exp.get("company"))
        for bullet in exp.get("bullets", []):
            _add_words(keywords, bullet)
        for skill in exp.get("skills") or []:
            keywords[skill.lower()] = None

    for edu in data.get("education", []):
        keywords[edu["degree"].lower()] = None
        keywords[edu["institution"].lower()] = None
        for course in edu.get("relevantCourses") or []:
            keywords[course.lower()] = None

    for skill in data.get("skills", []):
        keywords[skill.lower()] = None

    for project in data.get("projects", []):
        keywords[project["name"].lower()] = None
        for tech in project.get("technologies") or []:
            keywords[tech.lower()] = None

    for cert in data.get("certifications", []):
        keywords[cert["name"].lower()] = None
        keywords[cert["issuer"].lower()] = None

    return [keyword for keyword in keywords if len(keyword) > 2]


def calculate_cv_completeness(data: dict) -> int:
    """Score 0-100 for how filled-in a CV is."""
    score = 0.0
    max_score = 0

    # Contact information (20)
    max_score += 20
    contact = data.get("contact") or {}
    contact_fields = ("name", "email", "phone", "location")
    filled = sum(1 for field in contact_fields if (contact.get(field) or "").strip())
    score += filled / len(contact_fields) * 20

    # Summary (15)
    max_score += 15
    summary = data.get("summary") or ""
    if summary.strip():
        score += 15 if len(summary) > 50 else 10

    # Experience (25)
    max_score += 25
    experience = data.get("experience", [])
    if experience:
        avg_bullets = sum(len(exp.get("bullets", [])) for exp in experience) / len(experience)
        score += min(25, len(experience) * 10 + avg_bullets * 3)

    # Education (15)
    max_score += 15
    if data.get("education"):
        score += min(15, len(data["education"]) * 10)

    # Skills (10)
    max_score += 10
    if data.get("skills"):
        score += min(10, len(data["skills"]) * 2)

    # Additional sections (15)
    max_score += 15
    additional = 0
    if data.get("projects"):
        additional += 5
    if data.get("certifications"):
        additional += 5
    if data.get("languages"):
        additional += 3
    if data.get("awards"):
        additional += 2
    score += min(15, additional)

    return int(score / max_score * 100 + 0.5)


def generate_share_token() -> str:
    return "".join(secrets.choice(SHARE_TOKEN_ALPHABET) for _ in range(SHARE_TOKEN_LENGTH))


def sanitize_cv_for_public_sharing(data: dict) -> dict:
    """Copy of ``data`` without internal tracking metadata (ATS score, keywords)."""
    public = copy.deepcopy(data)
    metadata = {
        "lastModified": now_iso(),
        "version": 1,
        **(public.get("metadata") or {}),
    }
    metadata.pop("atsScore", None)
    metadata.pop("keywords", None)
    public["metadata"] = metadata
    return public


def convert_cv_to_plain_text(data: dict) -> str:
    contact = data.get("contact") or {}
    lines = [
        contact.get("name", ""),
        f"{contact.get('email', '')} | {contact.get('phone', '')}",
        contact.get("location", ""),
    ]
    if contact.get("linkedin"):
        lines.append(f"LinkedIn: {contact['linkedin']}")
    if contact.get("website"):
        lines.append(f"Website: {contact['website']}")
    text = "\n".join(lines) + "\n\n"

    if data.get("summary"):
        text += "SUMMARY\n"
        text += f"{data['summary']}\n\n"

    if data.get("experience"):
        text += "EXPERIENCE\n"
        for exp in data["experience"]:
            end = "Present" if exp.get("isPresent") else exp.get("endDate", "")
            text += f"{exp['title']} | {exp['company']} | {exp['location']}\n"
            text += f"{exp['startDate']} - {end}\n"
            for bullet in exp.get("bullets", []):
                text += f"• {bullet}\n"
            text += "\n"

    if data.get("education"):
        text += "EDUCATION\n"
        for edu in data["education"]:
            text += f"{edu['degree']} | {edu['institution']}\n"
            text += f"{edu['startDate']} - {edu.get('endDate') or 'Present'}\n"
            if edu.get("gpa"):
                text += f"GPA: {edu['gpa']}\n"
            text += "\n"

    if data.get("skills"):
        text += "SKILLS\n"
        text += f"{', '.join(data['skills'])}\n\n"

    if data.get("projects"):
        text += "PROJECTS\n"
        for project in data["projects"]:
            text += f"{project['name']}\n"
            text += f"{project['description']}\n"
            if project.get("technologies"):
                text += f"Technologies: {', '.join(project['technologies'])}\n"
            text += "\n"

    return text


def validate_date_range(start_date, end_date=None, is_present=False) -> bool:
    start = parse_date(start_date)
    if start is None:
        return False

    if not is_present and end_date:
        end = parse_date(end_date)
        if end is None:
            return False
        return start <= end

    return True


def format_date_for_display(value: str) -> str:
    """``"2023-04-01"`` -> ``"Apr 2023"``; unparseable input comes back as is."""
    parsed = parse_date(value)
    if parsed is None:
        return value
    return parsed.strftime("%b %Y")


def generate_section_id() -> str:
    suffix = "".join(random.choices(_BASE36, k=9))
    return f"section_{int(time.time() * 1000)}_{suffix}"
