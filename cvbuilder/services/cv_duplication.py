# cvbuilder/services/cv_duplication.py
"""
CV duplication: copy a CV document into a new, independent document with
fresh section ids, optionally stripping, anonymizing or re-targeting it.
"""
import copy
import logging
import random
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import List, Optional

from cvbuilder.schemas.cv import parse_date
from cvbuilder.services.cv_transforms import (
    CVValidationError,
    generate_section_id,
    now_iso,
    validate_and_sanitize_cv_data,
)

logger = logging.getLogger(__name__)

SECTION_KEYS = (
    "experience",
    "education",
    "projects",
    "certifications",
    "languages",
    "awards",
    "publications",
    "volunteerWork",
    "customSections",
)

ANONYMOUS_LOCATION = "City, State"


@dataclass(frozen=True)
class DuplicationOptions:
    include_sensitive_data: bool = True
    include_personal_projects: bool = True
    include_volunteer_work: bool = True
    include_custom_sections: bool = True
    reset_dates: bool = False
    anonymize: bool = False
    template_override: Optional[str] = None


DEFAULT_DUPLICATION_OPTIONS = DuplicationOptions()


class DuplicationStrategy(str, Enum):
    EXACT_COPY = "exact_copy"
    TEMPLATE_ONLY = "template_only"
    ANONYMIZED = "anonymized"
    CLEAN_SLATE = "clean_slate"
    ROLE_SPECIFIC = "role_specific"


def _reset_dates(duplicated):
    for exp in duplicated.get("experience", []):
        exp["startDate"] = ""
        if exp.get("isPresent"):
            exp.pop("endDate", None)
        else:
            exp["endDate"] = ""

    for edu in duplicated.get("education", []):
        edu["startDate"] = ""
        edu["endDate"] = ""

    for project in duplicated.get("projects", []):
        project.pop("startDate", None)
        project.pop("endDate", None)

    for cert in duplicated.get("certifications", []):
        cert["issueDate"] = ""
        cert.pop("expiryDate", None)

    for entry in duplicated.get("awards", []) + duplicated.get("publications", []):
        entry["date"] = ""

    for vol in duplicated.get("volunteerWork", []):
        vol["startDate"] = ""
        if vol.get("isPresent"):
            vol.pop("endDate", None)
        else:
            vol["endDate"] = ""


def _anonymize(duplicated):
    duplicated["contact"] = {
        **(duplicated.get("contact") or {}),
        "name": "Anonymous Professional",
        "email": "email@example.com",
        "phone": "+1234567890",
        "location": ANONYMOUS_LOCATION,
    }
    for exp in duplicated.get("experience", []):
        exp["company"] = f"Company {random.randint(1, 100)}"
        exp["location"] = ANONYMOUS_LOCATION
    for edu in duplicated.get("education", []):
        edu["institution"] = f"University {random.randint(1, 100)}"
        edu["location"] = ANONYMOUS_LOCATION


def duplicate_cv_data(original: dict, new_name: str,
                      options: DuplicationOptions = DEFAULT_DUPLICATION_OPTIONS) -> dict:
    """Deep-copy ``original`` under ``new_name`` and apply ``options``.

    Every entry of every section gets a new id. The returned document shares
    nothing with ``original``; metadata restarts at version 1 without the
    ATS score or keywords.
    """
    duplicated = copy.deepcopy(original)
    duplicated["name"] = new_name

    for key in SECTION_KEYS:
        duplicated[key] = [
            {**entry, "id": generate_section_id()}
            for entry in duplicated.get(key) or []
        ]

    if not options.include_sensitive_data:
        duplicated["contact"] = {
            **(duplicated.get("contact") or {}),
            "email": "",
            "phone": "",
            "linkedin": "",
            "website": "",
            "github": "",
            "portfolio": "",
        }

    if not options.include_personal_projects:
        duplicated["projects"] = []
    if not options.include_volunteer_work:
        duplicated["volunteerWork"] = []
    if not options.include_custom_sections:
        duplicated["customSections"] = []

    if options.reset_dates:
        _reset_dates(duplicated)

    if options.anonymize:
        _anonymize(duplicated)

    if options.template_override:
        duplicated["template"] = options.template_override

    duplicated["metadata"] = {
        "lastModified": now_iso(),
        "version": 1,
    }
    return duplicated


def get_duplication_options_for_strategy(strategy) -> DuplicationOptions:
    strategy = DuplicationStrategy(strategy)

    if strategy is DuplicationStrategy.TEMPLATE_ONLY:
        return replace(
            DEFAULT_DUPLICATION_OPTIONS,
            include_sensitive_data=False,
            include_personal_projects=False,
            include_volunteer_work=False,
            include_custom_sections=False,
            reset_dates=True,
        )
    if strategy is DuplicationStrategy.ANONYMIZED:
        return replace(DEFAULT_DUPLICATION_OPTIONS, anonymize=True)
    if strategy is DuplicationStrategy.CLEAN_SLATE:
        return replace(DEFAULT_DUPLICATION_OPTIONS, include_sensitive_data=False, reset_dates=True)
    if strategy is DuplicationStrategy.ROLE_SPECIFIC:
        return replace(
            DEFAULT_DUPLICATION_OPTIONS,
            include_personal_projects=False,
            include_volunteer_work=False,
        )
    return DEFAULT_DUPLICATION_OPTIONS


def bulk_duplicate_cv(base_cv: dict, variations: list) -> list:
    """One duplicate per variation.

    Each variation is a dict with ``name``, ``strategy`` and optional
    ``template_override`` and ``custom_options`` (DuplicationOptions field
    overrides).
    """
    results = []
    for variation in variations:
        options = get_duplication_options_for_strategy(variation["strategy"])
        overrides = dict(variation.get("custom_options") or {})
        if variation.get("template_override"):
            overrides["template_override"] = variation["template_override"]
        options = replace(options, **overrides)
        results.append(duplicate_cv_data(base_cv, variation["name"], options))
    return results


@dataclass
class RoleDuplicationConfig:
    target_role: str
    target_industry: Optional[str] = None
    emphasize_skills: List[str] = field(default_factory=list)
    deemphasize_skills: List[str] = field(default_factory=list)
    include_projects: bool = True
    include_volunteer_work: bool = True
    max_experience_years: Optional[int] = None


def _years_ago(years, now=None):
    now = now or datetime.utcnow()
    try:
        return now.replace(year=now.year - years)
    except ValueError:
        # Feb 29 in a non-leap target year
        return now.replace(year=now.year - years, day=28)


def duplicate_for_role(original: dict, new_name: str, config: RoleDuplicationConfig) -> dict:
    duplicated = duplicate_cv_data(
        original,
        new_name,
        replace(
            DEFAULT_DUPLICATION_OPTIONS,
            include_personal_projects=config.include_projects,
            include_volunteer_work=config.include_volunteer_work,
        ),
    )

    deemphasized = [skill.lower() for skill in config.deemphasize_skills]
    skills = [
        skill for skill in duplicated.get("skills", [])
        if not any(term in skill.lower() for term in deemphasized)
    ]
    for skill in config.emphasize_skills:
        if not any(skill.lower() in existing.lower() for existing in skills):
            skills.insert(0, skill)
    duplicated["skills"] = skills

    if config.max_experience_years:
        cutoff = _years_ago(config.max_experience_years)
        kept = []
        for exp in duplicated.get("experience", []):
            if not exp.get("startDate"):
                kept.append(exp)
                continue
            started = parse_date(exp["startDate"])
            if started is not None and started >= cutoff:
                kept.append(exp)
        duplicated["experience"] = kept

    metadata = {**duplicated["metadata"], "targetRole": config.target_role}
    if config.target_industry:
        metadata["targetIndustry"] = config.target_industry
    duplicated["metadata"] = metadata
    return duplicated


def _section_ids(data):
    ids = []
    for key in ("experience", "education", "projects", "certifications", "customSections"):
        ids.extend(entry["id"] for entry in data.get(key, []) if entry.get("id"))
    return ids


def validate_duplication(original: dict, duplicated: dict, options: DuplicationOptions) -> dict:
    errors = []
    warnings = []

    try:
        validate_and_sanitize_cv_data(duplicated)
    except CVValidationError as e:
        errors.append(f"Duplicated CV data is invalid: {e}")

    if options.include_sensitive_data and not (duplicated.get("contact") or {}).get("email"):
        warnings.append("Contact email was not preserved despite includeSensitiveData option")

    if (options.include_personal_projects and not duplicated.get("projects")
            and original.get("projects")):
        warnings.append("Personal projects were not preserved despite includePersonalProjects option")

    if duplicated.get("name") == original.get("name"):
        warnings.append("Duplicated CV has the same name as original")

    ids = _section_ids(duplicated)
    if len(ids) != len(set(ids)):
        errors.append("Duplicate section IDs found in duplicated CV")

    return {
        "isValid": not errors,
        "errors": errors,
        "warnings": warnings,
    }


def _count_sections(data):
    return sum(
        len(data.get(key, []))
        for key in ("experience", "education", "projects", "certifications", "customSections")
    )


def generate_duplication_summary(original: dict, duplicated: dict, options: DuplicationOptions) -> dict:
    preserved = []
    modified = []
    removed = []

    if (duplicated.get("contact") or {}).get("email") == (original.get("contact") or {}).get("email"):
        preserved.append("Contact Information")
    elif options.anonymize or not options.include_sensitive_data:
        modified.append("Contact Information")

    original_experience = original.get("experience", [])
    duplicated_experience = duplicated.get("experience", [])
    if len(duplicated_experience) == len(original_experience):
        if options.reset_dates or options.anonymize:
            modified.append("Work Experience")
        else:
            preserved.append("Work Experience")
    elif not duplicated_experience:
        removed.append("Work Experience")

    optional_sections = (
        ("projects", "Personal Projects", options.include_personal_projects),
        ("volunteerWork", "Volunteer Work", options.include_volunteer_work),
        ("customSections", "Custom Sections", options.include_custom_sections),
    )
    for key, label, included in optional_sections:
        if not included and original.get(key):
            removed.append(label)
        elif duplicated.get(key):
            preserved.append(label)

    return {
        "originalSections": _count_sections(original),
        "duplicatedSections": _count_sections(duplicated),
        "preservedData": preserved,
        "modifiedData": modified,
        "removedData": removed,
    }
