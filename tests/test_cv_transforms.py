import copy
import re

import pytest

from cvbuilder.services.cv_transforms import (
    CVValidationError,
    calculate_cv_completeness,
    convert_cv_to_plain_text,
    create_default_cv_data,
    extract_keywords_from_cv,
    format_date_for_display,
    generate_section_id,
    generate_share_token,
    merge_cv_data,
    sanitize_cv_for_public_sharing,
    transform_cv_data_for_storage,
    validate_and_sanitize_cv_data,
    validate_date_range,
)


def test_default_cv_data_is_blank_version_one():
    data = create_default_cv_data("My CV", "classic")

    assert data["name"] == "My CV"
    assert data["template"] == "classic"
    assert data["contact"] == {"name": "", "email": "", "phone": "", "location": ""}
    assert data["experience"] == [] and data["customSections"] == []
    assert data["metadata"]["version"] == 1
    assert data["metadata"]["lastModified"].endswith("Z")


def test_validate_drops_unknown_keys(cv_data):
    cv_data["favouriteColour"] = "green"
    cv_data["contact"]["twitter"] = "@jane"

    cleaned = validate_and_sanitize_cv_data(cv_data)

    assert "favouriteColour" not in cleaned
    assert "twitter" not in cleaned["contact"]
    assert cleaned["experience"][0]["startDate"] == "2020-01"


def test_validate_reports_paths_for_bad_email(cv_data):
    cv_data["contact"]["email"] = "not-an-email"

    with pytest.raises(CVValidationError) as exc_info:
        validate_and_sanitize_cv_data(cv_data)

    assert str(exc_info.value).startswith("Invalid CV data:")
    assert any(err["path"] == "contact.email" for err in exc_info.value.errors)


def test_validate_requires_end_date_for_past_roles(cv_data):
    del cv_data["experience"][1]["endDate"]

    with pytest.raises(CVValidationError):
        validate_and_sanitize_cv_data(cv_data)


def test_validate_rejects_reversed_dates(cv_data):
    cv_data["education"][0]["endDate"] = "2010-01"

    with pytest.raises(CVValidationError):
        validate_and_sanitize_cv_data(cv_data)


def test_blank_default_document_does_not_validate():
    with pytest.raises(CVValidationError):
        validate_and_sanitize_cv_data(create_default_cv_data("Blank"))


def test_storage_transform_bumps_version_without_mutating(cv_data):
    original = copy.deepcopy(cv_data)

    stored = transform_cv_data_for_storage(cv_data)

    assert stored["metadata"]["version"] == 4
    assert stored["metadata"]["atsScore"] == 72
    assert stored["metadata"]["lastModified"] != "2024-01-01T00:00:00.000Z"
    assert cv_data == original


def test_storage_transform_without_metadata_starts_at_one(cv_data):
    del cv_data["metadata"]

    assert transform_cv_data_for_storage(cv_data)["metadata"]["version"] == 1


def test_merge_replaces_top_level_keys_and_merges_metadata(cv_data):
    merged = merge_cv_data(cv_data, {
        "skills": ["Go"],
        "metadata": {"lastModified": "2024-02-01", "version": 1, "targetRole": "SRE"},
    })

    assert merged["skills"] == ["Go"]
    assert merged["experience"] == validate_and_sanitize_cv_data(cv_data)["experience"]
    assert merged["metadata"]["version"] == 4
    assert merged["metadata"]["atsScore"] == 72
    assert merged["metadata"]["targetRole"] == "SRE"
    assert cv_data["skills"] == ["Python", "SQL", "Docker"]


def test_merge_validates_result(cv_data):
    with pytest.raises(CVValidationError):
        merge_cv_data(cv_data, {"contact": {"name": "x", "email": "bad", "phone": "1", "location": "y"}})


def test_keywords_are_lowercase_unique_and_longer_than_two(cv_data):
    keywords = extract_keywords_from_cv(cv_data)

    assert "jane" in keywords
    assert "python" in keywords
    assert "flask" in keywords
    assert "bsc computer science" in keywords
    assert "aws saa" in keywords
    assert len(keywords) == len(set(keywords))
    assert all(len(k) > 2 and k == k.lower() for k in keywords)


def test_keywords_strip_punctuation():
    data = create_default_cv_data("x")
    data["summary"] = "Built APIs, pipelines & dashboards."

    keywords = extract_keywords_from_cv(data)

    assert "apis" in keywords
    assert "dashboards" in keywords
    assert "&" not in keywords


def test_completeness_of_full_cv(cv_data):
    # contact 20, summary 15, experience 2*10 + 1.5*3, education 10,
    # skills 6, additional 5+5+3 -> 88.5 rounds to 89
    assert calculate_cv_completeness(cv_data) == 89


def test_completeness_of_blank_cv_is_zero():
    assert calculate_cv_completeness(create_default_cv_data("Blank")) == 0


def test_completeness_short_summary_scores_less(cv_data):
    full = calculate_cv_completeness(cv_data)
    cv_data["summary"] = "Engineer."

    assert calculate_cv_completeness(cv_data) == full - 5


def test_share_token_shape():
    tokens = {generate_share_token() for _ in range(20)}

    assert len(tokens) == 20
    assert all(re.fullmatch(r"[A-Za-z0-9]{32}", token) for token in tokens)


def test_public_sharing_strips_tracking_metadata(cv_data):
    public = sanitize_cv_for_public_sharing(cv_data)

    assert "atsScore" not in public["metadata"]
    assert "keywords" not in public["metadata"]
    assert public["metadata"]["version"] == 3
    assert public["contact"]["email"] == "jane@example.com"
    assert cv_data["metadata"]["atsScore"] == 72


def test_plain_text_export(cv_data):
    text = convert_cv_to_plain_text(cv_data)

    assert text.startswith("Jane Doe\njane@example.com | +1 555 0100\nBerlin, DE\n")
    assert "LinkedIn: https://linkedin.com/in/janedoe" in text
    assert "EXPERIENCE\nSenior Engineer | Acme | Berlin\n2020-01 - Present\n• Built the billing API\n" in text
    assert "2016-05 - 2019-12" in text
    assert "GPA: 3.8" in text
    assert "SKILLS\nPython, SQL, Docker\n" in text
    assert "Technologies: Python, Click" in text


def test_plain_text_export_skips_empty_sections():
    text = convert_cv_to_plain_text(create_default_cv_data("Blank"))

    assert "EXPERIENCE" not in text
    assert "SKILLS" not in text


@pytest.mark.parametrize("start, end, present, expected", [
    ("2020-01", "2021-01", False, True),
    ("2021-01", "2020-01", False, False),
    ("2021-01", "2020-01", True, True),
    ("garbage", None, False, False),
    ("2020-01", "garbage", False, False),
    ("2020-01", None, False, True),
])
def test_validate_date_range(start, end, present, expected):
    assert validate_date_range(start, end, present) is expected


def test_format_date_for_display():
    assert format_date_for_display("2023-04-01") == "Apr 2023"
    assert format_date_for_display("2023-04") == "Apr 2023"
    assert format_date_for_display("someday") == "someday"


def test_section_ids_are_unique():
    ids = {generate_section_id() for _ in range(50)}

    assert len(ids) == 50
    assert all(re.fullmatch(r"section_\d+_[0-9a-z]{9}", section_id) for section_id in ids)
