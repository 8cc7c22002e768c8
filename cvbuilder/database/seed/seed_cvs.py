from cvbuilder.extensions import db
from cvbuilder.models import CV, User
from cvbuilder.services.cv_transforms import (
    generate_section_id,
    transform_cv_data_for_storage,
    validate_and_sanitize_cv_data,
)

SAMPLE_CV_NAME = "Software Engineer CV"


def _sample_data():
    return {
        "name": SAMPLE_CV_NAME,
        "template": "modern",
        "contact": {
            "name": "Premium User",
            "email": "premium@example.com",
            "phone": "+1 555 0100",
            "location": "San Francisco, CA",
            "github": "https://github.com/example",
        },
        "summary": "Backend engineer with six years of experience building Python web services and data pipelines.",
        "experience": [
            {
                "id": generate_section_id(),
                "title": "Senior Software Engineer",
                "company": "Acme Corp",
                "location": "San Francisco, CA",
                "startDate": "2021-03",
                "isPresent": True,
                "bullets": [
                    "Led the migration of the billing platform to Flask and SQLAlchemy",
                    "Cut p95 API latency by 40% through query and cache tuning",
                ],
                "skills": ["Python", "Flask", "PostgreSQL"],
            },
        ],
        "education": [
            {
                "id": generate_section_id(),
                "degree": "BSc Computer Science",
                "institution": "State University",
                "startDate": "2012-09",
                "endDate": "2016-06",
            },
        ],
        "skills": ["Python", "Flask", "SQL", "Docker"],
        "projects": [],
        "certifications": [],
        "languages": [{"id": generate_section_id(), "name": "English", "proficiency": "native"}],
        "awards": [],
        "publications": [],
        "volunteerWork": [],
        "customSections": [],
        "metadata": {"lastModified": "2024-01-01T00:00:00.000Z", "version": 1},
    }


def seed():
    print("🌱 Seeding CVs...")

    owner = User.query.filter_by(email="premium@example.com").first()
    if owner is None:
        print("⚠️ Premium demo user missing, skipping CVs")
        return

    if CV.query.filter_by(user_id=owner.id, name=SAMPLE_CV_NAME).first():
        print("✅ Sample CV already present")
        return

    data = transform_cv_data_for_storage(validate_and_sanitize_cv_data(_sample_data()))
    db.session.add(CV(
        user_id=owner.id,
        name=SAMPLE_CV_NAME,
        description="Demo CV for the premium account",
        template="modern",
        data=data,
    ))
    db.session.commit()
    print("✅ CVs seeded successfully!")
