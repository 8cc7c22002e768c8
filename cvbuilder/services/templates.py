# Template catalogue shown to clients. Rendering happens client-side.

TEMPLATE_REGISTRY = [
    {
        "id": "modern",
        "name": "Modern Professional",
        "description": "A contemporary template with gradient header, timeline experience layout, and modern design elements",
        "category": "professional",
        "isPremium": False,
    },
    {
        "id": "classic",
        "name": "Classic Traditional",
        "description": "A timeless template with centered header, traditional formatting, and professional appearance",
        "category": "professional",
        "isPremium": False,
    },
    {
        "id": "minimal",
        "name": "Clean Minimal",
        "description": "A clean, minimalist template with subtle styling and maximum content focus",
        "category": "professional",
        "isPremium": False,
    },
    {
        "id": "creative",
        "name": "Creative Professional",
        "description": "A vibrant template with gradient backgrounds and modern visual elements",
        "category": "creative",
        "isPremium": False,
    },
    {
        "id": "technical",
        "name": "Technical Professional",
        "description": "A structured template optimized for technical roles and engineering positions",
        "category": "professional",
        "isPremium": False,
    },
    {
        "id": "executive",
        "name": "Executive Professional",
        "description": "An elegant template designed for senior leadership and executive positions",
        "category": "executive",
        "isPremium": True,
    },
    {
        "id": "academic",
        "name": "Academic Professional",
        "description": "A scholarly template designed for academic and research positions",
        "category": "academic",
        "isPremium": False,
    },
    {
        "id": "sales",
        "name": "Sales Professional",
        "description": "A results-focused template optimized for sales and business development roles",
        "category": "professional",
        "isPremium": False,
    },
]


def list_templates(premium=None):
    """All templates, or only free (``premium=False``) / premium (``True``) ones."""
    if premium is None:
        return list(TEMPLATE_REGISTRY)
    return [t for t in TEMPLATE_REGISTRY if t["isPremium"] == premium]
