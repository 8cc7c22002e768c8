# cvbuilder/services/chatbot.py
"""
Site assistant: answers questions about the CV builder, ATS optimisation
and job searching, grounded on a fixed description of the platform.
"""
import logging

from cvbuilder.services import usage_tracker
from cvbuilder.services.openai_service import GPT_3_5_TURBO, get_openai_client

logger = logging.getLogger(__name__)

FEATURE = "chatbot"
HISTORY_WINDOW = 3
MAX_TOKENS = 500
TEMPERATURE = 0.7

SITE_KNOWLEDGE = {
    "general": {
        "name": "ATS Resume Builder",
        "description": "Smart platform for building CVs optimised for Applicant Tracking Systems (ATS)",
        "purpose": "Help professionals write CVs that pass automated ATS filters and reach human recruiters",
    },
    "features": {
        "core": [
            "ATS-optimised CV builder",
            "Real-time ATS compatibility analysis",
            "Professional templates designed for ATS",
            "Import of existing CVs from PDF and DOCX files",
            "AI content generation",
            "Job description analysis",
            "Keyword optimisation",
            "Export to several formats (PDF, Word, plain text)",
        ],
        "ai_powered": [
            "Professional summary generation",
            "Optimised bullet points",
            "Compatibility analysis against a specific job posting",
            "AI improvement suggestions",
            "Cover letters and industry analysis for premium plans",
        ],
        "templates": [
            "Modern and professional templates",
            "Layouts optimised for ATS",
            "Formats adapted to different industries",
            "Live preview",
        ],
    },
    "pricing": {
        "free": {
            "name": "Free plan",
            "price": "$0/month",
            "features": [
                "Basic templates",
                "PDF export",
                "Basic ATS analysis",
                "10,000 AI tokens per day",
                "Email support",
            ],
        },
        "premium": {
            "name": "Premium plan",
            "price": "$19.99/month",
            "features": [
                "Unlimited CVs",
                "All premium templates",
                "Advanced AI content generation",
                "Cover letters and industry analysis",
                "Full job description analysis",
                "100,000 AI tokens per day",
                "Priority support",
            ],
        },
        "enterprise": {
            "name": "Enterprise plan",
            "price": "Contact us for pricing",
            "features": [
                "Everything in Premium",
                "Custom API access",
                "HR system integrations",
                "Dedicated support",
                "500,000 AI tokens per day",
            ],
        },
    },
    "ats_info": {
        "what_is_ats": (
            "Applicant Tracking Systems are software that companies use to filter and organise "
            "CVs automatically before they reach human recruiters."
        ),
        "common_systems": ["Workday", "Greenhouse", "Lever", "BambooHR", "iCIMS", "Taleo", "SmartRecruiters"],
        "optimization_tips": [
            "Use standard formats (PDF or Word)",
            "Avoid complex graphics and tables",
            "Include keywords from the job posting",
            "Use standard section headings",
            "Keep formatting consistent",
            "Avoid complex headers and footers",
        ],
    },
    "support": {
        "contact_methods": [
            "Email: support@ats-resume-builder.com",
            "Live chat for premium users",
            "Online help centre",
        ],
    },
    "industries": [
        "Technology and IT", "Finance and banking", "Marketing and advertising", "Human resources",
        "Sales", "Engineering", "Healthcare", "Education", "Consulting", "Manufacturing", "Retail",
        "Startups",
    ],
}

REFUSAL = (
    "Sorry, I can only help with questions about ATS Resume Builder, writing CVs and "
    "optimising them for ATS. Do you have a question about the platform?"
)


def _bullets(items, indent=""):
    return "\n".join(f"{indent}- {item}" for item in items)


def build_system_prompt(knowledge=SITE_KNOWLEDGE):
    general = knowledge["general"]
    features = knowledge["features"]
    ats = knowledge["ats_info"]

    plans = []
    for number, plan in enumerate(knowledge["pricing"].values(), start=1):
        plans.append(f"{number}. {plan['name']} ({plan['price']}):\n{_bullets(plan['features'], '   ')}")

    return (
        f"You are the virtual assistant of {general['name']} and nothing else. Only answer questions "
        "about this platform and about CVs, job searching and ATS.\n\n"
        "STRICT RULES:\n"
        "- Never answer questions about geography, history, science, entertainment, sports, politics "
        "or any other topic unrelated to CVs and ATS\n"
        f'- For anything outside your area reply: "{REFUSAL}"\n\n'
        "PLATFORM:\n"
        f"Name: {general['name']}\n"
        f"Purpose: {general['description']}\n\n"
        f"MAIN FEATURES:\n{_bullets(features['core'])}\n\n"
        f"AI FEATURES:\n{_bullets(features['ai_powered'])}\n\n"
        "PLANS:\n" + "\n\n".join(plans) + "\n\n"
        f"ABOUT ATS:\n{ats['what_is_ats']}\n"
        f"Common systems: {', '.join(ats['common_systems'])}\n\n"
        f"OPTIMISATION TIPS:\n{_bullets(ats['optimization_tips'])}\n\n"
        f"SUPPORTED INDUSTRIES:\n{', '.join(knowledge['industries'])}\n\n"
        "ANSWERING:\n"
        "- Check the question is about CVs, ATS or the platform before answering\n"
        "- Give specific, actionable help and mention relevant platform features\n"
        "- Keep answers concise and professional"
    )


def build_conversation_context(history, message):
    """Prompt with the last few turns of ``history`` followed by ``message``.

    ``history`` items need ``role`` and ``content`` attributes.
    """
    context = ""
    recent = history[-HISTORY_WINDOW:] if history else []
    if recent:
        context += "Recent conversation:\n"
        for turn in recent:
            speaker = "User" if turn.role == "user" else "Assistant"
            context += f"{speaker}: {turn.content}\n"
        context += "\n"
    return context + f"Current user question: {message}"


def answer(message, history=None, user_id=None):
    """Ask the model; returns the AI response dict from the client."""
    result = get_openai_client().generate_completion(
        build_conversation_context(history or [], message),
        model=GPT_3_5_TURBO,
        max_tokens=MAX_TOKENS,
        temperature=TEMPERATURE,
        system_prompt=build_system_prompt(),
    )

    if result["success"] and user_id is not None:
        usage_tracker.record_usage(user_id, result["usage"], result["model"], FEATURE)
        logger.info(f"💬 Chatbot answered user {user_id} ({len(result['data'])} chars)")
    elif not result["success"]:
        logger.error(f"❌ Chatbot completion failed: {result.get('error')}")
    return result
