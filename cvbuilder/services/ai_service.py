# cvbuilder/services/ai_service.py
"""
CV-focused AI features on top of :mod:`openai_service`.

Every feature follows the same path: estimate tokens, check the caller's
plan limits, ask the model for structured output, record usage on success.
Each returns an AI response dict (``success``, ``data``/``error``,
``usage``, ``model``, ``timestamp``); a refusal for usage limits also
carries ``"code": "USAGE_LIMIT"``, and a failed model call carries the
client's error code (plus ``retryAfter`` for RATE_LIMIT).
"""
import json
import logging

from cvbuilder.services import usage_tracker
from cvbuilder.services.openai_service import GPT_4_TURBO, ai_response, get_openai_client

logger = logging.getLogger(__name__)

USAGE_LIMIT = "USAGE_LIMIT"
PREMIUM_REQUIRED = "PREMIUM_REQUIRED"

JOB_ANALYSIS_SCHEMA = {
    "type": "object",
    "properties": {
        "keywords": {"type": "array", "items": {"type": "string"},
                     "description": "Important keywords and phrases from the job description"},
        "requiredSkills": {"type": "array", "items": {"type": "string"},
                           "description": "Must-have skills explicitly mentioned"},
        "preferredSkills": {"type": "array", "items": {"type": "string"},
                            "description": "Preferred or nice-to-have skills"},
        "industryTerms": {"type": "array", "items": {"type": "string"},
                          "description": "Industry-specific terminology and jargon"},
        "companyInfo": {
            "type": "object",
            "properties": {
                "name": {"type": "string"},
                "industry": {"type": "string"},
                "size": {"type": "string"},
            },
        },
        "roleLevel": {"type": "string", "enum": ["entry", "mid", "senior", "executive"],
                      "description": "Experience level required for this role"},
        "suggestions": {"type": "array", "items": {"type": "string"},
                        "description": "Actionable suggestions for CV optimization"},
    },
    "required": ["keywords", "requiredSkills", "preferredSkills", "industryTerms", "roleLevel", "suggestions"],
}

BULLET_POINTS_SCHEMA = {
    "type": "object",
    "properties": {
        "optimized": {"type": "array", "items": {"type": "string"},
                      "description": "Primary optimized bullet points"},
        "alternatives": {"type": "array", "items": {"type": "string"},
                         "description": "Alternative bullet point versions"},
        "keywords": {"type": "array", "items": {"type": "string"},
                     "description": "Important ATS keywords included"},
        "atsScore": {"type": "number", "description": "ATS compatibility score from 1-100"},
        "suggestions": {"type": "array", "items": {"type": "string"},
                        "description": "Suggestions for further improvement"},
    },
    "required": ["optimized", "alternatives", "keywords", "atsScore", "suggestions"],
}

SUMMARY_SCHEMA = {
    "type": "object",
    "properties": {
        "summary": {"type": "string", "description": "Main professional summary"},
        "alternatives": {"type": "array", "items": {"type": "string"},
                         "description": "Alternative summary versions"},
        "keywords": {"type": "array", "items": {"type": "string"},
                     "description": "Key industry keywords included"},
        "length": {"type": "number", "description": "Word count of the main summary"},
        "readabilityScore": {"type": "number", "description": "Readability score from 1-100"},
    },
    "required": ["summary", "alternatives", "keywords", "length", "readabilityScore"],
}

ATS_SCHEMA = {
    "type": "object",
    "properties": {
        "overallScore": {"type": "number", "description": "Overall ATS score from 1-100"},
        "scores": {
            "type": "object",
            "properties": {
                "keywordOptimization": {"type": "number"},
                "formatting": {"type": "number"},
                "contentQuality": {"type": "number"},
                "atsCompatibility": {"type": "number"},
            },
        },
        "feedback": {
            "type": "object",
            "properties": {
                "strengths": {"type": "array", "items": {"type": "string"}},
                "improvements": {"type": "array", "items": {"type": "string"}},
                "criticalIssues": {"type": "array", "items": {"type": "string"}},
            },
        },
        "keywordAnalysis": {
            "type": "object",
            "properties": {
                "matched": {"type": "array", "items": {"type": "string"}},
                "missing": {"type": "array", "items": {"type": "string"}},
                "density": {"type": "object", "additionalProperties": {"type": "number"}},
            },
        },
        "suggestions": {"type": "array", "items": {"type": "string"},
                        "description": "Specific optimization suggestions"},
    },
    "required": ["overallScore", "scores", "feedback", "keywordAnalysis", "suggestions"],
}

INDUSTRY_SCHEMA = {
    "type": "object",
    "properties": {
        "marketTrends": {"type": "array", "items": {"type": "string"},
                         "description": "Current market trends and industry developments"},
        "inDemandSkills": {"type": "array", "items": {"type": "string"},
                           "description": "Skills currently in high demand"},
        "salaryInsights": {
            "type": "object",
            "properties": {
                "range": {"type": "string"},
                "factors": {"type": "array", "items": {"type": "string"}},
            },
            "description": "Salary range and influencing factors",
        },
        "competitiveAnalysis": {"type": "array", "items": {"type": "string"},
                                "description": "What makes candidates competitive"},
        "recommendations": {"type": "array", "items": {"type": "string"},
                            "description": "Strategic career recommendations"},
    },
    "required": ["marketTrends", "inDemandSkills", "salaryInsights", "competitiveAnalysis", "recommendations"],
}

COVER_LETTER_SCHEMA = {
    "type": "object",
    "properties": {
        "content": {"type": "string", "description": "Main cover letter content"},
        "alternatives": {"type": "array", "items": {"type": "string"},
                         "description": "Alternative cover letter versions"},
        "tone": {"type": "string", "description": "Actual tone achieved in the letter"},
        "wordCount": {"type": "number", "description": "Word count of the main cover letter"},
        "keyPoints": {"type": "array", "items": {"type": "string"},
                      "description": "Key selling points highlighted"},
    },
    "required": ["content", "alternatives", "tone", "wordCount", "keyPoints"],
}

COVER_LETTER_LENGTHS = {
    "short": "150-250 words (3 paragraphs)",
    "medium": "250-400 words (4 paragraphs)",
    "long": "400-600 words (5-6 paragraphs)",
}


def _run_structured(feature, user_id, plan_type, context, overhead, prompt, schema, system_prompt,
                    model=GPT_4_TURBO):
    estimated = usage_tracker.estimate_tokens(context) + overhead
    check = usage_tracker.can_make_request(user_id, estimated, plan_type)
    if not check["allowed"]:
        logger.info(f"⛔ {feature} refused for {user_id}: {check['reason']}")
        response = ai_response(False, model, error=check.get("reason") or "Usage limit exceeded")
        response["code"] = USAGE_LIMIT
        response["resetTime"] = check.get("resetTime")
        return response

    response = get_openai_client().generate_structured_output(
        prompt, schema, model=model, system_prompt=system_prompt,
    )

    if response["success"] and response.get("usage"):
        usage_tracker.record_usage(user_id, response["usage"], response["model"], feature)
        logger.info(f"✅ {feature} done for {user_id} ({response['usage']['totalTokens']} tokens)")
    return response


def _premium_refusal(feature_label, plan_type):
    if (plan_type or "FREE").upper() != "FREE":
        return None
    response = ai_response(False, GPT_4_TURBO, error=f"{feature_label} is a premium feature")
    response["code"] = PREMIUM_REQUIRED
    return response


def analyze_job_description(job_description, user_id, plan_type="FREE"):
    system_prompt = (
        "You are an expert recruiter and HR professional. Analyze job descriptions to extract key "
        "information that would be valuable for CV optimization and candidate preparation.\n\n"
        "Your analysis should be thorough and practical, focusing on actionable insights that can "
        "help candidates tailor their applications effectively."
    )
    prompt = f"""Analyze this job description and extract the following information:

1. Required Skills (must-have technical and soft skills)
2. Preferred Skills (nice-to-have skills that give advantages)
3. Industry-specific keywords and terminology
4. Company information (if mentioned)
5. Role level (entry/mid/senior/executive)
6. Key responsibilities and expectations
7. Optimization suggestions for CV tailoring

Job Description:
{job_description}

Provide a comprehensive analysis that will help a candidate understand exactly what this employer is looking for and how to position themselves effectively."""

    return _run_structured(
        "job_description_analysis", user_id, plan_type, job_description, 1000,
        prompt, JOB_ANALYSIS_SCHEMA, system_prompt,
    )


def generate_bullet_points(request, user_id, plan_type="FREE"):
    """``request`` is a BulletPointRequest."""
    system_prompt = (
        "You are an expert CV writer and career coach specializing in creating compelling, "
        "ATS-optimized bullet points that highlight achievements and impact.\n\n"
        "Focus on:\n"
        "- Quantified achievements with specific metrics\n"
        "- Action verbs that demonstrate leadership and initiative\n"
        "- Industry-relevant keywords for ATS optimization\n"
        "- STAR method (Situation, Task, Action, Result) when applicable\n"
        "- Impact-focused language that shows business value"
    )
    extra = f"Additional Context: {request.context}" if request.context else ""
    responsibilities = "\n".join(request.responsibilities)
    achievements = "\n".join(request.achievements)
    prompt = f"""Create optimized bullet points for this work experience:

Job Title: {request.job_title}
Company: {request.company}
Industry: {request.industry}

Current Responsibilities:
{responsibilities}

Achievements:
{achievements}

Key Skills Used:
{', '.join(request.skills)}

{extra}

Generate:
1. 4-6 highly optimized bullet points that showcase impact and achievements
2. 3-4 alternative versions for variety
3. Key ATS keywords to include
4. ATS compatibility score (1-100)
5. Improvement suggestions

Make each bullet point compelling, specific, and results-oriented."""

    return _run_structured(
        "bullet_point_generation", user_id, plan_type, request.model_dump_json(by_alias=True), 1500,
        prompt, BULLET_POINTS_SCHEMA, system_prompt,
    )


def generate_summary(request, user_id, plan_type="FREE"):
    """``request`` is a SummaryRequest."""
    system_prompt = (
        "You are an expert CV writer specializing in creating compelling professional summaries "
        "that capture a candidate's unique value proposition.\n\n"
        "Create summaries that:\n"
        "- Immediately communicate the candidate's level and expertise\n"
        "- Highlight key achievements and differentiators\n"
        "- Include relevant industry keywords\n"
        "- Match the target role and industry\n"
        "- Are concise yet impactful (3-5 sentences)\n"
        "- Use the specified tone appropriately"
    )
    background = "\n".join(
        f"- {exp.title} at {exp.company} ({exp.years:g} years) - Skills: {', '.join(exp.skills)}"
        for exp in request.experience
    )
    prompt = f"""Create a professional summary for this candidate:

Target Role: {request.target_role}
Industry: {request.industry}
Experience Level: {request.level}
Tone: {request.tone}

Experience Background:
{background}

Generate:
1. Primary professional summary (3-5 sentences)
2. 2-3 alternative versions with different approaches
3. Key industry keywords incorporated
4. Readability score and length analysis
5. Suggestions for customization

Ensure the summary is compelling, keyword-rich, and perfectly tailored to the target role."""

    return _run_structured(
        "summary_generation", user_id, plan_type, request.model_dump_json(by_alias=True), 1000,
        prompt, SUMMARY_SCHEMA, system_prompt,
    )


def analyze_ats(cv_content, user_id, plan_type="FREE", job_description=None, target_keywords=None,
                industry=None):
    system_prompt = (
        "You are an expert in ATS (Applicant Tracking Systems) optimization with deep knowledge of "
        "how these systems parse, rank, and filter resumes.\n\n"
        "Analyze CVs for:\n"
        "- Keyword optimization and density\n"
        "- Formatting compatibility with ATS systems\n"
        "- Content structure and organization\n"
        "- Section headers and readability\n"
        "- File format considerations\n"
        "- Overall ATS compatibility score\n\n"
        "Provide specific, actionable feedback that will improve ATS performance."
    )
    sections = [f"Perform a comprehensive ATS analysis of this CV:\n\nCV Content:\n{cv_content}"]
    if job_description:
        sections.append(f"Target Job Description:\n{job_description}")
    if target_keywords:
        sections.append(f"Target Keywords:\n{', '.join(target_keywords)}")
    if industry:
        sections.append(f"Industry: {industry}")
    sections.append("""Analyze and provide:
1. Overall ATS compatibility score (1-100)
2. Detailed scores for: keyword optimization, formatting, content quality, ATS compatibility
3. Strengths and areas for improvement
4. Critical issues that must be fixed
5. Keyword analysis: matched, missing, density
6. Specific optimization suggestions

Be thorough and provide actionable recommendations.""")

    return _run_structured(
        "ats_analysis", user_id, plan_type, cv_content + (job_description or ""), 2000,
        "\n\n".join(sections), ATS_SCHEMA, system_prompt,
    )


def analyze_industry(request, user_id, plan_type="PREMIUM"):
    """Premium. ``request`` is an IndustryAnalysisRequest."""
    refusal = _premium_refusal("Industry analysis", plan_type)
    if refusal:
        return refusal

    system_prompt = (
        "You are a senior industry analyst and career strategist with deep expertise across multiple "
        "industries. Your analysis combines market intelligence, talent trends, and strategic career "
        "insights.\n\n"
        "Provide comprehensive industry analysis that includes:\n"
        "- Current market trends and disruptions\n"
        "- In-demand skills and emerging competencies\n"
        "- Salary insights and market positioning\n"
        "- Competitive landscape analysis\n"
        "- Strategic career recommendations\n\n"
        "Your insights should be data-driven, actionable, and forward-looking."
    )
    location = f"Location: {request.location}" if request.location else ""
    prompt = f"""Provide a comprehensive industry analysis for:

Industry: {request.industry}
Target Role: {request.role}
Experience Level: {request.experience}
{location}

Include:
1. Current market trends affecting this industry
2. In-demand skills and emerging technologies
3. Salary insights and market positioning factors
4. Competitive analysis - what sets candidates apart
5. Strategic recommendations for career advancement
6. Future outlook and opportunities

Focus on actionable insights that will help position the candidate competitively in this market."""

    return _run_structured(
        "industry_analysis", user_id, plan_type, request.model_dump_json(by_alias=True), 2500,
        prompt, INDUSTRY_SCHEMA, system_prompt,
    )


def generate_cover_letter(request, cv_data, user_id, plan_type="PREMIUM"):
    """Premium. ``request`` is a CoverLetterRequest; ``cv_data`` the resolved CV document."""
    refusal = _premium_refusal("Cover letter generation", plan_type)
    if refusal:
        return refusal

    system_prompt = (
        "You are an expert cover letter writer with extensive experience helping candidates secure "
        "interviews at top companies.\n\n"
        "Create compelling cover letters that:\n"
        "- Tell a coherent story connecting experience to the target role\n"
        "- Address specific requirements mentioned in the job description\n"
        "- Showcase unique value proposition and achievements\n"
        "- Match the requested tone and company culture\n"
        "- Follow proven cover letter structure and best practices\n"
        "- Are tailored to the specific company and position\n\n"
        "Your cover letters should be engaging, professional, and persuasive."
    )
    background = json.dumps(cv_data, indent=2)
    prompt = f"""Create a {request.tone} cover letter for this application:

Position: {request.position}
Company: {request.company}
Length: {request.length} ({COVER_LETTER_LENGTHS[request.length]})
Tone: {request.tone}

Job Description:
{request.job_description}

Candidate Background (CV Data):
{background}

Create:
1. Main cover letter following the length guidelines
2. 2-3 alternative versions with different approaches
3. Key points highlighted in the letter
4. Word count and tone analysis

Ensure the cover letter is specifically tailored to this position and company, demonstrating clear understanding of their needs and how the candidate can fulfill them."""

    context = request.job_description + background
    return _run_structured(
        "cover_letter_generation", user_id, plan_type, context, 2000,
        prompt, COVER_LETTER_SCHEMA, system_prompt,
    )


def health_check():
    status = get_openai_client().get_service_status()
    return {
        "status": "healthy" if status["isAvailable"] else "unhealthy",
        "responseTime": status["responseTime"],
    }
