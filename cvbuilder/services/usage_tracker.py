# cvbuilder/services/usage_tracker.py
"""
Per-user AI token accounting backed by the ``ai_usage`` table.

Daily windows start at UTC midnight, monthly windows on the first day of the
UTC month.
"""
import logging
import math
from datetime import datetime, timedelta

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from cvbuilder.extensions import db
from cvbuilder.models import AIUsage

logger = logging.getLogger(__name__)

USAGE_LIMITS = {
    "FREE": {"daily": 10_000, "monthly": 200_000},
    "PREMIUM": {"daily": 100_000, "monthly": 2_000_000},
    "ENTERPRISE": {"daily": 500_000, "monthly": 10_000_000},
}

WARNING_THRESHOLD = 80


def _limits(plan_type):
    return USAGE_LIMITS.get((plan_type or "FREE").upper(), USAGE_LIMITS["FREE"])


def _utcnow():
    return datetime.utcnow()


def start_of_day(now):
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_month(now):
    return start_of_day(now).replace(day=1)


def get_next_reset_time(period, now=None):
    now = now or _utcnow()
    if period == "daily":
        return start_of_day(now) + timedelta(days=1)
    if now.month == 12:
        return start_of_month(now).replace(year=now.year + 1, month=1)
    return start_of_month(now).replace(month=now.month + 1)


def estimate_tokens(text):
    """Rough token count: one token per four characters."""
    return math.ceil(len(text or "") / 4)


def _tokens_since(user_id, since):
    total = (
        db.session.query(func.coalesce(func.sum(AIUsage.total_tokens), 0))
        .filter(AIUsage.user_id == user_id, AIUsage.created_at >= since)
        .scalar()
    )
    return int(total or 0)


def get_current_usage(user_id, plan_type="FREE", now=None):
    now = now or _utcnow()
    limits = _limits(plan_type)
    try:
        daily_used = _tokens_since(user_id, start_of_day(now))
        monthly_used = _tokens_since(user_id, start_of_month(now))
    except SQLAlchemyError as e:
        logger.error(f"❌ Failed to get current usage for {user_id}: {e}")
        daily_used = monthly_used = 0

    return {
        "userId": user_id,
        "dailyLimit": limits["daily"],
        "monthlyLimit": limits["monthly"],
        "dailyUsed": daily_used,
        "monthlyUsed": monthly_used,
        "resetTime": get_next_reset_time("daily", now).isoformat(),
    }


def can_make_request(user_id, requested_tokens, plan_type="FREE", now=None):
    """Check the daily limit, then the monthly one.

    Returns ``{"allowed": bool, "reason"?: str, "resetTime"?: iso}``.
    """
    now = now or _utcnow()
    limits = _limits(plan_type)
    usage = get_current_usage(user_id, plan_type, now)

    if usage["dailyUsed"] + requested_tokens > limits["daily"]:
        return {
            "allowed": False,
            "reason": "Daily token limit exceeded",
            "resetTime": get_next_reset_time("daily", now).isoformat(),
        }

    if usage["monthlyUsed"] + requested_tokens > limits["monthly"]:
        return {
            "allowed": False,
            "reason": "Monthly token limit exceeded",
            "resetTime": get_next_reset_time("monthly", now).isoformat(),
        }

    return {"allowed": True}


def record_usage(user_id, usage, model, feature):
    """Persist one request's usage. Failures are logged, never raised."""
    try:
        db.session.add(AIUsage(
            user_id=user_id,
            feature=feature,
            model=model,
            prompt_tokens=usage.get("promptTokens", 0),
            completion_tokens=usage.get("completionTokens", 0),
            total_tokens=usage.get("totalTokens", 0),
            cost=usage.get("cost", 0),
        ))
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"❌ Failed to record usage for {user_id}: {e}")


def _cutoff(now, time_range):
    if time_range == "day":
        return now - timedelta(days=1)
    if time_range == "week":
        return now - timedelta(days=7)
    if now.month == 1:
        month_ago = (now.year - 1, 12)
    else:
        month_ago = (now.year, now.month - 1)
    day = min(now.day, 28)
    return now.replace(year=month_ago[0], month=month_ago[1], day=day)


def get_usage_stats(user_id, time_range="month", now=None):
    now = now or _utcnow()
    records = (
        AIUsage.query
        .filter(AIUsage.user_id == user_id, AIUsage.created_at >= _cutoff(now, time_range))
        .order_by(AIUsage.created_at.asc())
        .all()
    )

    total_tokens = 0
    total_cost = 0.0
    features = {}
    daily = {}
    for record in records:
        total_tokens += record.total_tokens
        total_cost += record.cost or 0

        feature = features.setdefault(record.feature, {"tokens": 0, "cost": 0.0})
        feature["tokens"] += record.total_tokens
        feature["cost"] += record.cost or 0

        day = daily.setdefault(record.created_at.date().isoformat(), {"tokens": 0, "cost": 0.0})
        day["tokens"] += record.total_tokens
        day["cost"] += record.cost or 0

    top_features = sorted(
        ({"feature": name, "tokens": v["tokens"], "cost": round(v["cost"], 4)} for name, v in features.items()),
        key=lambda item: item["tokens"],
        reverse=True,
    )[:10]
    daily_breakdown = [
        {"date": date, "tokens": v["tokens"], "cost": round(v["cost"], 4)}
        for date, v in sorted(daily.items())
    ]

    return {
        "totalTokens": total_tokens,
        "totalCost": round(total_cost, 4),
        "totalRequests": len(records),
        "averageCostPerRequest": round(total_cost / len(records), 4) if records else 0,
        "topFeatures": top_features,
        "dailyBreakdown": daily_breakdown,
    }


def check_limit_warnings(user_id, plan_type="FREE", now=None):
    usage = get_current_usage(user_id, plan_type, now)
    limits = _limits(plan_type)
    daily_pct = round(usage["dailyUsed"] / limits["daily"] * 100)
    monthly_pct = round(usage["monthlyUsed"] / limits["monthly"] * 100)
    return {
        "dailyWarning": daily_pct >= WARNING_THRESHOLD,
        "monthlyWarning": monthly_pct >= WARNING_THRESHOLD,
        "dailyPercentage": daily_pct,
        "monthlyPercentage": monthly_pct,
    }


def get_rate_limit_headers(user_id, plan_type="FREE", now=None):
    now = now or _utcnow()
    usage = get_current_usage(user_id, plan_type, now)
    limits = _limits(plan_type)

    def epoch(moment):
        return str(int((moment - datetime(1970, 1, 1)).total_seconds()))

    return {
        "X-RateLimit-Limit-Daily": str(limits["daily"]),
        "X-RateLimit-Remaining-Daily": str(max(0, limits["daily"] - usage["dailyUsed"])),
        "X-RateLimit-Reset-Daily": epoch(get_next_reset_time("daily", now)),
        "X-RateLimit-Limit-Monthly": str(limits["monthly"]),
        "X-RateLimit-Remaining-Monthly": str(max(0, limits["monthly"] - usage["monthlyUsed"])),
        "X-RateLimit-Reset-Monthly": epoch(get_next_reset_time("monthly", now)),
    }


def reset_usage(user_id, period="all", now=None):
    """Drop usage rows for the current day, the current month, or all time."""
    now = now or _utcnow()
    query = AIUsage.query.filter(AIUsage.user_id == user_id)
    if period == "daily":
        query = query.filter(AIUsage.created_at >= start_of_day(now))
    elif period == "monthly":
        query = query.filter(AIUsage.created_at >= start_of_month(now))

    try:
        deleted = query.delete(synchronize_session=False)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"❌ Failed to reset usage for {user_id}: {e}")
        raise
    logger.info(f"🧹 Reset {period} usage for {user_id} ({deleted} rows)")
    return deleted
