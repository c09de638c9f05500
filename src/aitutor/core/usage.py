"""Usage limits, streaks and experience.

Free-tier learners get a daily message allowance and caps on flashcard
sets and folders; pro learners are unlimited. Streaks count consecutive
active days, quiz answers earn XP and levels.

All functions take ``today`` explicitly (defaulting to the current date)
and return or mutate the given profile; persistence is the caller's job.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Literal

import structlog

from aitutor.config.app_config import LimitsConfig, load_app_config
from aitutor.core.models import UsageTracking, UserProfile, today_str

logger = structlog.get_logger(__name__)

Feature = Literal["flashcard_sets", "folders", "daily_messages", "quiz_modes"]

PRO_REMAINING_MESSAGES = 9999
XP_PER_CORRECT_ANSWER = 10
XP_PER_LEVEL = 1000


@dataclass
class LimitDecision:
    """Whether an action is allowed, with upgrade copy when it is not."""

    allowed: bool
    feature: Feature
    title: str = ""
    description: str = ""


def _limits(limits: LimitsConfig | None) -> LimitsConfig:
    return limits if limits is not None else load_app_config().limits


# =============================================================================
# DAILY MESSAGES
# =============================================================================


def can_send_message(
    user: UserProfile,
    today: date | None = None,
    limits: LimitsConfig | None = None,
) -> bool:
    """Whether the user may send another tutor message today."""
    if user.is_pro:
        return True
    if user.usage is None:
        return True
    if user.usage.last_reset_date != today_str(today):
        # Counter resets on the next increment
        return True
    return user.usage.daily_messages < _limits(limits).daily_messages


def increment_message_count(user: UserProfile, today: date | None = None) -> UserProfile:
    """Count one message against today's allowance. No-op for pro users."""
    if user.is_pro:
        return user

    day = today_str(today)
    if user.usage is None or user.usage.last_reset_date != day:
        user.usage = UsageTracking(daily_messages=1, last_reset_date=day)
    else:
        user.usage.daily_messages += 1

    logger.debug("message_counted", user_id=user.id, daily_messages=user.usage.daily_messages)
    return user


def remaining_messages(
    user: UserProfile,
    today: date | None = None,
    limits: LimitsConfig | None = None,
) -> int:
    """Messages left today (a large constant for pro users)."""
    if user.is_pro:
        return PRO_REMAINING_MESSAGES
    limit = _limits(limits).daily_messages
    if user.usage is None or user.usage.last_reset_date != today_str(today):
        return limit
    return max(0, limit - user.usage.daily_messages)


# =============================================================================
# FEATURE LIMITS
# =============================================================================


def check_limit(
    user: UserProfile,
    feature: Feature,
    current_count: int = 0,
    today: date | None = None,
    limits: LimitsConfig | None = None,
) -> LimitDecision:
    """Decide whether the user may use a feature given their tier.

    Args:
        user: The learner
        feature: flashcard_sets, folders, daily_messages or quiz_modes
        current_count: How many sets/folders the user already has
    """
    if user.is_pro:
        return LimitDecision(allowed=True, feature=feature)

    cfg = _limits(limits)

    if feature == "flashcard_sets":
        if current_count >= cfg.flashcard_sets:
            return LimitDecision(
                allowed=False,
                feature=feature,
                title="Flashcard Sets Limit Reached",
                description=(
                    f"Free users can only create {cfg.flashcard_sets} flashcard sets. "
                    "Upgrade to create unlimited sets."
                ),
            )
    elif feature == "folders":
        if current_count >= cfg.folders:
            return LimitDecision(
                allowed=False,
                feature=feature,
                title="Folder Limit Reached",
                description=(
                    "Upgrade to Pro to create more folders and organize your content better."
                ),
            )
    elif feature == "daily_messages":
        if not can_send_message(user, today, cfg):
            return LimitDecision(
                allowed=False,
                feature=feature,
                title="Daily Message Limit Reached",
                description=(
                    f"You have used your {cfg.daily_messages} free AI chats for today. "
                    "Your limit will reset tomorrow. Upgrade to Pro for unlimited chats!"
                ),
            )
    elif feature == "quiz_modes":
        return LimitDecision(
            allowed=False,
            feature=feature,
            title="Premium Quiz Feature",
            description="This quiz mode is available for Pro users only.",
        )

    return LimitDecision(allowed=True, feature=feature)


def upgrade(user: UserProfile) -> UserProfile:
    """Move the user to the pro tier."""
    user.subscription_tier = "pro"
    user.subscription_status = "active"
    logger.info("user_upgraded", user_id=user.id)
    return user


# =============================================================================
# STREAKS AND XP
# =============================================================================


def update_streak(user: UserProfile, today: date | None = None) -> UserProfile:
    """Advance the daily streak on first activity of a day.

    Same day: unchanged. Day after last activity: +1. Otherwise reset to 1.
    """
    day = today or date.today()
    today_iso = day.isoformat()

    if user.last_active_date == today_iso:
        return user

    yesterday_iso = (day - timedelta(days=1)).isoformat()
    if user.last_active_date == yesterday_iso:
        user.streak += 1
    else:
        user.streak = 1

    user.last_active_date = today_iso
    return user


def level_for_xp(xp: int) -> int:
    """Level 1 covers 0-999 XP, level 2 1000-1999 XP, and so on."""
    return xp // XP_PER_LEVEL + 1


def record_quiz_result(user: UserProfile, score: int, total: int) -> int:
    """Add a finished quiz to the user's stats.

    Returns:
        XP gained
    """
    if score < 0 or total < 0 or score > total:
        raise ValueError(f"Invalid quiz result {score}/{total}")

    xp_gained = score * XP_PER_CORRECT_ANSWER
    user.quiz_total_questions += total
    user.quiz_total_correct += score
    user.xp += xp_gained
    user.level = max(user.level, level_for_xp(user.xp))

    logger.info(
        "quiz_result_recorded",
        user_id=user.id,
        score=score,
        total=total,
        xp_gained=xp_gained,
        level=user.level,
    )
    return xp_gained
