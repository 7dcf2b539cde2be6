"""Onboarding task records (one row per completed task per user)."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from grantifuel.models.base import ApiModel


class OnboardingTask(str, Enum):
    PROFILE_COMPLETED = "profile_completed"
    FIRST_GRANT_VIEWED = "first_grant_viewed"
    FIRST_ARTIST_CREATED = "first_artist_created"
    FIRST_APPLICATION_STARTED = "first_application_started"
    FIRST_APPLICATION_CREATED = "first_application_created"
    AI_ASSISTANT_USED = "ai_assistant_used"
    FIRST_DOCUMENT_UPLOADED = "first_document_uploaded"
    FIRST_TEMPLATE_SAVED = "first_template_saved"
    FIRST_APPLICATION_COMPLETED = "first_application_completed"
    PROFILE_PICTURE_ADDED = "profile_picture_added"
    NOTIFICATION_SETTINGS_UPDATED = "notification_settings_updated"
    DASHBOARD_VIEWED = "dashboard_viewed"


# Tasks that count towards the onboarding checklist percentage.
ONBOARDING_TASKS: List[str] = [
    OnboardingTask.PROFILE_COMPLETED.value,
    OnboardingTask.FIRST_GRANT_VIEWED.value,
    OnboardingTask.FIRST_ARTIST_CREATED.value,
    OnboardingTask.FIRST_APPLICATION_STARTED.value,
    OnboardingTask.AI_ASSISTANT_USED.value,
    OnboardingTask.FIRST_DOCUMENT_UPLOADED.value,
    OnboardingTask.FIRST_TEMPLATE_SAVED.value,
    OnboardingTask.FIRST_APPLICATION_COMPLETED.value,
    OnboardingTask.PROFILE_PICTURE_ADDED.value,
    OnboardingTask.NOTIFICATION_SETTINGS_UPDATED.value,
]


class UserOnboarding(ApiModel):
    id: Optional[int] = None
    user_id: Optional[int] = None
    task: str
    completed_at: Optional[datetime] = None
    data: Optional[Dict[str, Any]] = None
