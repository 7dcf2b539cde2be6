"""Domain services: cache-aware reads and writes for each REST resource."""

from .activity import ActivityService
from .ai_assistant import AIAssistantService
from .application import ApplicationService, ExportedFile, export_filename
from .artist import ArtistService
from .document import BatchUploadResult, DocumentService, upload_file_type
from .grant import GrantService
from .grant_recommendation import GrantRecommendationService
from .onboarding import OnboardingService
from .profile_requirements import (
    ProfileRequirementsService,
    completed_profile_fields,
    requirement_summary,
    sort_requirements,
)
from .subscription import SubscriptionService
from .template import TemplateService
from .user_admin import UserAdminService

__all__ = [
    "ActivityService",
    "AIAssistantService",
    "ApplicationService",
    "ArtistService",
    "BatchUploadResult",
    "DocumentService",
    "ExportedFile",
    "GrantRecommendationService",
    "GrantService",
    "OnboardingService",
    "ProfileRequirementsService",
    "SubscriptionService",
    "TemplateService",
    "UserAdminService",
    "completed_profile_fields",
    "export_filename",
    "requirement_summary",
    "sort_requirements",
    "upload_file_type",
]
