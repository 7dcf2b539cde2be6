"""Pydantic models shared across the GrantiFuel client."""

from .ai_helpers import (
    IMPORTANCE_ORDER,
    ApplicationFormValues,
    ArtistProfileSummary,
    GeneratedApplicationContent,
    GrantRecommendation,
    ProfileRequirement,
    RequirementImportance,
    normalize_recommendation,
    normalize_recommendations,
)
from .auth import LoginData, RegisterData, RegisterRole
from .base import ApiModel
from .billing import CheckoutSession, PlanTier, Subscription, SubscriptionPlan
from .core import (
    Activity,
    ActivityCreate,
    Application,
    ApplicationCreate,
    ApplicationStatus,
    ApplicationUpdate,
    Artist,
    ArtistCreate,
    Grant,
    GrantCreate,
    Template,
    TemplateCreate,
    TemplateType,
    User,
    UserRole,
)
from .documents import UPLOAD_FILE_TYPES, Document, DocumentFormValues, DocumentType
from .onboarding import ONBOARDING_TASKS, OnboardingTask, UserOnboarding

__all__ = [
    # Base
    "ApiModel",
    # Core entities
    "User",
    "UserRole",
    "Artist",
    "ArtistCreate",
    "Grant",
    "GrantCreate",
    "Application",
    "ApplicationCreate",
    "ApplicationUpdate",
    "ApplicationStatus",
    "Activity",
    "ActivityCreate",
    "Template",
    "TemplateCreate",
    "TemplateType",
    # Billing
    "SubscriptionPlan",
    "Subscription",
    "PlanTier",
    "CheckoutSession",
    # Documents
    "Document",
    "DocumentFormValues",
    "DocumentType",
    "UPLOAD_FILE_TYPES",
    # Onboarding
    "UserOnboarding",
    "OnboardingTask",
    "ONBOARDING_TASKS",
    # AI
    "ProfileRequirement",
    "RequirementImportance",
    "IMPORTANCE_ORDER",
    "GrantRecommendation",
    "normalize_recommendation",
    "normalize_recommendations",
    "ArtistProfileSummary",
    "ApplicationFormValues",
    "GeneratedApplicationContent",
    # Auth forms
    "LoginData",
    "RegisterData",
    "RegisterRole",
]
