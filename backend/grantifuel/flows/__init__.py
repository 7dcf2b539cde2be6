"""Multi-step application creation flows."""

from .enhanced_application import STEPS, Celebration, EnhancedApplicationFlow, FlowStep
from .new_application import NewApplicationFlow, export_text, grant_from_recommendation

__all__ = [
    "STEPS",
    "Celebration",
    "EnhancedApplicationFlow",
    "FlowStep",
    "NewApplicationFlow",
    "export_text",
    "grant_from_recommendation",
]
