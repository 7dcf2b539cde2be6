"""Knowledge-base documents the AI assistant draws on."""

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import Field, validator

from grantifuel.models.base import ApiModel


class DocumentType(str, Enum):
    GRANT_INFO = "grant_info"
    ARTIST_GUIDE = "artist_guide"
    APPLICATION_TIPS = "application_tips"
    ADMIN_KNOWLEDGE = "admin_knowledge"
    USER_UPLOAD = "user_upload"


# Extensions /api/documents/upload accepts
UPLOAD_FILE_TYPES = {".pdf": "pdf", ".docx": "docx", ".txt": "txt"}


def split_tags(value: Any) -> List[str]:
    """Tags arrive as ``"a, b"`` from forms and as lists from the API."""
    if value is None or value == "":
        return []
    if isinstance(value, str):
        return [tag.strip() for tag in value.split(",") if tag.strip()]
    return [str(tag) for tag in value]


class DocumentFormValues(ApiModel):
    """Create/edit form for a document."""

    class Config:
        validate_default = True

    title: str = ""
    content: str = ""
    type: DocumentType = DocumentType.USER_UPLOAD
    tags: List[str] = Field(default_factory=list)
    is_public: bool = False
    is_approved: bool = False

    @validator("title")
    def title_length(cls, v):
        v = (v or "").strip()
        if len(v) < 3:
            raise ValueError("Title must be at least 3 characters")
        if len(v) > 100:
            raise ValueError("Title must be less than 100 characters")
        return v

    @validator("content")
    def content_length(cls, v):
        if len((v or "").strip()) < 10:
            raise ValueError("Content must be at least 10 characters")
        return v

    @validator("tags", pre=True)
    def parse_tags(cls, v):
        return split_tags(v)


class Document(ApiModel):
    id: int
    user_id: Optional[int] = None
    title: str
    content: str = ""
    type: str = DocumentType.USER_UPLOAD.value
    tags: List[str] = Field(default_factory=list)
    is_public: bool = False
    is_approved: bool = False
    file_name: Optional[str] = None
    file_type: Optional[str] = None
    file_url: Optional[str] = None
    file_size: Optional[int] = None
    ai_classified: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @validator("tags", pre=True)
    def parse_tags(cls, v):
        return split_tags(v)

    @property
    def has_file(self) -> bool:
        return bool(self.file_url)
