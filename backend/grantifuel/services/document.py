"""
Knowledge-base documents: list, create, edit, delete, approve and file upload.

Uploads go to ``/api/documents/upload`` as multipart form data. Admins may
ask the server to classify a file itself (``auto_classify``), in which case
title, content and type are optional and only sent as a fallback.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from grantifuel.errors import FormValidationError, GrantiFuelError, user_message
from grantifuel.models.documents import (
    UPLOAD_FILE_TYPES,
    Document,
    DocumentFormValues,
    DocumentType,
    split_tags,
)
from grantifuel.models.onboarding import OnboardingTask
from grantifuel.mutation import Mutation
from grantifuel.services.base import StateService, validate_form
from grantifuel.services.onboarding import OnboardingService

logger = logging.getLogger(__name__)

DOCUMENTS_KEY = ("/api/documents",)
UPLOAD_URL = "/api/documents/upload"

CONTENT_TYPES = {
    "pdf": "application/pdf",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "txt": "text/plain",
}


def upload_file_type(filename: str) -> str:
    """``pdf``/``docx``/``txt`` for a supported file name.

    Raises:
        FormValidationError: Any other extension.
    """
    extension = os.path.splitext(filename or "")[1].lower()
    file_type = UPLOAD_FILE_TYPES.get(extension)
    if file_type is None:
        raise FormValidationError({"file": "Supported formats: PDF, DOCX, TXT"})
    return file_type


@dataclass
class BatchUploadResult:
    uploaded: List[Document] = field(default_factory=list)
    failed: List[Tuple[str, str]] = field(default_factory=list)


class DocumentService(StateService):
    def __init__(self, state, onboarding: Optional[OnboardingService] = None):
        super().__init__(state)
        self.onboarding = onboarding or OnboardingService(state)

        self.create_mutation: Mutation[DocumentFormValues, Document] = Mutation(
            self._create,
            on_success=self._on_saved("Document Created", "Your document has been created successfully."),
            on_error=self._on_error("Error Creating Document"),
            name="create document",
        )
        self.update_mutation: Mutation[Dict[str, Any], Document] = Mutation(
            self._update,
            on_success=self._on_saved("Document Updated", "Your document has been updated successfully."),
            on_error=self._on_error("Error Updating Document"),
            name="update document",
        )
        self.delete_mutation: Mutation[int, Any] = Mutation(
            self._delete,
            on_success=self._on_saved("Document Deleted", "The document has been deleted successfully."),
            on_error=self._on_error("Error Deleting Document"),
            name="delete document",
        )
        self.approve_mutation: Mutation[int, Document] = Mutation(
            self._approve,
            on_success=self._on_saved(
                "Document Approved",
                "The document has been approved successfully and can now be used by the AI assistant.",
            ),
            on_error=self._on_error("Error Approving Document"),
            name="approve document",
        )
        self.upload_mutation: Mutation[Dict[str, Any], Document] = Mutation(
            self._upload,
            on_success=self._on_saved("Document Uploaded", "Your document has been uploaded successfully."),
            on_error=self._on_error("Upload Failed"),
            name="upload document",
        )

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------

    async def list_documents(self) -> List[Document]:
        """Approved public documents plus the user's own (all of them for admins)."""
        return await self._fetch_list(DOCUMENTS_KEY, Document)

    async def get_document(self, document_id: int) -> Document:
        """Raises NotFoundError for an unknown id."""
        return await self._fetch_one(
            (DOCUMENTS_KEY[0], document_id), Document, "Document", document_id
        )

    # ------------------------------------------------------------------
    # mutation callbacks
    # ------------------------------------------------------------------

    def _on_saved(self, title: str, description: str):
        def handler(_result: Any, _variables: Any) -> None:
            self.queries.invalidate_queries(DOCUMENTS_KEY)
            self.state.toast(title, description)

        return handler

    def _on_error(self, title: str):
        def handler(error: GrantiFuelError, _variables: Any) -> None:
            self.state.toast(title, user_message(error, title), variant="destructive")

        return handler

    async def _first_document(self, document: Document) -> None:
        await self.onboarding.complete_task(
            OnboardingTask.FIRST_DOCUMENT_UPLOADED.value, {"documentId": document.id}
        )

    # ------------------------------------------------------------------
    # writes
    # ------------------------------------------------------------------

    async def _create(self, form: DocumentFormValues) -> Document:
        payload = form.to_payload()
        payload["userId"] = self._current_user_id()
        data = await self.api.request_json("POST", DOCUMENTS_KEY[0], payload)
        document = Document.model_validate(data)
        await self._first_document(document)
        return document

    async def create_document(
        self, data: Union[DocumentFormValues, Dict[str, Any]]
    ) -> Optional[Document]:
        """Create a text-only document; ``None`` after notifying a failure."""
        try:
            form = validate_form(DocumentFormValues, data)
        except FormValidationError as e:
            self._on_error("Error Creating Document")(e, data)
            return None
        return await self.create_mutation.mutate(form)

    async def _update(self, variables: Dict[str, Any]) -> Document:
        form: DocumentFormValues = variables["form"]
        payload = form.to_payload()
        if not self._is_admin():
            # the server ignores it for non-admins as well
            payload.pop("isApproved", None)
        data = await self.api.request_json(
            "PUT", f"{DOCUMENTS_KEY[0]}/{variables['id']}", payload
        )
        self.queries.invalidate_queries((DOCUMENTS_KEY[0], variables["id"]))
        return Document.model_validate(data)

    async def update_document(
        self, document_id: int, data: Union[DocumentFormValues, Dict[str, Any]]
    ) -> Optional[Document]:
        try:
            form = validate_form(DocumentFormValues, data)
        except FormValidationError as e:
            self._on_error("Error Updating Document")(e, data)
            return None
        return await self.update_mutation.mutate({"id": document_id, "form": form})

    async def _delete(self, document_id: int) -> Any:
        result = await self.api.request_json("DELETE", f"{DOCUMENTS_KEY[0]}/{document_id}")
        self.queries.remove_queries((DOCUMENTS_KEY[0], document_id))
        return result or {}

    async def delete_document(self, document_id: int) -> bool:
        return await self.delete_mutation.mutate(document_id) is not None

    async def _approve(self, document_id: int) -> Document:
        data = await self.api.request_json("POST", f"{DOCUMENTS_KEY[0]}/{document_id}/approve")
        self.queries.invalidate_queries((DOCUMENTS_KEY[0], document_id))
        return Document.model_validate(data)

    async def approve_document(self, document_id: int) -> Optional[Document]:
        """Admin only; the server answers 403 for anyone else."""
        return await self.approve_mutation.mutate(document_id)

    # ------------------------------------------------------------------
    # uploads
    # ------------------------------------------------------------------

    def _is_admin(self) -> bool:
        user = self.state.current_user
        return user is not None and user.is_admin

    def _upload_fields(
        self,
        values: Dict[str, Any],
        auto_classify: bool,
        batch: bool,
    ) -> Dict[str, str]:
        if auto_classify:
            doc_type = values.get("type") or DocumentType.USER_UPLOAD
            # fallback fields in case server-side classification fails
            fields = {
                "title": values.get("title") or "",
                "content": values.get("content") or "",
                "type": getattr(doc_type, "value", doc_type),
                "tags": json.dumps(split_tags(values.get("tags"))),
                "isPublic": str(bool(values.get("is_public"))).lower(),
                "autoClassify": "true",
            }
        else:
            form = validate_form(DocumentFormValues, values)
            fields = {
                "title": form.title,
                "content": form.content,
                "type": form.type.value,
                "tags": json.dumps(form.tags),
                "isPublic": str(form.is_public).lower(),
                "autoClassify": "false",
            }
        if batch:
            fields["isBatchUpload"] = "true"
        return fields

    async def _upload(self, variables: Dict[str, Any]) -> Document:
        file_type = variables["file_type"]
        data = await self.api.upload(
            UPLOAD_URL,
            variables["filename"],
            variables["content"],
            variables["fields"],
            content_type=CONTENT_TYPES[file_type],
        )
        document = Document.model_validate(data)
        logger.info(f"Uploaded document {document.id} ({variables['filename']})")
        await self._first_document(document)
        return document

    def _prepare_upload(
        self,
        filename: str,
        content: bytes,
        values: Optional[Dict[str, Any]],
        auto_classify: bool,
        batch: bool = False,
    ) -> Dict[str, Any]:
        if auto_classify and not self._is_admin():
            logger.warning("Ignoring auto-classification request from a non-admin user")
            auto_classify = False
        return {
            "filename": filename,
            "content": content,
            "file_type": upload_file_type(filename),
            "fields": self._upload_fields(values or {}, auto_classify, batch),
        }

    async def upload_document(
        self,
        filename: str,
        content: bytes,
        values: Optional[Dict[str, Any]] = None,
        *,
        auto_classify: bool = False,
    ) -> Optional[Document]:
        """Upload a PDF, DOCX or TXT file; ``None`` after notifying a failure."""
        try:
            variables = self._prepare_upload(filename, content, values, auto_classify)
        except FormValidationError as e:
            self._on_error("Upload Failed")(e, None)
            return None
        return await self.upload_mutation.mutate(variables)

    async def upload_batch(
        self,
        files: List[Tuple[str, bytes]],
        values: Optional[Dict[str, Any]] = None,
    ) -> BatchUploadResult:
        """Admin batch upload with server-side classification, one file at a time."""
        result = BatchUploadResult()
        for filename, content in files:
            try:
                variables = self._prepare_upload(
                    filename, content, values, auto_classify=True, batch=True
                )
                result.uploaded.append(await self.upload_mutation.mutate_async(variables))
            except GrantiFuelError as e:
                logger.warning(f"Batch upload of {filename} failed: {e}")
                result.failed.append((filename, e.message))
        self.queries.invalidate_queries(DOCUMENTS_KEY)
        return result
