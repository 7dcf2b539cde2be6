"""
In-memory GrantiFuel REST API for tests.

A small FastAPI app that speaks the same JSON (camelCase) and cookie-session
protocol as the real server. Tests mount it with ``httpx.ASGITransport`` so
the client code under test runs unchanged.

Usage:
    store = FakeStore()
    state = make_state(store)            # AppState talking to create_fake_api(store)

    store.fail("/api/logout", 500)       # make an endpoint fail
    store.calls                          # [(method, path), ...]
"""

import json
import os
import secrets
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Tuple

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response

# Add backend to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from grantifuel.auth import AuthSession
from grantifuel.config import Settings
from grantifuel.state import AppState, create_app_state

SESSION_COOKIE = "connect.sid"
BASE_URL = "http://testserver"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class FakeStore:
    users: Dict[int, Dict[str, Any]] = field(default_factory=dict)
    passwords: Dict[str, str] = field(default_factory=dict)
    sessions: Dict[str, int] = field(default_factory=dict)
    artists: Dict[int, Dict[str, Any]] = field(default_factory=dict)
    grants: Dict[int, Dict[str, Any]] = field(default_factory=dict)
    applications: Dict[int, Dict[str, Any]] = field(default_factory=dict)
    activities: List[Dict[str, Any]] = field(default_factory=list)
    templates: Dict[int, Dict[str, Any]] = field(default_factory=dict)
    documents: Dict[int, Dict[str, Any]] = field(default_factory=dict)
    onboarding: List[Dict[str, Any]] = field(default_factory=list)
    recommendations: List[Dict[str, Any]] = field(default_factory=list)
    profile_requirements: List[Dict[str, Any]] = field(default_factory=list)
    generated_content: Dict[str, Any] = field(default_factory=dict)
    plans: List[Dict[str, Any]] = field(default_factory=list)
    subscriptions: Dict[int, Dict[str, Any]] = field(default_factory=dict)
    calls: List[Tuple[str, str]] = field(default_factory=list)
    bodies: Dict[Tuple[str, str], List[Any]] = field(default_factory=dict)
    failures: Dict[str, int] = field(default_factory=dict)
    hooks: Dict[str, Callable[[], None]] = field(default_factory=dict)
    _next_id: int = 1

    def next_id(self) -> int:
        value = self._next_id
        self._next_id += 1
        return value

    def fail(self, path: str, status: int = 500) -> None:
        self.failures[path] = status

    def on_request(self, path: str, hook: Callable[[], None]) -> None:
        """Run ``hook`` when a request for ``path`` reaches the server."""
        self.hooks[path] = hook

    def count(self, method: str, path: str) -> int:
        return sum(1 for call in self.calls if call == (method, path))

    def last_body(self, method: str, path: str) -> Any:
        bodies = self.bodies.get((method, path)) or [None]
        return bodies[-1]

    def add_user(self, username: str, password: str, **fields: Any) -> Dict[str, Any]:
        user_id = self.next_id()
        user = {
            "id": user_id,
            "username": username,
            "name": fields.get("name", username.title()),
            "email": fields.get("email", f"{username}@example.com"),
            "role": fields.get("role", "user"),
            "verified": False,
            "active": True,
            "createdAt": _now(),
        }
        self.users[user_id] = user
        self.passwords[username] = password
        return user

    def add_grant(self, **fields: Any) -> Dict[str, Any]:
        grant_id = self.next_id()
        grant = {
            "id": grant_id,
            "name": fields.get("name", "Music Creators Fund"),
            "organization": fields.get("organization", "Arts Council"),
            "amount": fields.get("amount", "$5,000"),
            "deadline": fields.get("deadline", "2030-06-30T00:00:00+00:00"),
            "description": fields.get("description", "Support for new work"),
            "requirements": fields.get("requirements", "Portfolio, Budget"),
            "website": fields.get("website"),
            "createdAt": _now(),
        }
        self.grants[grant_id] = grant
        return grant

    def add_artist(self, user_id: int, **fields: Any) -> Dict[str, Any]:
        artist_id = self.next_id()
        artist = {
            "id": artist_id,
            "userId": user_id,
            "name": fields.get("name", "Test Artist"),
            "email": fields.get("email", "artist@example.com"),
            "bio": fields.get("bio"),
            "genres": fields.get("genres", []),
            "careerStage": fields.get("careerStage"),
            "primaryInstrument": fields.get("primaryInstrument"),
            "location": fields.get("location"),
            "projectType": fields.get("projectType"),
            "createdAt": _now(),
        }
        self.artists[artist_id] = artist
        return artist

    def add_application(self, user_id: int, grant_id: int, **fields: Any) -> Dict[str, Any]:
        app_id = self.next_id()
        application = {
            "id": app_id,
            "userId": user_id,
            "grantId": grant_id,
            "artistId": fields.get("artistId"),
            "status": fields.get("status", "draft"),
            "progress": fields.get("progress", 0),
            "answers": fields.get("answers", {}),
            "submittedAt": None,
            "startedAt": _now(),
        }
        self.applications[app_id] = application
        return application


def create_fake_api(store: FakeStore) -> FastAPI:
    app = FastAPI()

    @app.exception_handler(HTTPException)
    async def http_error(_request: Request, exc: HTTPException):
        return JSONResponse({"message": exc.detail}, status_code=exc.status_code)

    @app.middleware("http")
    async def record_and_fail(request: Request, call_next):
        path = request.url.path
        store.calls.append((request.method, path))
        hook = store.hooks.get(path)
        if hook is not None:
            hook()
        status = store.failures.get(path)
        if status is not None:
            return JSONResponse({"message": f"Simulated failure for {path}"}, status_code=status)
        return await call_next(request)

    async def body_of(request: Request) -> Dict[str, Any]:
        body = await request.json() if await request.body() else {}
        store.bodies.setdefault((request.method, request.url.path), []).append(body)
        return body or {}

    def current_user(request: Request) -> Dict[str, Any]:
        token = request.cookies.get(SESSION_COOKIE)
        user_id = store.sessions.get(token) if token else None
        if user_id is None:
            raise HTTPException(401, "Not authenticated")
        return store.users[user_id]

    def start_session(user: Dict[str, Any]) -> JSONResponse:
        token = secrets.token_hex(8)
        store.sessions[token] = user["id"]
        response = JSONResponse(user, status_code=200)
        response.set_cookie(SESSION_COOKIE, token, httponly=True)
        return response

    def get_or_404(table: Dict[int, Dict[str, Any]], item_id: int, label: str) -> Dict[str, Any]:
        if item_id not in table:
            raise HTTPException(404, f"{label} not found")
        return table[item_id]

    # ------------------------------------------------------------------
    # auth
    # ------------------------------------------------------------------

    @app.post("/api/register")
    async def register(request: Request):
        body = await body_of(request)
        if body.get("username") in store.passwords:
            raise HTTPException(400, "Username already exists")
        if "confirmPassword" in body:
            raise HTTPException(400, "Unexpected field confirmPassword")
        user = store.add_user(
            body["username"],
            body["password"],
            name=body.get("name"),
            email=body.get("email"),
            role=body.get("role", "artist"),
        )
        return start_session(user)

    @app.post("/api/login")
    async def login(request: Request):
        body = await body_of(request)
        username = body.get("username")
        if store.passwords.get(username) != body.get("password"):
            raise HTTPException(401, "Invalid username or password")
        user = next(u for u in store.users.values() if u["username"] == username)
        return start_session(user)

    @app.post("/api/logout")
    async def logout(request: Request):
        store.sessions.pop(request.cookies.get(SESSION_COOKIE, ""), None)
        response = JSONResponse({"success": True})
        response.delete_cookie(SESSION_COOKIE)
        return response

    @app.get("/api/user")
    async def get_user(request: Request):
        return current_user(request)

    # ------------------------------------------------------------------
    # onboarding
    # ------------------------------------------------------------------

    @app.get("/api/onboarding")
    async def list_onboarding(request: Request):
        user = current_user(request)
        return [t for t in store.onboarding if t["userId"] == user["id"]]

    @app.post("/api/onboarding/complete")
    async def complete_onboarding(request: Request):
        user = current_user(request)
        body = await body_of(request)
        record = {
            "id": store.next_id(),
            "userId": user["id"],
            "task": body["task"],
            "data": body.get("data"),
            "completedAt": _now(),
        }
        store.onboarding.append(record)
        return record

    # ------------------------------------------------------------------
    # AI
    # ------------------------------------------------------------------

    @app.get("/api/ai/profile-requirements")
    async def profile_requirements(request: Request):
        current_user(request)
        return {"profileRequirements": store.profile_requirements}

    @app.post("/api/ai/grant-recommendations")
    async def grant_recommendations(request: Request):
        current_user(request)
        await body_of(request)
        return {"recommendations": store.recommendations}

    @app.post("/api/ai/generate-proposal")
    async def generate_proposal(request: Request):
        body = await body_of(request)
        return {"proposal": f"Proposal for {body.get('grantName') or 'a grant'}: {body['projectDescription']}"}

    @app.post("/api/ai/answer-question")
    async def answer_question(request: Request):
        body = await body_of(request)
        turns = len(body.get("conversationHistory") or [])
        return {"answer": f"Answer #{turns // 2 + 1} to: {body['question']}"}

    @app.post("/api/ai/generate-application-content")
    async def generate_content(request: Request):
        current_user(request)
        await body_of(request)
        return {"content": store.generated_content}

    # ------------------------------------------------------------------
    # grants
    # ------------------------------------------------------------------

    @app.get("/api/grants")
    async def list_grants():
        return list(store.grants.values())

    @app.post("/api/grants")
    async def create_grant(request: Request):
        body = await body_of(request)
        return store.add_grant(**body)

    @app.get("/api/grants/{grant_id}")
    async def get_grant(grant_id: int):
        return get_or_404(store.grants, grant_id, "Grant")

    # ------------------------------------------------------------------
    # artists
    # ------------------------------------------------------------------

    @app.get("/api/artists")
    async def list_artists(request: Request):
        user = current_user(request)
        return [a for a in store.artists.values() if a["userId"] == user["id"]]

    @app.post("/api/artists")
    async def create_artist(request: Request):
        user = current_user(request)
        body = await body_of(request)
        return store.add_artist(body.pop("userId", None) or user["id"], **body)

    @app.get("/api/artists/by-user/{user_id}")
    async def artist_by_user(user_id: int):
        for artist in store.artists.values():
            if artist["userId"] == user_id:
                return artist
        raise HTTPException(404, "Artist profile not found")

    @app.get("/api/artists/{artist_id}")
    async def get_artist(artist_id: int):
        return get_or_404(store.artists, artist_id, "Artist")

    @app.patch("/api/artists/{artist_id}")
    async def update_artist(artist_id: int, request: Request):
        artist = get_or_404(store.artists, artist_id, "Artist")
        artist.update(await body_of(request))
        return artist

    # ------------------------------------------------------------------
    # applications
    # ------------------------------------------------------------------

    @app.get("/api/applications")
    async def list_applications(request: Request):
        user = current_user(request)
        return [a for a in store.applications.values() if a["userId"] == user["id"]]

    @app.post("/api/applications")
    async def create_application(request: Request):
        user = current_user(request)
        body = await body_of(request)
        if body.get("grantId") not in store.grants:
            raise HTTPException(400, "Unknown grant")
        body.pop("userId", None)
        return store.add_application(user["id"], body.pop("grantId"), **body)

    @app.get("/api/applications/{app_id}")
    async def get_application(app_id: int):
        return get_or_404(store.applications, app_id, "Application")

    @app.patch("/api/applications/{app_id}")
    async def update_application(app_id: int, request: Request):
        application = get_or_404(store.applications, app_id, "Application")
        application.update(await body_of(request))
        return application

    @app.post("/api/applications/{app_id}/export")
    async def export_application(app_id: int, request: Request):
        get_or_404(store.applications, app_id, "Application")
        body = await body_of(request)
        fmt = body.get("format", "pdf")
        media = "application/pdf" if fmt == "pdf" else "application/octet-stream"
        return Response(content=f"{fmt}:{app_id}".encode(), media_type=media)

    # ------------------------------------------------------------------
    # documents
    # ------------------------------------------------------------------

    def save_document(user: Dict[str, Any], fields: Dict[str, Any]) -> Dict[str, Any]:
        doc_id = store.next_id()
        document = {
            "id": doc_id,
            "userId": user["id"],
            "title": fields.get("title"),
            "content": fields.get("content"),
            "type": fields.get("type"),
            "tags": fields.get("tags") or [],
            "isPublic": bool(fields.get("isPublic", False)),
            "isApproved": user["role"] == "admin",
            "fileName": fields.get("fileName"),
            "fileType": fields.get("fileType"),
            "fileUrl": fields.get("fileUrl"),
            "fileSize": fields.get("fileSize"),
            "aiClassified": bool(fields.get("aiClassified", False)),
            "createdAt": _now(),
            "updatedAt": _now(),
        }
        store.documents[doc_id] = document
        return document

    @app.get("/api/documents")
    async def list_documents(request: Request):
        user = current_user(request)
        if user["role"] == "admin":
            return list(store.documents.values())
        return [
            d for d in store.documents.values()
            if d["userId"] == user["id"] or (d["isPublic"] and d["isApproved"])
        ]

    @app.post("/api/documents/upload")
    async def upload_document(request: Request):
        user = current_user(request)
        form = await request.form()
        upload = form.get("file")
        if upload is None:
            raise HTTPException(400, "No file uploaded")
        content = await upload.read()
        fields = {key: value for key, value in form.items() if key != "file"}
        store.bodies.setdefault(("POST", "/api/documents/upload"), []).append(
            {**fields, "fileName": upload.filename, "fileContentType": upload.content_type}
        )
        auto_classify = fields.get("autoClassify") == "true"
        if not auto_classify and not all(fields.get(k) for k in ("title", "content", "type")):
            raise HTTPException(400, "Missing required fields: title, content, and type are required")
        return JSONResponse(
            save_document(user, {
                "title": fields.get("title") or upload.filename,
                "content": fields.get("content") or content.decode("utf-8", "replace"),
                "type": fields.get("type") or "user_upload",
                "tags": json.loads(fields.get("tags") or "[]"),
                "isPublic": fields.get("isPublic") == "true",
                "fileName": upload.filename,
                "fileType": os.path.splitext(upload.filename)[1].lstrip("."),
                "fileUrl": f"/uploads/{upload.filename}",
                "fileSize": len(content),
                "aiClassified": auto_classify,
            }),
            status_code=201,
        )

    @app.post("/api/documents")
    async def create_document(request: Request):
        user = current_user(request)
        body = await body_of(request)
        return JSONResponse(save_document(user, body), status_code=201)

    @app.get("/api/documents/{doc_id}")
    async def get_document(doc_id: int):
        return get_or_404(store.documents, doc_id, "Document")

    @app.put("/api/documents/{doc_id}")
    async def update_document(doc_id: int, request: Request):
        user = current_user(request)
        document = get_or_404(store.documents, doc_id, "Document")
        if document["userId"] != user["id"] and user["role"] != "admin":
            raise HTTPException(403, "You don't have permission to update this document")
        body = await body_of(request)
        if user["role"] != "admin":
            body.pop("isApproved", None)
        document.update(body, updatedAt=_now())
        return document

    @app.delete("/api/documents/{doc_id}")
    async def delete_document(doc_id: int, request: Request):
        user = current_user(request)
        document = get_or_404(store.documents, doc_id, "Document")
        if document["userId"] != user["id"] and user["role"] != "admin":
            raise HTTPException(403, "You don't have permission to delete this document")
        del store.documents[doc_id]
        return {"success": True}

    @app.post("/api/documents/{doc_id}/approve")
    async def approve_document(doc_id: int, request: Request):
        user = current_user(request)
        if user["role"] != "admin":
            raise HTTPException(403, "Only administrators can approve documents")
        document = get_or_404(store.documents, doc_id, "Document")
        document.update(isApproved=True, updatedAt=_now())
        return document

    # ------------------------------------------------------------------
    # activities and templates
    # ------------------------------------------------------------------

    @app.get("/api/activities")
    async def list_activities():
        return store.activities

    @app.post("/api/activities")
    async def create_activity(request: Request):
        body = await body_of(request)
        record = {"id": store.next_id(), "createdAt": _now(), **body}
        store.activities.append(record)
        return record

    @app.get("/api/templates")
    async def list_templates():
        return list(store.templates.values())

    @app.post("/api/templates")
    async def create_template(request: Request):
        body = await body_of(request)
        template_id = store.next_id()
        store.templates[template_id] = {"id": template_id, "createdAt": _now(), **body}
        return store.templates[template_id]

    @app.get("/api/templates/{template_id}")
    async def get_template(template_id: int):
        return get_or_404(store.templates, template_id, "Template")

    @app.put("/api/templates/{template_id}")
    async def update_template(template_id: int, request: Request):
        template = get_or_404(store.templates, template_id, "Template")
        template.update(await body_of(request))
        return template

    # ------------------------------------------------------------------
    # subscriptions
    # ------------------------------------------------------------------

    @app.get("/api/subscription-plans")
    async def list_plans():
        return store.plans

    @app.get("/api/user/subscription")
    async def user_subscription(request: Request):
        user = current_user(request)
        return store.subscriptions.get(user["id"])

    @app.post("/api/create-customer")
    async def create_customer(request: Request):
        user = current_user(request)
        user["stripeCustomerId"] = f"cus_{user['id']}"
        return {"customerId": user["stripeCustomerId"]}

    @app.post("/api/create-subscription")
    async def create_subscription(request: Request):
        current_user(request)
        body = await body_of(request)
        plan = next((p for p in store.plans if p["id"] == body.get("planId")), None)
        if plan is None:
            raise HTTPException(404, "Plan not found")
        return {
            "clientSecret": f"pi_{plan['id']}_secret",
            "planName": plan["name"],
            "planPrice": plan["price"],
        }

    @app.post("/api/record-subscription-payment")
    async def record_payment(request: Request):
        user = current_user(request)
        body = await body_of(request)
        subscription = {
            "id": store.next_id(),
            "userId": user["id"],
            "planId": body["planId"],
            "status": "active",
        }
        store.subscriptions[user["id"]] = subscription
        return subscription

    @app.post("/api/cancel-subscription")
    async def cancel_subscription(request: Request):
        user = current_user(request)
        subscription = store.subscriptions.get(user["id"])
        if subscription is None:
            raise HTTPException(404, "No active subscription")
        subscription.update({"status": "canceled", "canceledAt": _now()})
        return subscription

    # ------------------------------------------------------------------
    # admin
    # ------------------------------------------------------------------

    @app.get("/api/users")
    async def list_users(request: Request):
        if current_user(request)["role"] != "admin":
            raise HTTPException(403, "Admin access required")
        return list(store.users.values())

    @app.patch("/api/users/{user_id}")
    async def update_user(user_id: int, request: Request):
        if current_user(request)["role"] != "admin":
            raise HTTPException(403, "Admin access required")
        user = get_or_404(store.users, user_id, "User")
        user.update(await body_of(request))
        return user

    return app


# ============================================================================
# State builders
# ============================================================================


def make_settings(**overrides: Any) -> Settings:
    """Settings for tests: no retries, no delays, no files on disk."""
    values: Dict[str, Any] = {
        "api_url": BASE_URL,
        "local_storage_path": None,
        "query_retries": 0,
        "retry_base_delay": 0.0,
        "retry_max_delay": 0.0,
        "grant_fallback_to_first": False,
    }
    values.update(overrides)
    return Settings(**values)


def make_state(store: FakeStore, **overrides: Any) -> AppState:
    """A fresh AppState wired to an in-memory API backed by ``store``."""
    transport = httpx.ASGITransport(app=create_fake_api(store))
    return create_app_state(make_settings(**overrides), transport=transport)


def toast_titles(state: AppState) -> List[str]:
    return [t.title for t in state.notifier.history]


async def logged_in_state(store: FakeStore, username: str = "miles", **user_fields: Any) -> AppState:
    """AppState with ``username`` registered in ``store`` and logged in."""
    password = "kindofblue"
    if username not in store.passwords:
        store.add_user(username, password, **user_fields)
    state = make_state(store)
    user = await AuthSession(state).login(username, store.passwords[username])
    if user is None:
        raise AssertionError(f"Login as {username} failed")
    return state
