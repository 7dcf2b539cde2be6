"""
Integration Tests for the Application Creation Flows

Tests:
- NewApplicationFlow: grant resolution from every source, AI drafting,
  validation and creation
- EnhancedApplicationFlow: step policy progress and celebrations

Usage:
    cd backend && pytest tests/test_flows.py -v
"""

import asyncio
import pytest
import sys
import os
from typing import Any, Dict

# Add backend to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from fake_api import FakeStore, logged_in_state, make_state, toast_titles
from grantifuel.errors import GrantNotFoundError
from grantifuel.flows import STEPS, EnhancedApplicationFlow, NewApplicationFlow, export_text
from grantifuel.models import (
    ApplicationStatus,
    Artist,
    Grant,
    GrantRecommendation,
    normalize_recommendations,
)
from grantifuel.services import GrantService
from grantifuel.storage import AI_RECOMMENDATIONS_KEY, SELECTED_GRANT_KEY


# ============================================================================
# TEST DATA FACTORIES
# ============================================================================

def make_form_values(**overrides: str) -> Dict[str, str]:
    """Factory function to create a filled-in application form."""
    values = {
        "project_title": "Brass Futures",
        "project_description": "A suite for brass quintet and electronics.",
        "artist_goals": "Record and tour the suite.",
        "project_impact": "Workshops in six public schools.",
    }
    values.update(overrides)
    return values


def make_raw_recommendations():
    return [
        {
            "id": "doc-based-jazzfund.org-0",
            "name": "Jazz Futures Grant",
            "organization": "Jazz Fund",
            "amount": "$10,000",
            "deadline": "2030-03-01",
            "requirements": ["Demo recording", "Budget"],
            "url": "https://jazzfund.org",
        },
        {
            "id": "doc-based-arts.gov-1",
            "name": "Touring Support",
            "organization": "NEA",
            "url": "https://www.arts.gov/touring",
        },
    ]


async def _ready_state(store: FakeStore, with_artist: bool = True):
    state = await logged_in_state(store)
    if with_artist:
        store.add_artist(state.current_user.id, name="Miles Davis", genres=["Jazz"], bio="Trumpeter")
    return state


@pytest.fixture
def store():
    return FakeStore()


# ============================================================================
# NewApplicationFlow: grant resolution
# ============================================================================

class TestResolveGrant:

    def test_numeric_id(self, store):
        grant = store.add_grant(name="Music Creators Fund")

        async def scenario():
            state = await _ready_state(store)
            flow = NewApplicationFlow(state, str(grant["id"]))
            resolved = await flow.resolve_grant()
            return flow, resolved

        flow, resolved = asyncio.run(scenario())
        assert isinstance(resolved, Grant)
        assert resolved.name == "Music Creators Fund"
        assert flow.has_database_grant

    def test_unknown_numeric_id(self, store):
        async def scenario():
            state = await _ready_state(store)
            await NewApplicationFlow(state, "4040").resolve_grant()

        with pytest.raises(GrantNotFoundError):
            asyncio.run(scenario())

    def test_selected_grant_hand_off_is_consumed(self, store):
        async def scenario():
            state = await _ready_state(store)
            rec = normalize_recommendations(make_raw_recommendations())[1]
            target = GrantService(state).select_for_application(rec)
            flow = NewApplicationFlow(state)
            resolved = await flow.resolve_grant()
            return state, target, flow, resolved

        state, target, flow, resolved = asyncio.run(scenario())
        assert target == "/applications/new"
        assert isinstance(resolved, GrantRecommendation)
        assert resolved.name == "Touring Support"
        assert not flow.has_database_grant
        assert state.session_storage.get_item(SELECTED_GRANT_KEY) is None

    def test_persisted_grant_travels_by_id(self, store):
        async def scenario():
            state = await _ready_state(store)
            grant = Grant(id=7, name="Fund", organization="Org")
            return GrantService(state).select_for_application(grant)

        assert asyncio.run(scenario()) == "/applications/new?grantId=7"

    def test_doc_based_id(self, store):
        async def scenario():
            state = await _ready_state(store)
            state.session_storage.set_json(AI_RECOMMENDATIONS_KEY, make_raw_recommendations())
            return await NewApplicationFlow(state, "doc-based-arts.gov-1").resolve_grant()

        assert asyncio.run(scenario()).name == "Touring Support"

    def test_doc_based_without_match_raises(self, store):
        async def scenario():
            state = make_state(store)
            state.session_storage.set_json(AI_RECOMMENDATIONS_KEY, make_raw_recommendations())
            await NewApplicationFlow(state, "doc-based-nowhere.net-x").resolve_grant()

        with pytest.raises(GrantNotFoundError):
            asyncio.run(scenario())

    def test_doc_based_fallback_when_enabled(self, store):
        async def scenario():
            state = make_state(store, grant_fallback_to_first=True)
            state.session_storage.set_json(AI_RECOMMENDATIONS_KEY, make_raw_recommendations())
            return await NewApplicationFlow(state, "doc-based-nowhere.net-x").resolve_grant()

        assert asyncio.run(scenario()).name == "Jazz Futures Grant"

    def test_no_source_at_all(self, store):
        async def scenario():
            await NewApplicationFlow(make_state(store)).resolve_grant()

        with pytest.raises(GrantNotFoundError):
            asyncio.run(scenario())


# ============================================================================
# NewApplicationFlow: drafting and submission
# ============================================================================

class TestGenerateContent:

    def test_fills_returned_fields_only(self, store):
        grant = store.add_grant(name="Music Creators Fund")
        store.generated_content = {
            "projectTitle": "AI Title",
            "projectDescription": "AI description",
        }

        async def scenario():
            state = await _ready_state(store)
            flow = NewApplicationFlow(state, str(grant["id"]))
            await flow.resolve_grant()
            values = await flow.generate_content(make_form_values(artist_goals="My own goals"))
            return state, values

        state, values = asyncio.run(scenario())
        assert values["project_title"] == "AI Title"
        assert values["project_description"] == "AI description"
        assert values["artist_goals"] == "My own goals"
        body = store.last_body("POST", "/api/ai/generate-application-content")
        assert body["grantId"] == grant["id"]
        assert body["artistGenre"] == "Jazz"
        assert store.onboarding[-1]["data"] == {"feature": "application_content_generation"}
        assert "Content generated" in toast_titles(state)

    def test_recommendation_is_sent_without_grant_id(self, store):
        async def scenario():
            state = await _ready_state(store)
            state.session_storage.set_json(AI_RECOMMENDATIONS_KEY, make_raw_recommendations())
            flow = NewApplicationFlow(state, "doc-based-jazzfund.org-0")
            await flow.resolve_grant()
            await flow.generate_content()

        asyncio.run(scenario())
        body = store.last_body("POST", "/api/ai/generate-application-content")
        assert "grantId" not in body
        assert body["grantRequirements"] == "Demo recording, Budget"
        assert body["grantDeadline"] == "March 1, 2030"

    def test_missing_artist(self, store):
        grant = store.add_grant()

        async def scenario():
            state = await _ready_state(store, with_artist=False)
            flow = NewApplicationFlow(state, str(grant["id"]))
            await flow.resolve_grant()
            values = await flow.generate_content()
            return state, values

        state, values = asyncio.run(scenario())
        assert state.notifier.history[-1].title == "Missing information"
        assert values["project_title"] == ""
        assert store.count("POST", "/api/ai/generate-application-content") == 0

    def test_generation_failure_keeps_values(self, store):
        grant = store.add_grant()
        store.fail("/api/ai/generate-application-content")

        async def scenario():
            state = await _ready_state(store)
            flow = NewApplicationFlow(state, str(grant["id"]))
            await flow.resolve_grant()
            values = await flow.generate_content(make_form_values())
            return state, flow, values

        state, flow, values = asyncio.run(scenario())
        assert values == make_form_values()
        assert not flow.is_generating
        assert state.notifier.history[-1].title == "Error generating content"


class TestSubmit:

    def test_database_grant(self, store):
        grant = store.add_grant()

        async def scenario():
            state = await _ready_state(store)
            flow = NewApplicationFlow(state, str(grant["id"]))
            await flow.resolve_grant()
            application = await flow.submit(make_form_values())
            return state, application

        state, application = asyncio.run(scenario())
        assert application.grant_id == grant["id"]
        assert application.progress == 40
        assert application.status == ApplicationStatus.DRAFT
        assert application.artist_id is not None
        assert application.answers["projectTitle"] == "Brass Futures"
        assert store.count("POST", "/api/grants") == 0
        assert state.navigator.location == "/applications"
        assert "Application prepared" in toast_titles(state)
        assert [t["task"] for t in store.onboarding] == ["first_application_created"]

    def test_recommendation_is_persisted_first(self, store):
        async def scenario():
            state = await _ready_state(store)
            rec = normalize_recommendations(make_raw_recommendations())[0]
            GrantService(state).select_for_application(rec)
            flow = NewApplicationFlow(state)
            await flow.resolve_grant()
            application = await flow.submit(make_form_values())
            return flow, application

        flow, application = asyncio.run(scenario())
        assert store.count("POST", "/api/grants") == 1
        created = store.grants[application.grant_id]
        assert created["name"] == "Jazz Futures Grant"
        assert created["requirements"] == "Demo recording, Budget"
        assert created["website"] == "https://jazzfund.org"
        assert flow.has_database_grant

    def test_recommendation_defaults(self, store):
        async def scenario():
            state = await _ready_state(store)
            state.session_storage.set_json(SELECTED_GRANT_KEY, {"id": "rec-x", "url": "https://x.org"})
            flow = NewApplicationFlow(state)
            await flow.resolve_grant()
            return await flow.submit(make_form_values())

        application = asyncio.run(scenario())
        created = store.grants[application.grant_id]
        assert created["name"] == "AI Recommended Grant"
        assert created["organization"] == "Unknown Organization"
        assert created["amount"] == "$0"
        assert created["deadline"]

    def test_invalid_form_is_not_sent(self, store):
        grant = store.add_grant()

        async def scenario():
            state = await _ready_state(store)
            flow = NewApplicationFlow(state, str(grant["id"]))
            await flow.resolve_grant()
            result = await flow.submit(make_form_values(project_impact=" "))
            return state, result

        state, result = asyncio.run(scenario())
        assert result is None
        assert store.count("POST", "/api/applications") == 0
        toast = state.notifier.history[-1]
        assert toast.title == "Error creating application"
        assert "Project impact is required" in toast.description

    def test_export_text(self):
        text = export_text(make_form_values())
        assert text.startswith("# Brass Futures\n\n## Project Description\n")
        assert "## Project Impact\nWorkshops in six public schools.\n" in text


# ============================================================================
# EnhancedApplicationFlow
# ============================================================================

def make_artist() -> Artist:
    return Artist(id=3, user_id=1, name="Miles Davis", email="miles@example.com", genres=["Jazz"])


class TestEnhancedApplicationFlow:

    def test_anonymous_user_is_sent_to_login(self, store):
        state = make_state(store)
        flow = EnhancedApplicationFlow(state)
        assert flow.require_user() is False
        assert state.navigator.location == "/auth"
        assert state.notifier.history[-1].title == "Authentication Required"

    def test_full_run(self, store):
        async def scenario():
            state = await logged_in_state(store)
            flow = EnhancedApplicationFlow(state)
            assert flow.require_user()
            progress = []
            flow.handle_artist_created(make_artist())
            flow.handle_grant_selected(Grant(id=8, name="Fund", organization="Org"))
            flow.handle_application_created(21)
            progress.append(flow.application.progress)
            for handler in (
                flow.handle_ai_enhancement_complete,
                flow.handle_review_complete,
                flow.handle_export_complete,
            ):
                handler()
                progress.append(flow.application.progress)
            return flow, progress

        flow, progress = asyncio.run(scenario())
        assert progress == [30, 70, 90, 100]
        assert flow.application.grant_id == 8
        assert flow.application.status == ApplicationStatus.COMPLETED
        assert flow.is_finished
        assert flow.current_step is None
        assert [c.title for c in flow.celebrations] == [
            "Artist Profile Created!",
            "Grant Selected!",
            "Application Started!",
            "Application Completed!",
        ]

    def test_steps_are_completed_once(self, store):
        flow = EnhancedApplicationFlow(make_state(store))
        flow.complete_step(0)
        flow.complete_step(0)
        assert flow.completed_steps == [0]
        assert flow.current_step == STEPS[1]

    def test_recommendation_grant_has_no_database_id(self, store):
        flow = EnhancedApplicationFlow(make_state(store))
        flow.handle_grant_selected(normalize_recommendations(make_raw_recommendations())[0])
        application = flow.handle_application_created(4)
        assert application.grant_id == 0
        assert application.status == ApplicationStatus.DRAFT
