"""AI grant recommendations for an artist profile.

Results are kept in the query cache and in session storage, so navigating
away (or a failed refresh) does not throw away a generated list.
"""

import logging
from typing import List, Optional, Union

from grantifuel.errors import GrantiFuelError, user_message
from grantifuel.models.ai_helpers import (
    ArtistProfileSummary,
    GrantRecommendation,
    normalize_recommendations,
)
from grantifuel.models.core import Artist
from grantifuel.services.base import StateService
from grantifuel.storage import AI_RECOMMENDATIONS_KEY

logger = logging.getLogger(__name__)

RECOMMENDATIONS_KEY = ("/api/ai/grant-recommendations",)


class GrantRecommendationService(StateService):
    def __init__(self, state):
        super().__init__(state)
        self.is_submitting = False
        self.error: Optional[GrantiFuelError] = None

    def _store(self, recommendations: List[GrantRecommendation]) -> None:
        payload = [r.to_payload() for r in recommendations]
        self.queries.set_query_data(RECOMMENDATIONS_KEY, payload)
        if not self.state.session_storage.set_json(AI_RECOMMENDATIONS_KEY, payload):
            logger.error("Could not save recommendations to session storage")

    def stored_recommendations(self) -> List[GrantRecommendation]:
        """Recommendations left in session storage by an earlier request."""
        return normalize_recommendations(self.state.session_storage.get_json(AI_RECOMMENDATIONS_KEY))

    def get_cached(self) -> List[GrantRecommendation]:
        cached = self.queries.get_query_data(RECOMMENDATIONS_KEY)
        if cached:
            return normalize_recommendations(cached)
        return self.stored_recommendations()

    async def fetch_recommendations(
        self, profile: Union[ArtistProfileSummary, Artist]
    ) -> List[GrantRecommendation]:
        """Ask the matcher for grants fitting ``profile``.

        Raises:
            GrantiFuelError: The request failed and nothing was stored from
                a previous run.
        """
        if isinstance(profile, Artist):
            profile = ArtistProfileSummary.from_artist(profile)

        self.is_submitting = True
        self.error = None
        try:
            data = await self.api.request_json(
                "POST", RECOMMENDATIONS_KEY[0], profile.to_payload()
            )
        except GrantiFuelError as e:
            self.error = e
            prior = self.stored_recommendations()
            if prior:
                logger.warning(
                    f"Recommendation request failed, reusing {len(prior)} stored results: {e}"
                )
                self.queries.set_query_data(RECOMMENDATIONS_KEY, [r.to_payload() for r in prior])
                return prior
            self.state.toast(
                "Failed to get recommendations",
                user_message(e, "Please try again later."),
                variant="destructive",
            )
            raise
        finally:
            self.is_submitting = False

        recommendations = normalize_recommendations((data or {}).get("recommendations"))
        self._store(recommendations)
        self.state.toast(
            "Grant recommendations ready!",
            f"Found {len(recommendations)} grant opportunities matching your profile.",
        )
        return recommendations
