"""Artist profiles: listing, the current user's profile, create/update."""

import logging
from typing import Any, Dict, List, Optional, Union

from grantifuel.errors import ApiError, GrantiFuelError, user_message
from grantifuel.models.core import Artist, ArtistCreate, User
from grantifuel.models.onboarding import OnboardingTask
from grantifuel.mutation import Mutation
from grantifuel.services.base import StateService, validate_form
from grantifuel.services.onboarding import OnboardingService

logger = logging.getLogger(__name__)

ARTISTS_KEY = ("/api/artists",)
ARTIST_PROFILE_KEY = ("/api/artists/profile",)

# fields a user may edit on their own profile
PROFILE_FIELDS = (
    "name",
    "email",
    "phone",
    "bio",
    "genres",
    "career_stage",
    "primary_instrument",
    "location",
    "project_type",
)


class ArtistService(StateService):
    def __init__(self, state, onboarding: Optional[OnboardingService] = None):
        super().__init__(state)
        self.onboarding = onboarding or OnboardingService(state)
        self.save_mutation: Mutation[ArtistCreate, Artist] = Mutation(
            self._save,
            on_success=self._on_saved,
            on_error=self._on_save_error,
            name="save artist profile",
        )

    async def list_artists(self) -> List[Artist]:
        return await self._fetch_list(ARTISTS_KEY, Artist)

    async def get_artist(self, artist_id: int) -> Artist:
        return await self._fetch_one((ARTISTS_KEY[0], artist_id), Artist, "Artist", artist_id)

    async def primary_artist(self) -> Optional[Artist]:
        """The first artist profile visible to the user, used as the applicant."""
        artists = await self.list_artists()
        return artists[0] if artists else None

    async def get_profile(self, user: Optional[User] = None) -> Optional[Artist]:
        """The artist profile owned by ``user``; ``None`` if there is none yet."""
        user = user or self.state.current_user
        if user is None:
            return None

        async def query_fn(_key) -> Any:
            try:
                return await self.api.request_json("GET", f"/api/artists/by-user/{user.id}")
            except ApiError as e:
                if e.is_not_found:
                    return None
                raise

        try:
            data = await self.queries.fetch_query(ARTIST_PROFILE_KEY, query_fn, retry=False)
        except GrantiFuelError as e:
            logger.error(f"Error fetching artist profile: {e}")
            return None
        return Artist.model_validate(data) if data else None

    def cached_profile(self) -> Optional[Artist]:
        data = self.queries.get_query_data(ARTIST_PROFILE_KEY)
        return Artist.model_validate(data) if data else None

    # ------------------------------------------------------------------
    # save
    # ------------------------------------------------------------------

    async def _save(self, form: ArtistCreate) -> Artist:
        existing = self.cached_profile()
        if existing is None:
            existing = await self.get_profile()
        body = form.to_payload(include=set(PROFILE_FIELDS))

        if existing is not None:
            data = await self.api.request_json("PATCH", f"/api/artists/{existing.id}", body)
            artist = Artist.model_validate(data)
            artist_created = False
        else:
            body["userId"] = form.user_id or self._current_user_id()
            data = await self.api.request_json("POST", ARTISTS_KEY[0], body)
            artist = Artist.model_validate(data)
            artist_created = True

        if artist_created:
            await self.onboarding.complete_task(
                OnboardingTask.FIRST_ARTIST_CREATED.value, {"artistId": artist.id}
            )
        return artist

    def _on_saved(self, artist: Artist, _form: ArtistCreate) -> None:
        self.state.toast("Profile updated", "Your profile information has been updated successfully.")
        self.queries.invalidate_queries(ARTIST_PROFILE_KEY)
        self.queries.invalidate_queries(ARTISTS_KEY)

    def _on_save_error(self, error: GrantiFuelError, _form: ArtistCreate) -> None:
        self.state.toast("Update failed", user_message(error), variant="destructive")

    async def save_profile(self, data: Union[ArtistCreate, Dict[str, Any]]) -> Optional[Artist]:
        """Create or update the current user's profile; ``None`` after a failure."""
        try:
            form = validate_form(ArtistCreate, data)
        except GrantiFuelError as e:
            self._on_save_error(e, data)
            return None
        return await self.save_mutation.mutate(form)
