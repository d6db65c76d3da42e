import logging
import uuid
from typing import Mapping, Optional

from profileapi.config import Settings
from profileapi.core.exceptions import ConflictError, NotFoundError, ValidationError
from profileapi.repositories.base import StorageAdapter
from profileapi.schemas.profile import ResolvedIdentity, UserProfile
from profileapi.services.credits_service import CreditsService

logger = logging.getLogger(__name__)

# users.anon_id column width
MAX_ANON_ID_LENGTH = 64


class ProfileService:
    """Anonymous identity bootstrap and profile read/update"""

    def __init__(
        self,
        storage: StorageAdapter,
        credits_service: CreditsService,
        settings: Settings,
    ):
        self.storage = storage
        self.credits_service = credits_service
        self.settings = settings

    def resolve_or_create_identity(self, candidate: Optional[str] = None) -> ResolvedIdentity:
        """Return a bootstrapped anon id for the request.

        Without a candidate a fresh UUID4 is minted. The first time an id is
        seen, its profile, credits account and ``initial`` ledger entry are
        written in one transaction. A concurrent request that bootstraps the
        same id first makes this one roll back and reuse the existing records.
        """
        minted = not candidate
        anon_id = str(uuid.uuid4()) if minted else self._validate_anon_id(candidate)

        if self.storage.get_user(anon_id) is not None:
            return ResolvedIdentity(anon_id=anon_id, minted=minted, created=False)

        try:
            with self.storage.transaction():
                if self.storage.get_user(anon_id) is not None:
                    return ResolvedIdentity(anon_id=anon_id, minted=minted, created=False)
                self.storage.create_user(anon_id)
                self.credits_service.grant_initial(anon_id)
        except ConflictError:
            logger.info(f"Identity {anon_id} was bootstrapped concurrently; reusing it")
            return ResolvedIdentity(anon_id=anon_id, minted=minted, created=False)

        logger.info(
            f"Bootstrapped identity {anon_id} with {self.settings.INITIAL_CREDITS_AMOUNT} credits"
        )
        return ResolvedIdentity(anon_id=anon_id, minted=minted, created=True)

    def get_profile(self, anon_id: str) -> UserProfile:
        profile = self.storage.get_user(anon_id)
        if profile is None:
            raise NotFoundError(f"Profile not found: {anon_id}")
        return profile

    def update_profile(self, anon_id: str, changes: Mapping[str, Optional[str]]) -> UserProfile:
        """Partial update of displayName / avatarUrl; omitted fields stay unchanged."""
        if not changes:
            return self.get_profile(anon_id)

        profile = self.storage.update_user(anon_id, changes)
        logger.info(f"Updated profile {anon_id}: {sorted(changes)}")
        return profile

    @staticmethod
    def _validate_anon_id(candidate: str) -> str:
        anon_id = candidate.strip()
        if len(anon_id) > MAX_ANON_ID_LENGTH or not anon_id.isprintable() or " " in anon_id:
            raise ValidationError("Invalid anonymous id")
        return anon_id
