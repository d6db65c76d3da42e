from .profile import UserProfile, ProfileUpdateRequest, UserInfoResponse, ResolvedIdentity
from .credits import CreditsAccount, LedgerEntry, LedgerKind, CreditsResponse
from .bridge import StorageMessage, StorageResponse
from .health import HealthCheckResponse
