__version__ = "1.0.0"

from .fetcher import SnapshotFetcher
from .models import Account, AccountStatus, ModelQuota, Snapshot, build_snapshot
from .scheduler import RefreshScheduler
from .state import QuotaState

__all__ = [
    "Account",
    "AccountStatus",
    "ModelQuota",
    "QuotaState",
    "RefreshScheduler",
    "Snapshot",
    "SnapshotFetcher",
    "build_snapshot",
    "__version__",
]
