import logging
from dataclasses import dataclass
from functools import lru_cache

from medrecords.core.cache import get_local_cache
from medrecords.core.config import Settings, get_settings
from medrecords.stores.base import RowStore
from medrecords.stores.cache_store import CacheRowStore
from medrecords.stores.fallback_store import FallbackRowStore
from medrecords.stores.sql_store import SqlRowStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Stores:
    """
    records:  patients, observations, diagnoses (always remote)
    profiles: users, personal/medical data
              (remote with local fallback for unmigrated tables, or local only)
    sharing:  grants; one backend only, so a grant and its revocation
              always land in the same place
    """

    records: RowStore
    profiles: RowStore
    sharing: RowStore


def build_stores(settings: Settings, records: RowStore | None = None, cache=None) -> Stores:
    """
    Pick the profile storage strategy once, from settings.use_remote_profiles.
    """
    if records is None:
        from medrecords.core.database import SessionLocal

        records = SqlRowStore(SessionLocal)
    local = CacheRowStore(cache if cache is not None else get_local_cache())

    if settings.use_remote_profiles:
        logger.info("Profile data: remote store with local-cache fallback; grants: remote")
        return Stores(records=records, profiles=FallbackRowStore(records, local), sharing=records)

    logger.info("Profile data and grants: local cache only")
    return Stores(records=records, profiles=local, sharing=local)


@lru_cache()
def get_stores() -> Stores:
    return build_stores(get_settings())
