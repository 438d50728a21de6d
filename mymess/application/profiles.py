"""
Concurrent member profile lookups (names and plan descriptors)
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Optional, Tuple

from mymess.config import get_settings
from mymess.domain.mess import MemberProfile
from mymess.infrastructure.http.fetcher import FetchExhausted
from mymess.infrastructure.http.mess_api import MessApiClient

logger = logging.getLogger(__name__)


def fetch_member_profiles(
    client: MessApiClient,
    emails: Iterable[str],
    max_workers: Optional[int] = None,
) -> Tuple[Dict[str, MemberProfile], List[str]]:
    """
    Fetch profiles of several members at once

    A failed lookup does not fail the batch: the email is reported in the
    second element and gets no profile.

    Returns:
        (profiles by email, emails whose lookup failed) - all results are
        materialized before returning
    """
    unique = list(dict.fromkeys(emails))
    if not unique:
        return {}, []

    workers = max_workers or get_settings().PROFILE_FANOUT_WORKERS
    workers = max(1, min(workers, len(unique)))

    def _lookup(email: str) -> Optional[MemberProfile]:
        try:
            return client.get_user_profile(email)
        except FetchExhausted:
            logger.warning("Profile lookup failed for %s", email)
            return None

    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(_lookup, unique))

    profiles: Dict[str, MemberProfile] = {}
    failed: List[str] = []
    for email, profile in zip(unique, results):
        if profile is None:
            failed.append(email)
        else:
            profiles[email] = profile
    return profiles, failed
