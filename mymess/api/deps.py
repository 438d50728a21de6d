"""
FastAPI dependencies (backend client, reconciliation coordinator)
"""
from functools import lru_cache

from mymess.application.reconciliation import ReconciliationCoordinator
from mymess.infrastructure.http.mess_api import MessApiClient


@lru_cache
def get_mess_api() -> MessApiClient:
    """
    Shared backend client (one requests.Session for the process)

    Usage:
        @router.get("/...")
        def endpoint(client: MessApiClient = Depends(get_mess_api)):
            ...
    """
    return MessApiClient()


@lru_cache
def get_coordinator() -> ReconciliationCoordinator:
    """Process-wide coordinator, so a newer pass can supersede an older one"""
    return ReconciliationCoordinator()
