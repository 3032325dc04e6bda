"""
Wiring of the ledger services around one record store.
Built once in the app lifespan; tests build it around an in-memory store.
"""
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from app.services.cache.service import CacheRegistry
from app.services.identity.service import DiscordRoleResolver, SessionTokens
from app.services.notifications.service import NotificationDispatcher
from app.services.payments.service import PaymentService
from app.services.records.service import RecordStoreAdapter
from app.services.sellers.service import SellerInfoService
from app.services.status.service import StatusTransitionService
from app.storage.base import RecordStore
from app.utils.timestamps import utcnow

logger = logging.getLogger(__name__)


@dataclass
class Ledger:
    store: RecordStore
    adapter: RecordStoreAdapter
    caches: CacheRegistry
    dispatcher: NotificationDispatcher
    transitions: StatusTransitionService
    sellers: SellerInfoService
    payments: PaymentService
    sessions: SessionTokens
    roles: DiscordRoleResolver

    async def aclose(self) -> None:
        await self.dispatcher.drain()
        await self.dispatcher.aclose()
        await self.roles.aclose()
        await self.store.aclose()
        logger.info("ledger_closed")


def build_ledger(
    store: RecordStore,
    dispatcher: NotificationDispatcher | None = None,
    sessions: SessionTokens | None = None,
    roles: DiscordRoleResolver | None = None,
    clock: Callable[[], datetime] = utcnow,
    monotonic: Callable[[], float] = time.monotonic,
) -> Ledger:
    adapter = RecordStoreAdapter(store, clock=clock)
    caches = CacheRegistry(adapter, clock=monotonic)
    dispatcher = dispatcher or NotificationDispatcher()
    transitions = StatusTransitionService(adapter, caches, dispatcher)
    sellers = SellerInfoService(adapter)
    payments = PaymentService(adapter, caches, dispatcher, transitions, sellers, clock=clock)
    return Ledger(
        store=store,
        adapter=adapter,
        caches=caches,
        dispatcher=dispatcher,
        transitions=transitions,
        sellers=sellers,
        payments=payments,
        sessions=sessions or SessionTokens(),
        roles=roles or DiscordRoleResolver(),
    )
