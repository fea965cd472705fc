# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Usage gate: the per-user credit ledger.

A request is admitted by reserving its charge with a single conditional
UPDATE under a per-user lock. The reservation is kept when the provider
delivers and refunded when it does not, so concurrent requests for one user
never spend the same credit twice or push a balance below zero.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import AsyncIterator, Dict, Optional

from sqlalchemy import or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .db_models import Profile
from .errors import AccountUnavailable, InsufficientCredits

lib_logger = logging.getLogger("tutor_engine")

ADMIN_ROLE = "admin"
FREE_USAGE_PERIOD = timedelta(days=7)


class DenialReason(str, Enum):
    INSUFFICIENT_CREDITS = "insufficient_credits"
    ACCOUNT_UNAVAILABLE = "account_unavailable"


@dataclass(frozen=True)
class Admission:
    allowed: bool
    reason: Optional[DenialReason] = None

    @classmethod
    def allow(cls) -> "Admission":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: DenialReason) -> "Admission":
        return cls(allowed=False, reason=reason)


class ChargeKind(str, Enum):
    CREDIT = "credit"
    FREE_USE = "free_use"
    NONE = "none"  # admins are never metered


@dataclass(frozen=True)
class Reservation:
    """A charge taken at admission, kept on delivery or refunded on failure."""

    user_id: str
    charge: ChargeKind
    balance: int


@dataclass(frozen=True)
class UsageAccount:
    user_id: str
    credit_balance: int
    role: str
    free_usage_count: int = 0
    free_usage_reset_at: Optional[datetime] = None

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


class UsageGate:
    """
    Admits and meters requests before any provider call is made.

    Args:
        session_maker: Async session factory for the ledger database.
        free_weekly_requests: Requests per rolling week served without
            spending credits. 0 disables the free allowance.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        *,
        free_weekly_requests: int = 0,
    ):
        self._session_maker = session_maker
        self._free_weekly_requests = max(0, free_weekly_requests)
        # Serialises balance changes per user within this process; the
        # conditional UPDATE covers other processes sharing the database.
        # Entries live only while some task holds or waits for them.
        self._user_locks: Dict[str, asyncio.Lock] = {}
        self._lock_holders: Dict[str, int] = {}

    @asynccontextmanager
    async def _user_lock(self, user_id: str) -> AsyncIterator[None]:
        lock = self._user_locks.setdefault(user_id, asyncio.Lock())
        self._lock_holders[user_id] = self._lock_holders.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_holders[user_id] -= 1
            if not self._lock_holders[user_id]:
                del self._lock_holders[user_id]
                del self._user_locks[user_id]

    async def get_account(self, user_id: str) -> UsageAccount:
        try:
            async with self._session_maker() as session:
                profile = await session.get(Profile, user_id)
        except SQLAlchemyError as e:
            lib_logger.error(f"Ledger read failed for user {user_id}: {e}")
            raise AccountUnavailable(f"Account {user_id} could not be loaded") from e
        if profile is None:
            raise AccountUnavailable(f"Account {user_id} does not exist")
        return UsageAccount(
            user_id=profile.id,
            credit_balance=profile.credits,
            role=profile.role,
            free_usage_count=profile.free_usage_count,
            free_usage_reset_at=profile.free_usage_reset_at,
        )

    async def ensure_account(
        self, user_id: str, *, credits: int = 0, role: str = "user"
    ) -> UsageAccount:
        """Creates the profile row if it is missing; existing rows are untouched."""
        async with self._session_maker() as session:
            if await session.get(Profile, user_id) is None:
                session.add(Profile(id=user_id, credits=max(0, credits), role=role))
                await session.commit()
                lib_logger.info(f"Created ledger account for user {user_id}")
        return await self.get_account(user_id)

    def _free_allowance_left(self, account: UsageAccount, now: datetime) -> bool:
        if not self._free_weekly_requests:
            return False
        reset_at = account.free_usage_reset_at
        if reset_at is None or now - reset_at > FREE_USAGE_PERIOD:
            return True
        return account.free_usage_count < self._free_weekly_requests

    async def check_admission(self, user_id: str) -> Admission:
        """Decides whether a request may reach a provider. Never raises."""
        try:
            account = await self.get_account(user_id)
        except AccountUnavailable:
            return Admission.deny(DenialReason.ACCOUNT_UNAVAILABLE)

        if account.is_admin:
            return Admission.allow()
        if self._free_allowance_left(account, datetime.utcnow()):
            return Admission.allow()
        if account.credit_balance > 0:
            return Admission.allow()

        lib_logger.info(f"Denied request for user {user_id}: no credits left")
        return Admission.deny(DenialReason.INSUFFICIENT_CREDITS)

    async def _consume_free_use(self, session: AsyncSession, user_id: str) -> Optional[int]:
        now = datetime.utcnow()
        await session.execute(
            update(Profile)
            .where(
                Profile.id == user_id,
                or_(
                    Profile.free_usage_reset_at.is_(None),
                    Profile.free_usage_reset_at < now - FREE_USAGE_PERIOD,
                ),
            )
            .values(free_usage_count=0, free_usage_reset_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(
            update(Profile)
            .where(
                Profile.id == user_id,
                Profile.role != ADMIN_ROLE,
                Profile.free_usage_count < self._free_weekly_requests,
            )
            .values(free_usage_count=Profile.free_usage_count + 1)
            .returning(Profile.credits)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none()

    async def reserve(self, user_id: str) -> Reservation:
        """
        Admits a request by taking its charge up front.

        The charge is held while the provider is called; settle by keeping
        the reservation or handing it to refund().

        Raises:
            InsufficientCredits: Nothing left to spend.
            AccountUnavailable: The account is missing or the ledger failed.
        """
        async with self._user_lock(user_id):
            return await self._charge(user_id)

    async def deduct(self, user_id: str) -> int:
        """
        Charges one request to the user.

        Returns:
            The credit balance after the charge. Admins and requests covered
            by the free allowance leave the credit balance unchanged.

        Raises:
            InsufficientCredits: The balance was already zero, e.g. a
                concurrent request spent the last credit first.
            AccountUnavailable: The account is missing or the ledger failed.
        """
        return (await self.reserve(user_id)).balance

    async def _charge(self, user_id: str) -> Reservation:
        charge = ChargeKind.CREDIT
        try:
            async with self._session_maker() as session:
                new_balance = None
                if self._free_weekly_requests:
                    new_balance = await self._consume_free_use(session, user_id)
                    if new_balance is not None:
                        charge = ChargeKind.FREE_USE
                if new_balance is None:
                    result = await session.execute(
                        update(Profile)
                        .where(
                            Profile.id == user_id,
                            Profile.role != ADMIN_ROLE,
                            Profile.credits > 0,
                        )
                        .values(credits=Profile.credits - 1)
                        .returning(Profile.credits)
                        .execution_options(synchronize_session=False)
                    )
                    new_balance = result.scalar_one_or_none()
                await session.commit()
        except SQLAlchemyError as e:
            lib_logger.error(f"Ledger write failed for user {user_id}: {e}")
            raise AccountUnavailable(f"Account {user_id} could not be charged") from e

        if new_balance is not None:
            lib_logger.debug(f"Charged user {user_id} ({charge.value}), balance now {new_balance}")
            return Reservation(user_id=user_id, charge=charge, balance=new_balance)

        account = await self.get_account(user_id)
        if account.is_admin:
            return Reservation(
                user_id=user_id, charge=ChargeKind.NONE, balance=account.credit_balance
            )
        lib_logger.info(
            f"Denied request for user {user_id}: balance already {account.credit_balance}"
        )
        raise InsufficientCredits(f"User {user_id} has no credits left")

    async def refund(self, reservation: Reservation) -> None:
        """Gives back a reserved charge for a request that delivered nothing."""
        user_id = reservation.user_id
        if reservation.charge == ChargeKind.NONE:
            return
        if reservation.charge == ChargeKind.FREE_USE:
            stmt = (
                update(Profile)
                .where(Profile.id == user_id, Profile.free_usage_count > 0)
                .values(free_usage_count=Profile.free_usage_count - 1)
            )
        else:
            stmt = (
                update(Profile)
                .where(Profile.id == user_id)
                .values(credits=Profile.credits + 1)
            )

        try:
            async with self._user_lock(user_id), self._session_maker() as session:
                await session.execute(stmt.execution_options(synchronize_session=False))
                await session.commit()
        except SQLAlchemyError as e:
            lib_logger.error(f"Refund failed for user {user_id}: {e}")
            raise AccountUnavailable(f"Account {user_id} could not be refunded") from e
        lib_logger.debug(f"Refunded {reservation.charge.value} to user {user_id}")

    async def add_credits(self, user_id: str, amount: int) -> int:
        """Atomically tops up a balance. Returns the new balance."""
        if amount <= 0:
            raise ValueError("Credit amount must be positive")
        try:
            async with self._user_lock(user_id), self._session_maker() as session:
                result = await session.execute(
                    update(Profile)
                    .where(Profile.id == user_id)
                    .values(credits=Profile.credits + amount)
                    .returning(Profile.credits)
                    .execution_options(synchronize_session=False)
                )
                new_balance = result.scalar_one_or_none()
                await session.commit()
        except SQLAlchemyError as e:
            raise AccountUnavailable(f"Account {user_id} could not be credited") from e
        if new_balance is None:
            raise AccountUnavailable(f"Account {user_id} does not exist")
        lib_logger.info(f"Added {amount} credit(s) to user {user_id}, balance now {new_balance}")
        return new_balance
