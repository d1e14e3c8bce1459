"""Access Grant check and the credit-gated unlock flow."""
from __future__ import annotations

import asyncio
import logging

from recruit_chat.application.dto.access import AccessDecision, UnlockResult
from recruit_chat.application.exceptions import (
    InsufficientBalanceError,
    UnlockInconsistentError,
)
from recruit_chat.application.ports.chat_api import ChatApi
from recruit_chat.client.events import Signal
from recruit_chat.domain.value_objects.enums import AccessReason

logger = logging.getLogger(__name__)


class AccessController:
    """Client view of who may be messaged and what unlocking costs.

    The server is the source of truth. Decisions are kept only for the view
    that asked for them (``forget``/``clear`` when it closes), and concurrent
    unlocks of one target share a single request so the ledger is debited
    once.
    """

    def __init__(
        self,
        api: ChatApi,
        *,
        unlock_cost: int = 50,
        balance: int | None = None,
    ) -> None:
        self._api = api
        self.unlock_cost = unlock_cost
        self._balance = balance
        self._decisions: dict[int, AccessDecision] = {}
        self._unlocks: dict[int, asyncio.Task[UnlockResult]] = {}
        # Targets whose price is already taken off the shown balance but not
        # yet confirmed by the server.
        self._debited: set[int] = set()
        self.on_balance_change: Signal[int] = Signal("access.on_balance_change")

    @property
    def balance(self) -> int | None:
        return self._balance

    def can_message(self, target_id: int) -> bool:
        decision = self._decisions.get(target_id)
        return decision is not None and decision.can_message

    def decision_for(self, target_id: int) -> AccessDecision | None:
        return self._decisions.get(target_id)

    def is_unlocking(self, target_id: int) -> bool:
        return target_id in self._unlocks

    def forget(self, target_id: int) -> None:
        self._decisions.pop(target_id, None)

    def clear(self) -> None:
        self._decisions.clear()

    async def refresh_balance(self) -> int:
        response = await self._api.get_balance()
        await self._set_balance(response.balance)
        return response.balance

    async def check_access(self, target_id: int) -> AccessDecision:
        response = await self._api.check_access(target_id)
        decision = AccessDecision(can_message=response.can_message, reason=response.reason)
        self._decisions[target_id] = decision
        return decision

    async def unlock(self, target_id: int) -> UnlockResult:
        """Spend the unlock price on ``target_id``.

        Raises ``InsufficientBalanceError`` (route to top-up, do not retry) or
        ``UnlockInconsistentError`` (report, the whole unlock may be retried).
        A repeat unlock of an unlocked target succeeds without a debit.
        """
        inflight = self._unlocks.get(target_id)
        if inflight is not None:
            logger.debug("Joining in-flight unlock of %s", target_id)
            return await asyncio.shield(inflight)

        if (
            not self._known_unlocked(target_id)
            and self._balance is not None
            and self._balance < self.unlock_cost
        ):
            raise InsufficientBalanceError(balance=self._balance, cost=self.unlock_cost)

        task = asyncio.create_task(self._unlock(target_id), name=f"unlock-{target_id}")
        self._unlocks[target_id] = task
        return await asyncio.shield(task)

    async def _unlock(self, target_id: int) -> UnlockResult:
        previous_decision = self._decisions.get(target_id)
        already_known = self._known_unlocked(target_id)

        # Optimistic: show the target as messageable and the price as spent.
        self._decisions[target_id] = AccessDecision(
            can_message=True, reason=AccessReason.PROFILE_UNLOCKED,
        )
        if self._balance is not None and not already_known:
            self._debited.add(target_id)
            await self._set_balance(self._balance - self.unlock_cost)

        try:
            response = await self._api.unlock(target_id)
            if not response.unlocked:
                raise UnlockInconsistentError(
                    f"Server did not confirm the unlock of {target_id}"
                )
        except Exception as exc:
            await self._rollback(target_id, previous_decision)
            logger.warning("Unlock of %s failed: %s", target_id, exc)
            raise
        finally:
            self._unlocks.pop(target_id, None)

        self._debited.discard(target_id)
        # Unlocks still in flight keep their optimistic debit on top of the
        # balance the server reports.
        await self._set_balance(
            response.remaining_balance - self.unlock_cost * len(self._debited)
        )
        logger.info(
            "Unlocked %s (already=%s, balance=%d)",
            target_id, response.already_unlocked, response.remaining_balance,
        )
        return UnlockResult(
            unlocked=True,
            already_unlocked=response.already_unlocked,
            cost=response.cost,
            remaining_balance=response.remaining_balance,
        )

    def _known_unlocked(self, target_id: int) -> bool:
        decision = self._decisions.get(target_id)
        return decision is not None and decision.reason == AccessReason.PROFILE_UNLOCKED

    async def _rollback(
        self,
        target_id: int,
        previous_decision: AccessDecision | None,
    ) -> None:
        if previous_decision is None:
            self._decisions.pop(target_id, None)
        else:
            self._decisions[target_id] = previous_decision
        if target_id in self._debited:
            self._debited.discard(target_id)
            if self._balance is not None:
                await self._set_balance(self._balance + self.unlock_cost)

    async def _set_balance(self, balance: int) -> None:
        if balance == self._balance:
            return
        self._balance = balance
        await self.on_balance_change.emit(balance)
