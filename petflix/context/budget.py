"""
Budget Tracker
==============

Keeps a persistent running total of generation spend and refuses work that
would push it past the cap.

Cost is charged in whole units: every started ``unit_seconds`` of video
costs ``unit_price_usd``, with a minimum of one unit per clip.
"""

import asyncio
import logging
import math
from pathlib import Path
from typing import Optional, Iterable, Union

from ..core.config import BudgetConfig
from ..core.models import BudgetLedger
from ..utils.storage import read_json, write_json

logger = logging.getLogger(__name__)


LEDGER_FILENAME = "api_cost.json"
LEDGER_KEY = "accumulatedCostUSD"


class BudgetTracker:
    """
    Spend cap enforcement.

    The accumulated total is loaded lazily from ``<data_dir>/api_cost.json``
    and kept in memory afterwards.
    """

    def __init__(
        self,
        data_dir: Union[str, Path],
        cap_usd: float = 50.0,
        unit_price_usd: float = 0.43,
        unit_seconds: float = 6.0,
    ):
        self.ledger_path = Path(data_dir).expanduser() / LEDGER_FILENAME
        self.cap_usd = cap_usd
        self.unit_price_usd = unit_price_usd
        self.unit_seconds = unit_seconds
        self._accumulated: Optional[float] = None
        self._lock = asyncio.Lock()

    @classmethod
    def from_config(cls, config: BudgetConfig) -> "BudgetTracker":
        return cls(
            data_dir=config.data_dir,
            cap_usd=config.cap_usd,
            unit_price_usd=config.unit_price_usd,
            unit_seconds=config.unit_seconds,
        )

    def cost_for(self, duration_seconds: float) -> float:
        """Cost of one clip of the given length."""
        units = max(1, math.ceil(duration_seconds / self.unit_seconds))
        return units * self.unit_price_usd

    def estimate_run(self, clip_durations: Iterable[float]) -> float:
        """Total cost of a run with the given clip lengths."""
        return sum(self.cost_for(d) for d in clip_durations)

    async def _load(self) -> float:
        if self._accumulated is None:
            try:
                data = await read_json(self.ledger_path, default={}) or {}
                self._accumulated = float(data.get(LEDGER_KEY, 0.0))
            except (OSError, ValueError, TypeError, AttributeError) as e:
                logger.error(f"Failed to read cost ledger, assuming no spend: {e}")
                self._accumulated = 0.0
        return self._accumulated

    async def accumulated(self) -> float:
        """Total recorded spend in USD."""
        return await self._load()

    async def can_spend(self, estimated_usd: float) -> bool:
        """
        Whether ``estimated_usd`` more fits under the cap.

        Args:
            estimated_usd: Cost of the work about to start

        Returns:
            True if accumulated + estimated <= cap
        """
        accumulated = await self._load()
        allowed = accumulated + estimated_usd <= self.cap_usd + 1e-9
        if not allowed:
            logger.warning(
                f"Budget denied: ${accumulated:.2f} spent + ${estimated_usd:.2f} "
                f"estimated exceeds cap ${self.cap_usd:.2f}"
            )
        return allowed

    async def record_spend(self, amount_usd: float) -> float:
        """
        Add spend to the ledger and persist it.

        Args:
            amount_usd: Non-negative amount

        Returns:
            New accumulated total

        Raises:
            ValueError: If the amount is negative
        """
        if amount_usd < 0:
            raise ValueError(f"Spend amount cannot be negative: {amount_usd}")

        async with self._lock:
            total = await self._load() + amount_usd
            self._accumulated = total
            try:
                await write_json(self.ledger_path, {LEDGER_KEY: round(total, 4)})
            except OSError as e:
                logger.error(f"Failed to persist cost ledger (in-memory total ${total:.2f}): {e}")

        logger.info(f"Recorded ${amount_usd:.2f}, total spend ${total:.2f} of ${self.cap_usd:.2f}")
        return total

    async def ledger(self) -> BudgetLedger:
        return BudgetLedger(accumulated_cost_usd=await self._load(), cap_usd=self.cap_usd)

    async def reset(self) -> None:
        """Zero the ledger."""
        async with self._lock:
            self._accumulated = 0.0
            await write_json(self.ledger_path, {LEDGER_KEY: 0.0})
        logger.info("Cost ledger reset")
