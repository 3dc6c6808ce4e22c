"""
Orchestrator - Core.

============================================================
RESPONSIBILITY
============================================================
Runs one DCA cycle against an exchange gateway.

Stages, in order:
    1. ConnectivityCheck    - abort the cycle if unreachable
    2. MomentumCollection   - RSI per symbol, concurrent
    3. AccountSnapshot      - log USDT balance, non-fatal
    4. Planning             - momentum-weighted allocation
    5. PerSymbolExecution   - price + rule, size, submit
    6. CycleReport          - summary and per-symbol lines

A failure in one symbol never affects another. Only a failed
connectivity check escapes the cycle.

============================================================
ARCHITECTURAL POSITION
============================================================
- No state survives between cycles
- No retries; a failed symbol waits for the next cycle
- All exchange access goes through MarketDataGateway

============================================================
"""

import asyncio
import json
import logging
import sys
import uuid
from decimal import Decimal
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from core.clock import ClockProtocol, SystemClock
from core.exceptions import (
    ConnectivityError,
    DataInsufficientError,
    MarketDataError,
    SizingUnfillableError,
    SubmissionError,
    SymbolError,
)
from dca.config import DCAConfig
from dca.indicators import compute_rsi
from dca.models import (
    AllocationEntry,
    AllocationPlan,
    CycleOutcome,
    OutcomeReason,
    OutcomeStatus,
    SymbolMomentum,
    SymbolOutcome,
    Unfillable,
)
from dca.planner import AllocationPlanner
from dca.sizing import OrderSizer
from exchange.base import GatewayResult, MarketDataGateway
from exchange.types import TradingRule, closing_prices, find_balance


logger = logging.getLogger(__name__)


# ============================================================
# LOGGING SETUP
# ============================================================

def setup_logging(
    level: str = "INFO",
    log_format: str = "text",
    log_file: Optional[str] = None,
) -> logging.Logger:
    """
    Set up logging to stdout and, optionally, a file.

    Args:
        level: Log level
        log_format: Output format (json or text)
        log_file: Also write to this file (parent dirs are created)

    Returns:
        Configured logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps({
                "timestamp": "%(asctime)s",
                "level": "%(levelname)s",
                "logger": "%(name)s",
                "message": "%(message)s",
            })
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handlers: List[logging.Handler] = [handler]

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = handlers

    return logging.getLogger("orchestrator")


# ============================================================
# DCA ORCHESTRATOR
# ============================================================

class DCAOrchestrator:
    """
    Runs DCA cycles.

    The orchestrator holds configuration and collaborators only.
    Every value a cycle computes lives in that cycle's
    CycleOutcome.
    """

    def __init__(
        self,
        gateway: MarketDataGateway,
        config: DCAConfig,
        planner: Optional[AllocationPlanner] = None,
        sizer: Optional[OrderSizer] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            gateway: Exchange gateway, already connected
            config: Agent configuration
            planner: Allocation planner
            sizer: Order sizer
            clock: Clock for cycle timestamps
        """
        self._gateway = gateway
        self._config = config
        self._planner = planner or AllocationPlanner()
        self._sizer = sizer or OrderSizer()
        self._clock = clock or SystemClock()

    @property
    def config(self) -> DCAConfig:
        return self._config

    async def run_cycle(self) -> CycleOutcome:
        """
        Run one complete cycle.

        Returns:
            CycleOutcome with one outcome per configured symbol

        Raises:
            ConnectivityError: Exchange did not answer the connectivity check
        """
        started_at = self._clock.now()
        cycle = CycleOutcome(
            cycle_id=f"cycle-{started_at:%Y%m%dT%H%M%S}-{uuid.uuid4().hex[:8]}",
            started_at=started_at,
        )
        symbols = list(self._config.symbols)

        logger.info(
            f"Cycle {cycle.cycle_id} started | symbols={','.join(symbols)} "
            f"budget={self._config.base_usdt} USDT dry_run={self._config.dry_run}"
        )

        # Stage 1: connectivity
        if not await self._check_connectivity():
            cycle.aborted = True
            cycle.abort_reason = "exchange unreachable"
            cycle.completed_at = self._clock.now()
            logger.error(f"Cycle {cycle.cycle_id} aborted: exchange unreachable")
            raise ConnectivityError(
                "Exchange connectivity check failed",
                endpoint="/time",
                context={"cycle_id": cycle.cycle_id},
            )

        semaphore = asyncio.Semaphore(self._config.max_concurrency)
        outcomes: Dict[str, SymbolOutcome] = {}

        # Stage 2: momentum
        collected = await asyncio.gather(
            *(self._collect_momentum(symbol, semaphore) for symbol in symbols)
        )
        momenta: List[SymbolMomentum] = []
        for momentum, outcome in collected:
            momenta.append(momentum)
            if outcome:
                outcomes[momentum.symbol] = outcome

        # Stage 3: account snapshot
        await self._snapshot_account(cycle)

        # Stage 4: planning
        plan = self._planner.plan(
            momenta,
            self._config.base_usdt,
            self._config.min_order_value,
        )
        cycle.plan = plan
        self._log_plan(plan)

        # Stage 5: per-symbol execution
        if not plan.is_empty:
            for outcome in await self._execute_plan(plan, semaphore):
                outcomes[outcome.symbol] = outcome

        # Stage 6: report
        cycle.outcomes = [outcomes[s] for s in symbols if s in outcomes]
        cycle.completed_at = self._clock.now()
        self._report(cycle)

        return cycle

    async def _check_connectivity(self) -> bool:
        try:
            return await self._gateway.probe_connectivity()
        except Exception as e:
            logger.error(f"Connectivity check raised: {e!r}", exc_info=True)
            return False

    # --------------------------------------------------------
    # Stage 2: momentum
    # --------------------------------------------------------

    async def _collect_momentum(
        self,
        symbol: str,
        semaphore: asyncio.Semaphore,
    ) -> Tuple[SymbolMomentum, Optional[SymbolOutcome]]:
        """Score one symbol; a non-None outcome means it is out of the plan."""
        try:
            async with semaphore:
                score = await self._score(symbol)
        except DataInsufficientError as e:
            logger.warning(f"{symbol}: {e.message}")
            return SymbolMomentum(symbol), SymbolOutcome(
                symbol=symbol,
                status=OutcomeStatus.SKIPPED,
                reason=OutcomeReason.INSUFFICIENT_DATA,
                detail=e.message,
            )
        except Exception as e:
            logger.error(f"{symbol}: momentum collection failed: {e}", exc_info=True)
            return SymbolMomentum(symbol), SymbolOutcome(
                symbol=symbol,
                status=OutcomeStatus.FAILED,
                reason=OutcomeReason.INTERNAL_ERROR,
                detail=str(e),
            )

        if score == 0:
            logger.warning(f"{symbol}: RSI is 0, cannot weight inversely")
            return SymbolMomentum(symbol, score), SymbolOutcome(
                symbol=symbol,
                status=OutcomeStatus.SKIPPED,
                reason=OutcomeReason.ZERO_MOMENTUM,
                score=score,
            )

        logger.info(f"{symbol} RSI({self._config.rsi_period}): {score}")
        return SymbolMomentum(symbol, score), None

    async def _score(self, symbol: str) -> Decimal:
        result = await self._gateway.fetch_candles(
            symbol,
            interval=self._config.kline_interval,
            limit=self._config.candle_limit,
        )
        if not result.ok:
            raise DataInsufficientError(
                f"Candles unavailable: {result.error_message}",
                symbol=symbol,
            )

        closes = closing_prices(result.value)
        score = compute_rsi(closes, self._config.rsi_period)
        if score is None:
            raise DataInsufficientError(
                f"{len(closes)} candles, need {self._config.candle_limit}",
                symbol=symbol,
            )
        return score

    # --------------------------------------------------------
    # Stage 3: account snapshot
    # --------------------------------------------------------

    async def _snapshot_account(self, cycle: CycleOutcome) -> None:
        try:
            result = await self._gateway.fetch_account_balances()
        except Exception as e:
            logger.warning(f"Account snapshot failed: {e}", exc_info=True)
            return

        if not result.ok:
            logger.warning(f"Account snapshot unavailable: {result.error_message}")
            return

        cycle.balances = list(result.value)
        usdt = find_balance(cycle.balances, "USDT")
        if usdt:
            logger.info(f"USDT balance | free={usdt.free} locked={usdt.locked}")
        else:
            logger.info("USDT balance | none")

    # --------------------------------------------------------
    # Stage 4: planning
    # --------------------------------------------------------

    def _log_plan(self, plan: AllocationPlan) -> None:
        if plan.is_empty:
            logger.info("Nothing to buy this cycle")
            return

        for entry in plan:
            logger.info(
                f"{entry.symbol}: base {entry.base_share:.2f} USDT, RSI {entry.score}, "
                f"target {entry.target_spend:.2f} USDT"
                f"{' (raised to minimum)' if entry.floor_applied else ''}"
            )
        logger.info(
            f"Plan total {plan.total_target_spend:.2f} USDT "
            f"for budget {plan.total_budget} USDT"
        )

    # --------------------------------------------------------
    # Stage 5: per-symbol execution
    # --------------------------------------------------------

    async def _execute_plan(
        self,
        plan: AllocationPlan,
        semaphore: asyncio.Semaphore,
    ) -> List[SymbolOutcome]:
        """Fetch market data concurrently, then size and submit in plan order."""
        markets = await asyncio.gather(
            *(self._fetch_market(entry.symbol, semaphore) for entry in plan),
            return_exceptions=True,
        )

        outcomes = []
        for entry, market in zip(plan, markets):
            if isinstance(market, Exception):
                logger.error(f"{entry.symbol}: market data fetch failed: {market}", exc_info=market)
                outcomes.append(self._internal_error(entry, market))
                continue

            try:
                outcome = await self._execute_entry(entry, *market)
            except Exception as e:
                logger.error(f"{entry.symbol}: execution failed: {e}", exc_info=True)
                outcome = self._internal_error(entry, e)
            outcomes.append(outcome)

        return outcomes

    async def _fetch_market(
        self,
        symbol: str,
        semaphore: asyncio.Semaphore,
    ) -> Tuple[GatewayResult[Decimal], GatewayResult[TradingRule]]:
        async def guarded(call):
            async with semaphore:
                return await call

        price, rule = await asyncio.gather(
            guarded(self._gateway.fetch_current_price(symbol)),
            guarded(self._gateway.fetch_trading_rule(symbol)),
        )
        return price, rule

    async def _execute_entry(
        self,
        entry: AllocationEntry,
        price_result: GatewayResult[Decimal],
        rule_result: GatewayResult[TradingRule],
    ) -> SymbolOutcome:
        symbol = entry.symbol
        price: Optional[Decimal] = None
        quantity: Optional[Decimal] = None

        try:
            if not price_result.ok or price_result.value is None or price_result.value <= 0:
                raise MarketDataError(
                    f"Price unavailable: {price_result.error_message or price_result.value}",
                    symbol=symbol,
                    reason=OutcomeReason.NO_PRICE.value,
                )
            price = price_result.value

            if not rule_result.ok:
                raise MarketDataError(
                    f"Trading rule unavailable: {rule_result.error_message}",
                    symbol=symbol,
                    reason=OutcomeReason.NO_RULE.value,
                )
            rule = rule_result.value

            sized = self._sizer.size(symbol, entry.target_spend, price, rule)
            if isinstance(sized, Unfillable):
                quantity = sized.rounded_quantity
                raise SizingUnfillableError(
                    f"Quantity {sized.raw_quantity:.8f} rounds to {sized.rounded_quantity}, "
                    f"not above minimum {rule.min_quantity}",
                    symbol=symbol,
                )
            quantity = sized.quantity

            if self._config.dry_run:
                logger.info(f"{symbol}: dry run, would buy {quantity} at ~{price}")
                return SymbolOutcome(
                    symbol=symbol,
                    status=OutcomeStatus.PLANNED,
                    reason=OutcomeReason.DRY_RUN,
                    score=entry.score,
                    target_spend=entry.target_spend,
                    quantity=quantity,
                    price=price,
                )

            logger.info(f"{symbol}: buying {quantity} at ~{price} ({entry.target_spend:.2f} USDT)")
            ack = await self._gateway.submit_market_buy(symbol, quantity)
            if not ack.ok:
                raise SubmissionError(
                    f"Order rejected: {ack.error_message}",
                    symbol=symbol,
                    error_code=ack.error.code if ack.error else None,
                )

            return SymbolOutcome(
                symbol=symbol,
                status=OutcomeStatus.SUBMITTED,
                score=entry.score,
                target_spend=entry.target_spend,
                quantity=quantity,
                price=price,
                order_id=ack.value.order_id,
            )

        except SymbolError as e:
            logger.warning(e.to_log_format())
            return SymbolOutcome(
                symbol=symbol,
                status=OutcomeStatus.FAILED,
                reason=OutcomeReason(e.reason),
                score=entry.score,
                target_spend=entry.target_spend,
                quantity=quantity,
                price=price,
                detail=e.message,
            )

    @staticmethod
    def _internal_error(entry: AllocationEntry, error: BaseException) -> SymbolOutcome:
        return SymbolOutcome(
            symbol=entry.symbol,
            status=OutcomeStatus.FAILED,
            reason=OutcomeReason.INTERNAL_ERROR,
            score=entry.score,
            target_spend=entry.target_spend,
            detail=str(error),
        )

    # --------------------------------------------------------
    # Stage 6: report
    # --------------------------------------------------------

    def _report(self, cycle: CycleOutcome) -> None:
        counts = cycle.counts()
        logger.info(
            f"Cycle {cycle.cycle_id} complete | "
            + " ".join(f"{k.lower()}={v}" for k, v in counts.items())
            + f" spend={cycle.submitted_spend:.2f} USDT"
            f" duration={cycle.duration_seconds:.2f}s"
        )
        for outcome in cycle.outcomes:
            logger.info(f"  {outcome.to_log_line()}")
