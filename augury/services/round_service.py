"""Round lifecycle, wager bookkeeping, resolution and payout service."""

import logging
from enum import Enum
from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from augury.config import ProtocolConfig
from augury.database.session import atomic
from augury.exceptions import (
    AlreadyClaimedError,
    AlreadyResolvedError,
    DistributionPendingError,
    DuplicateWagerError,
    InsufficientFreeBalanceError,
    LosingWagerError,
    LowConfidenceError,
    NotOperatorError,
    NoWagerError,
    ParameterOutOfBoundsError,
    PreviousRoundActiveError,
    ProtocolPausedError,
    RoundClosedError,
    RoundNotEndedError,
    RoundNotFoundError,
    RoundNotResolvedError,
    StakeOutOfBoundsError,
    StaleForecastError,
    TransferFailedError,
)
from augury.models import (
    LEDGER_PAYOUT,
    LEDGER_STAKE,
    LEDGER_WITHDRAWAL,
    SETTINGS_ROW_ID,
    LedgerEntry,
    ProtocolSettings,
    Round,
    RoundDistribution,
    Wager,
)
from augury.schemas import BalanceResponse, DistributionReport, DistributionWork, WagerSide
from augury.services.calculations import (
    calculate_deviation_pct,
    calculate_reward,
    calculate_reward_pool,
    is_forecast_correct,
)
from augury.services.guard import ReentrancyGuard, non_reentrant
from augury.services.providers import Clock, PayoutGateway, system_clock
from augury.services.registry import PredictionRegistry

logger = logging.getLogger(__name__)

# Upper bound on rounds handled by one sweep invocation
MAX_SWEEP_BATCH = 50

MAX_FEE_PERCENT = 30
MAX_ACCURACY_THRESHOLD = 20


class RoundPhase(str, Enum):
    """Lifecycle position of a round at a given time."""

    OPEN = "open"
    CLOSED = "closed"
    RESOLVED = "resolved"
    DISTRIBUTED = "distributed"


class RoundSettlementEngine:
    """
    Owns the round lifecycle and settles the shared pool.

    Every mutating entry point runs under one reentrancy guard and inside one
    database transaction. Claims and fee withdrawals write their bookkeeping
    and flush it before calling the payout gateway; a failed transfer rolls
    the whole operation back.

    Only claims move funds to participants. The distribution sweep fixes the
    reward pool and winning-side total for a round and marks it distributed.
    """

    def __init__(
        self,
        registry: PredictionRegistry,
        payout_gateway: PayoutGateway,
        clock: Clock = system_clock,
        guard: Optional[ReentrancyGuard] = None,
    ):
        self.registry = registry
        self.payout_gateway = payout_gateway
        self.clock = clock
        # Share the registry's guard so no registry write can run mid-transfer
        self._guard = guard or registry.guard
        registry.guard = self._guard

    # ========================================================================
    # SETTINGS
    # ========================================================================

    @non_reentrant
    def initialize_settings(
        self, db: Session, operator: str, config: ProtocolConfig
    ) -> ProtocolSettings:
        """
        Create the settings row from configuration, once.

        An existing row always wins. The operator is fixed once stored, so a
        configured operator that differs from it is reported, not applied.
        """
        existing = db.get(ProtocolSettings, SETTINGS_ROW_ID)
        if existing is not None:
            if existing.operator != operator:
                logger.warning(
                    f"Configured operator {operator} differs from stored operator "
                    f"{existing.operator}; keeping {existing.operator}"
                )
            return existing

        with atomic(db):
            settings = ProtocolSettings(
                id=SETTINGS_ROW_ID,
                operator=operator,
                paused=False,
                fee_percent=config.fee_percent,
                accuracy_threshold=config.accuracy_threshold,
                auto_distribution=config.auto_distribution,
                min_stake=config.min_stake,
                max_stake=config.max_stake,
                round_duration=config.round_duration_seconds,
                min_confidence=config.min_confidence,
                max_forecast_age=config.max_forecast_age_seconds,
            )
            db.add(settings)

        logger.info(f"Protocol settings initialized for operator {operator}")
        return settings

    def get_settings(self, db: Session) -> ProtocolSettings:
        settings = db.get(ProtocolSettings, SETTINGS_ROW_ID)
        if settings is None:
            raise RuntimeError(
                "Protocol settings not initialized. Run 'python -m augury init' first."
            )
        return settings

    def _require_operator(self, settings: ProtocolSettings, caller: str) -> None:
        if caller != settings.operator:
            raise NotOperatorError(f"{caller} is not the operator")

    def _require_not_paused(self, settings: ProtocolSettings) -> None:
        if settings.paused:
            raise ProtocolPausedError("Participant operations are paused")

    def _update_settings(self, db: Session, caller: str, **changes) -> ProtocolSettings:
        settings = self.get_settings(db)
        self._require_operator(settings, caller)

        with atomic(db):
            for name, value in changes.items():
                setattr(settings, name, value)

        logger.info(
            "Protocol settings updated: "
            + ", ".join(f"{k}={v}" for k, v in changes.items())
        )
        return settings

    @non_reentrant
    def set_fee_percent(self, db: Session, caller: str, fee_percent: int) -> ProtocolSettings:
        if not (0 <= fee_percent <= MAX_FEE_PERCENT):
            raise ParameterOutOfBoundsError(
                f"Fee cannot exceed {MAX_FEE_PERCENT}%, got {fee_percent}"
            )
        return self._update_settings(db, caller, fee_percent=fee_percent)

    @non_reentrant
    def set_accuracy_threshold(
        self, db: Session, caller: str, threshold: int
    ) -> ProtocolSettings:
        if not (0 <= threshold <= MAX_ACCURACY_THRESHOLD):
            raise ParameterOutOfBoundsError(
                f"Threshold cannot exceed {MAX_ACCURACY_THRESHOLD}%, got {threshold}"
            )
        return self._update_settings(db, caller, accuracy_threshold=threshold)

    @non_reentrant
    def set_auto_distribution(
        self, db: Session, caller: str, enabled: bool
    ) -> ProtocolSettings:
        return self._update_settings(db, caller, auto_distribution=enabled)

    @non_reentrant
    def set_stake_limits(
        self, db: Session, caller: str, min_stake: int, max_stake: int
    ) -> ProtocolSettings:
        if min_stake <= 0 or min_stake > max_stake:
            raise ParameterOutOfBoundsError(
                f"Invalid stake limits: min={min_stake} max={max_stake}"
            )
        return self._update_settings(
            db, caller, min_stake=min_stake, max_stake=max_stake
        )

    @non_reentrant
    def pause(self, db: Session, caller: str) -> ProtocolSettings:
        return self._update_settings(db, caller, paused=True)

    @non_reentrant
    def unpause(self, db: Session, caller: str) -> ProtocolSettings:
        return self._update_settings(db, caller, paused=False)

    @non_reentrant
    def set_registry(
        self, db: Session, caller: str, registry: PredictionRegistry
    ) -> None:
        """Point the engine at a different prediction registry."""
        self._require_operator(self.get_settings(db), caller)
        registry.guard = self._guard
        self.registry = registry
        logger.info(f"Prediction registry replaced by {caller}")

    # ========================================================================
    # ROUND LIFECYCLE
    # ========================================================================

    @non_reentrant
    def start_round(self, db: Session, caller: str) -> Round:
        """
        Open a new round from the latest forecast and reference price.

        Process:
        1. Check the previous round (if any) is resolved and past its end
        2. Pull the latest forecast; reject stale or low-confidence ones
        3. Read the current reference price
        4. Create the round with id = previous + 1
        """
        settings = self.get_settings(db)
        self._require_operator(settings, caller)
        now = self.clock()

        previous = self.latest_round(db)
        if previous is not None and not (
            previous.resolved and now >= previous.end_time
        ):
            raise PreviousRoundActiveError(
                f"Round {previous.id} must be resolved before a new round starts"
            )

        prediction = self.registry.latest(db)
        age = now - prediction.timestamp
        if age > settings.max_forecast_age:
            raise StaleForecastError(
                f"Prediction {prediction.id} is {age}s old "
                f"(max {settings.max_forecast_age}s)"
            )
        if prediction.confidence < settings.min_confidence:
            raise LowConfidenceError(
                f"Prediction {prediction.id} confidence {prediction.confidence}% "
                f"is below {settings.min_confidence}%"
            )

        start_price = self.registry.current_reference_price()

        with atomic(db):
            round_ = Round(
                id=(previous.id if previous else 0) + 1,
                prediction_id=prediction.id,
                predicted_price=prediction.predicted_price,
                confidence=prediction.confidence,
                analysis_ref=prediction.analysis_ref,
                start_price=start_price,
                start_time=now,
                end_time=now + settings.round_duration,
                resolved=False,
                forecast_won=False,
                total_correct=0,
                total_incorrect=0,
            )
            db.add(round_)

        logger.info(
            f"Round {round_.id} started: predicted={round_.predicted_price} "
            f"start={start_price} confidence={round_.confidence}% "
            f"ends at {round_.end_time}"
        )
        return round_

    @non_reentrant
    def place_wager(
        self,
        db: Session,
        participant: str,
        round_id: int,
        side: WagerSide | str,
        amount: int,
    ) -> Wager:
        """
        Record a participant's stake on one side of an open round.

        ``amount`` is the value transferred with the call; it is credited to
        the pooled balance together with the wager.
        """
        try:
            side = WagerSide(side)
        except ValueError as e:
            raise ParameterOutOfBoundsError(f"Invalid wager side: {side!r}") from e
        if not participant:
            raise ParameterOutOfBoundsError("Participant must not be empty")

        settings = self.get_settings(db)
        self._require_not_paused(settings)

        round_ = self.get_round(db, round_id)
        now = self.clock()
        if round_.resolved or now >= round_.end_time:
            raise RoundClosedError(f"Betting on round {round_id} is closed")

        if not (settings.min_stake <= amount <= settings.max_stake):
            raise StakeOutOfBoundsError(
                f"Stake must be between {settings.min_stake} and "
                f"{settings.max_stake}, got {amount}"
            )

        if self.get_wager(db, round_id, participant) is not None:
            raise DuplicateWagerError(
                f"{participant} already placed a wager in round {round_id}"
            )

        with atomic(db):
            wager = Wager(
                round_id=round_id,
                participant=participant,
                side=side.value,
                amount=amount,
                placed_at=now,
                claimed=False,
            )
            db.add(wager)

            if side is WagerSide.CORRECT:
                round_.total_correct += amount
            else:
                round_.total_incorrect += amount

            db.add(
                LedgerEntry(
                    kind=LEDGER_STAKE,
                    account=participant,
                    amount=amount,
                    round_id=round_id,
                    created_at=now,
                )
            )

        logger.info(f"Wager placed: {participant} {side.value} {amount} on round {round_id}")
        return wager

    @non_reentrant
    def resolve_round(self, db: Session, caller: str, round_id: int) -> Round:
        """
        Judge the round's forecast against a fresh reference price.

        deviation = |predicted - actual| * 100 // start_price; the forecast
        wins when deviation <= accuracy_threshold. The fee in force now is
        snapshotted on the round for every later pool computation.
        """
        settings = self.get_settings(db)
        self._require_operator(settings, caller)

        round_ = self.get_round(db, round_id)
        if round_.resolved:
            raise AlreadyResolvedError(f"Round {round_id} is already resolved")

        now = self.clock()
        if now < round_.end_time:
            raise RoundNotEndedError(
                f"Round {round_id} ends at {round_.end_time}, now is {now}"
            )

        end_price = self.registry.current_reference_price()
        deviation = calculate_deviation_pct(
            round_.predicted_price, end_price, round_.start_price
        )
        forecast_won = is_forecast_correct(
            round_.predicted_price,
            end_price,
            round_.start_price,
            settings.accuracy_threshold,
        )

        with atomic(db):
            round_.end_price = end_price
            round_.forecast_won = forecast_won
            round_.fee_percent = settings.fee_percent
            round_.resolved_at = now
            round_.resolved = True

        logger.info(
            f"Round {round_id} resolved: actual={end_price} deviation={deviation}% "
            f"threshold={settings.accuracy_threshold}% -> "
            f"{'forecast correct' if forecast_won else 'forecast incorrect'}, "
            f"reward pool {self.reward_pool(round_)} of {round_.total_pool}"
        )
        return round_

    # ========================================================================
    # DISTRIBUTION
    # ========================================================================

    def reward_pool(self, round_: Round) -> int:
        """Post-fee pool of a resolved round, from its stored totals and fee snapshot."""
        if not round_.resolved:
            raise RoundNotResolvedError(f"Round {round_.id} is not resolved")
        return calculate_reward_pool(round_.total_pool, round_.fee_percent)

    def _distribute(self, round_: Round, settings: ProtocolSettings, now: int) -> bool:
        """Mark one round distributed if it is eligible; report whether it was."""
        if not round_.resolved or round_.distributed:
            return False

        if round_.total_pool == 0:
            round_.distribution = RoundDistribution(
                round_id=round_.id,
                reward_pool=0,
                winning_total=0,
                fee_amount=0,
                distributed_at=now,
            )
            return True

        if not settings.auto_distribution:
            return False

        pool = self.reward_pool(round_)
        round_.distribution = RoundDistribution(
            round_id=round_.id,
            reward_pool=pool,
            winning_total=round_.winning_total,
            fee_amount=round_.total_pool - pool,
            distributed_at=now,
        )
        return True

    @non_reentrant
    def distribute_round(self, db: Session, round_id: int) -> bool:
        """Sweep a single round. Repeating it on a distributed round is a no-op."""
        settings = self.get_settings(db)
        round_ = self.get_round(db, round_id)

        with atomic(db):
            done = self._distribute(round_, settings, self.clock())

        if done:
            logger.info(f"Round {round_id} distributed")
        return done

    def check_distribution_work(self, db: Session) -> DistributionWork:
        """
        Read-only check for the automated trigger.

        Returns up to MAX_SWEEP_BATCH resolved, undistributed rounds with a
        non-zero pool. Nothing is eligible while auto-distribution is off.
        """
        settings = self.get_settings(db)
        if not settings.auto_distribution:
            return DistributionWork(has_work=False, round_ids=[])

        round_ids = list(
            db.scalars(
                select(Round.id)
                .outerjoin(RoundDistribution, RoundDistribution.round_id == Round.id)
                .where(Round.resolved.is_(True))
                .where(RoundDistribution.round_id.is_(None))
                .where((Round.total_correct + Round.total_incorrect) > 0)
                .order_by(Round.id)
                .limit(MAX_SWEEP_BATCH)
            ).all()
        )
        return DistributionWork(has_work=bool(round_ids), round_ids=round_ids)

    @non_reentrant
    def execute_distribution(
        self, db: Session, round_ids: Iterable[int]
    ) -> DistributionReport:
        """
        Sweep a batch of rounds, skipping any that are not eligible.

        At most MAX_SWEEP_BATCH ids are processed; the rest are reported as
        deferred for the next invocation.
        """
        settings = self.get_settings(db)
        now = self.clock()

        batch = list(dict.fromkeys(round_ids))
        to_process, deferred = batch[:MAX_SWEEP_BATCH], batch[MAX_SWEEP_BATCH:]
        distributed: list[int] = []
        skipped: list[int] = []

        with atomic(db):
            for round_id in to_process:
                round_ = db.get(Round, round_id)
                if round_ is None or not self._distribute(round_, settings, now):
                    logger.debug(f"Sweep skipped round {round_id}")
                    skipped.append(round_id)
                    continue
                distributed.append(round_id)

        if distributed:
            logger.info(f"Sweep distributed rounds {distributed}")
        if deferred:
            logger.warning(
                f"Sweep batch capped at {MAX_SWEEP_BATCH}; deferred {len(deferred)} rounds"
            )
        return DistributionReport(
            distributed=distributed, skipped=skipped, deferred=deferred
        )

    # ========================================================================
    # CLAIMS & WITHDRAWALS
    # ========================================================================

    def _transfer(self, recipient: str, amount: int) -> None:
        try:
            self.payout_gateway.transfer(recipient, amount)
        except Exception as e:
            logger.error(f"Transfer of {amount} to {recipient} failed: {e}")
            raise TransferFailedError(
                f"Transfer of {amount} to {recipient} failed: {e}"
            ) from e

    @non_reentrant
    def claim_reward(self, db: Session, participant: str, round_id: int) -> int:
        """
        Pay a winning wager its share of the reward pool.

        reward = reward_pool * wager.amount // winning_total. The claimed flag
        and the payout ledger entry are flushed before the transfer; if the
        transfer fails neither is kept.
        """
        settings = self.get_settings(db)
        self._require_not_paused(settings)

        round_ = self.get_round(db, round_id)
        if not round_.resolved:
            raise RoundNotResolvedError(f"Round {round_id} is not resolved")

        wager = self.get_wager(db, round_id, participant)
        if wager is None:
            raise NoWagerError(f"{participant} has no wager in round {round_id}")
        if wager.claimed:
            raise AlreadyClaimedError(
                f"{participant} already claimed round {round_id}"
            )

        winning_side = WagerSide.CORRECT if round_.forecast_won else WagerSide.INCORRECT
        if wager.side != winning_side.value:
            raise LosingWagerError(
                f"{participant}'s wager on round {round_id} lost"
            )

        if settings.auto_distribution and not round_.distributed:
            raise DistributionPendingError(
                f"Round {round_id} has not been distributed yet"
            )

        reward = calculate_reward(
            self.reward_pool(round_), wager.amount, round_.winning_total
        )
        now = self.clock()

        with atomic(db):
            wager.claimed = True
            wager.reward = reward
            wager.claimed_at = now
            if reward > 0:
                db.add(
                    LedgerEntry(
                        kind=LEDGER_PAYOUT,
                        account=participant,
                        amount=reward,
                        round_id=round_id,
                        created_at=now,
                    )
                )
            db.flush()

            if reward > 0:
                self._transfer(participant, reward)

        logger.info(f"Reward claimed: {participant} received {reward} from round {round_id}")
        return reward

    @non_reentrant
    def withdraw_fees(
        self,
        db: Session,
        caller: str,
        amount: int,
        recipient: Optional[str] = None,
    ) -> int:
        """
        Withdraw from the free balance; returns the free balance left.

        Free balance is the held balance minus the totals of every
        still-unresolved round, computed in the same transaction as the
        withdrawal.
        """
        settings = self.get_settings(db)
        self._require_operator(settings, caller)
        if amount <= 0:
            raise ParameterOutOfBoundsError(
                f"Withdrawal amount must be positive, got {amount}"
            )
        recipient = recipient or caller

        with atomic(db):
            free = self.free_balance(db)
            if amount > free:
                raise InsufficientFreeBalanceError(
                    f"Requested {amount} exceeds free balance {free}"
                )

            db.add(
                LedgerEntry(
                    kind=LEDGER_WITHDRAWAL,
                    account=recipient,
                    amount=amount,
                    created_at=self.clock(),
                )
            )
            db.flush()
            self._transfer(recipient, amount)

        logger.info(f"Withdrew {amount} to {recipient}; free balance now {free - amount}")
        return free - amount

    # ========================================================================
    # QUERIES
    # ========================================================================

    def get_round(self, db: Session, round_id: int) -> Round:
        round_ = db.get(Round, round_id)
        if round_ is None:
            raise RoundNotFoundError(f"Round {round_id} not found")
        return round_

    def latest_round(self, db: Session) -> Optional[Round]:
        return db.scalar(select(Round).order_by(Round.id.desc()).limit(1))

    def get_wager(
        self, db: Session, round_id: int, participant: str
    ) -> Optional[Wager]:
        """Get a participant's wager in a round, if any."""
        return db.get(Wager, (round_id, participant))

    def round_phase(self, round_: Round) -> RoundPhase:
        if round_.distributed:
            return RoundPhase.DISTRIBUTED
        if round_.resolved:
            return RoundPhase.RESOLVED
        if self.clock() >= round_.end_time:
            return RoundPhase.CLOSED
        return RoundPhase.OPEN

    def held_balance(self, db: Session) -> int:
        """Total funds in the pool: stakes in, payouts and withdrawals out."""
        totals = dict(
            db.execute(
                select(LedgerEntry.kind, func.sum(LedgerEntry.amount)).group_by(
                    LedgerEntry.kind
                )
            ).all()
        )
        return (
            int(totals.get(LEDGER_STAKE) or 0)
            - int(totals.get(LEDGER_PAYOUT) or 0)
            - int(totals.get(LEDGER_WITHDRAWAL) or 0)
        )

    def locked_balance(self, db: Session) -> int:
        """Stakes of rounds that are not resolved yet."""
        locked = db.scalar(
            select(
                func.coalesce(
                    func.sum(Round.total_correct + Round.total_incorrect), 0
                )
            ).where(Round.resolved.is_(False))
        )
        return int(locked or 0)

    def free_balance(self, db: Session) -> int:
        return self.held_balance(db) - self.locked_balance(db)

    def get_balance(self, db: Session) -> BalanceResponse:
        held = self.held_balance(db)
        locked = self.locked_balance(db)
        return BalanceResponse(held=held, locked=locked, free=held - locked)
