"""Failure taxonomy for the registry and the round settlement engine."""


class AuguryError(Exception):
    """Base exception for every named settlement failure."""

    code = "augury_error"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        if code is not None:
            self.code = code


class RoundNotFoundError(AuguryError):
    """Round id does not reference an existing round."""

    code = "round_not_found"


# Timing


class TimingError(AuguryError):
    """Operation requested outside its time window."""

    code = "timing"


class RoundClosedError(TimingError):
    """Betting window has ended or the round is already resolved."""

    code = "round_closed"


class RoundNotEndedError(TimingError):
    """Round cannot be resolved before its end time."""

    code = "round_not_ended"


class PreviousRoundActiveError(TimingError):
    """A new round cannot start while the previous one is unfinished."""

    code = "previous_round_active"


# Authorization


class AuthorizationError(AuguryError):
    """Caller is not allowed to perform the operation."""

    code = "authorization"


class NotOperatorError(AuthorizationError):
    code = "not_operator"


class NotRegistryAdminError(AuthorizationError):
    code = "not_registry_admin"


class UnauthorizedForecasterError(AuthorizationError):
    code = "unauthorized_forecaster"


# Validation


class InputValidationError(AuguryError):
    """Request parameters are malformed or out of bounds."""

    code = "validation"


class StakeOutOfBoundsError(InputValidationError):
    code = "stake_out_of_bounds"


class ConfidenceOutOfBoundsError(InputValidationError):
    code = "confidence_out_of_bounds"


class EmptyAnalysisReferenceError(InputValidationError):
    code = "empty_analysis_reference"


class ParameterOutOfBoundsError(InputValidationError):
    """Fee, threshold, limit or amount outside its allowed range."""

    code = "parameter_out_of_bounds"


# State conflicts


class StateConflictError(AuguryError):
    """Operation conflicts with the current round or wager state."""

    code = "state_conflict"


class DuplicateWagerError(StateConflictError):
    code = "duplicate_wager"


class AlreadyClaimedError(StateConflictError):
    code = "already_claimed"


class AlreadyResolvedError(StateConflictError):
    code = "already_resolved"


class RoundNotResolvedError(StateConflictError):
    code = "round_not_resolved"


class NoWagerError(StateConflictError):
    code = "no_wager"


class LosingWagerError(StateConflictError):
    code = "losing_wager"


class DistributionPendingError(StateConflictError):
    """Auto-distribution is on and the round has not been swept yet."""

    code = "distribution_pending"


class ProtocolPausedError(StateConflictError):
    code = "protocol_paused"


class ReentrancyError(StateConflictError):
    """A mutating entry point was re-entered while another was running."""

    code = "reentrant_call"


class InsufficientFreeBalanceError(StateConflictError):
    code = "insufficient_free_balance"


# External data


class ExternalDataError(AuguryError):
    """Forecast or reference price is missing or unusable."""

    code = "external_data"


class NoValidPredictionError(ExternalDataError):
    code = "no_valid_prediction"


class StaleForecastError(ExternalDataError):
    code = "stale_forecast"


class LowConfidenceError(ExternalDataError):
    code = "low_confidence"


class PriceUnavailableError(ExternalDataError):
    code = "price_unavailable"


class InvalidPriceError(ExternalDataError):
    code = "invalid_price"


class StalePriceError(ExternalDataError):
    code = "stale_price"


# Transfers


class TransferError(AuguryError):
    code = "transfer"


class TransferFailedError(TransferError):
    """External fund movement failed; the whole operation was rolled back."""

    code = "transfer_failed"
