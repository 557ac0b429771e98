"""Signal pipeline — candle window → IndicatorSet → ScoredSignal → RiskParameters.

``evaluate_symbol`` is the single entry point used by the scanner.  It
returns a ``SignalEvent`` for an accepted signal and ``None`` otherwise;
short windows and rejected risk parameters are logged at debug level only.
"""

import dataclasses
import logging
from datetime import datetime, timezone
from typing import Optional, Sequence

from futurescan.config import Config, RiskSettings
from futurescan.errors import DataInsufficient, ValidationRejected
from futurescan.events import SignalEvent
from futurescan.market.models import Candle, FuturesSnapshot
from futurescan.risk.levels import (
    calculate_entry_price,
    calculate_risk_reward,
    calculate_stop_loss,
    calculate_take_profits,
    is_ladder_ordered,
)
from futurescan.risk.models import RiskParameters
from futurescan.risk.position_sizer import calculate_liquidation_price, calculate_position_size
from futurescan.risk.validation import validate_risk_parameters
from futurescan.strategy.analysis import build_indicator_set, missing_required
from futurescan.strategy.models import IndicatorSet, ScoredSignal, Signal
from futurescan.strategy.scorer import score_signal

logger = logging.getLogger("futurescan.pipeline")


def derive_risk_parameters(
    current_price: float,
    scored: ScoredSignal,
    indicators: IndicatorSet,
    settings: RiskSettings,
) -> RiskParameters:
    """Entry, TP ladder, stop, ratios and sizing for a scored signal.

    Raises:
        DataInsufficient: ATR is unavailable.
        ValidationRejected: The ladder is out of order after clamping, or
            the first risk/reward ratio is below ``settings.min_risk_reward``.
    """
    atr = indicators.risk.atr
    if atr is None or atr <= 0:
        raise DataInsufficient("ATR unavailable")

    direction = scored.direction
    confidence = scored.confidence

    entry = calculate_entry_price(
        current_price, direction, atr,
        settings.entry_atr_multipliers[confidence], indicators,
    )
    take_profits = calculate_take_profits(
        entry, direction, atr,
        settings.take_profit_multipliers[confidence], indicators,
    )
    stop_loss = calculate_stop_loss(
        entry, direction, atr,
        settings.stop_loss_multipliers[confidence], indicators,
    )

    if not is_ladder_ordered(direction, entry, stop_loss, take_profits):
        raise ValidationRejected(
            f"{direction} levels out of order: stop={stop_loss:.6g} entry={entry:.6g} "
            f"tp={take_profits.as_list()}"
        )

    r1, r2, r3 = calculate_risk_reward(entry, stop_loss, take_profits.as_list())
    if r1 < settings.min_risk_reward:
        raise ValidationRejected(
            f"risk/reward {r1:.2f} below minimum {settings.min_risk_reward:.2f}"
        )

    position = calculate_position_size(
        settings.account_balance,
        settings.risk_percentage,
        entry,
        stop_loss,
        settings.max_leverage,
    )
    position = dataclasses.replace(
        position,
        liquidation_price=calculate_liquidation_price(entry, position.leverage, direction),
    )

    return RiskParameters(
        entry_price=entry,
        take_profits=take_profits,
        stop_loss=stop_loss,
        risk_reward_ratios=(r1, r2, r3),
        position_info=position,
    )


def _build_event(
    symbol: str,
    candles: Sequence[Candle],
    snapshot: Optional[FuturesSnapshot],
    config: Config,
    now: datetime,
) -> Optional[SignalEvent]:
    if len(candles) < config.min_candles:
        raise DataInsufficient(f"{len(candles)} candles, need {config.min_candles}")

    indicators = build_indicator_set(candles, config.indicators, snapshot)
    missing = missing_required(indicators)
    if missing:
        raise DataInsufficient(f"missing indicators: {', '.join(missing)}")

    price = candles[-1].close
    scored = score_signal(price, indicators, config)
    if scored is None:
        return None

    params = derive_risk_parameters(price, scored, indicators, config.risk)
    validation = validate_risk_parameters(
        scored.direction,
        params.entry_price,
        params.stop_loss,
        params.take_profits,
        params.position_info,
        params.position_info.liquidation_price,
    )
    if not validation.is_valid:
        raise ValidationRejected("; ".join(validation.blocking))

    signal = Signal(
        direction=scored.direction,
        strength=scored.strength,
        confidence=scored.confidence,
        risk_level=validation.risk_level,
        warnings=validation.warnings,
        analysis=scored.analysis,
    )
    signal_dict = dataclasses.asdict(signal)
    signal_dict["warnings"] = list(signal.warnings)

    return SignalEvent(
        symbol=symbol,
        current_price=price,
        entry_price=params.entry_price,
        take_profits=dataclasses.asdict(params.take_profits),
        stop_loss=params.stop_loss,
        risk_reward_ratios=list(params.risk_reward_ratios),
        position_info=dataclasses.asdict(params.position_info),
        indicators=dataclasses.asdict(indicators),
        signal=signal_dict,
        timestamp=now.isoformat(),
    )


def evaluate_symbol(
    symbol: str,
    candles: Sequence[Candle],
    snapshot: Optional[FuturesSnapshot],
    config: Config,
    now: Optional[datetime] = None,
) -> Optional[SignalEvent]:
    """Run the full pipeline for one symbol.

    Returns ``None`` when there is no signal, when data is insufficient, or
    when the risk stage rejects the signal.
    """
    now = now or datetime.now(timezone.utc)
    try:
        event = _build_event(symbol, candles, snapshot, config, now)
    except DataInsufficient as exc:
        logger.debug("%s skipped: %s", symbol, exc)
        return None
    except ValidationRejected as exc:
        logger.debug("%s signal rejected: %s", symbol, exc)
        return None

    if event is not None:
        logger.info(
            "%s %s signal — strength %.1f, confidence %s, entry %.6g",
            symbol, event.direction, event.signal["strength"],
            event.signal["confidence"], event.entry_price,
        )
    return event
