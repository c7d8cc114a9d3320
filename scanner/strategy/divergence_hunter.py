"""Divergence hunter — reversal evidence from oscillators, order flow and harmonics."""

from scanner.strategy.base import StrategyContext, StrategySignal

_PRZ_TOLERANCE_ATR = 0.5
_AGREEMENT_BONUS = 5
_CONFLICT_MARGIN = 10

_DIVERGENCE_SCORES = {
    "BULLISH": 75,
    "BEARISH": 75,
    "HIDDEN_BULLISH": 70,
    "HIDDEN_BEARISH": 70,
    "CVD_ABSORPTION_BUY": 85,
    "CVD_ABSORPTION_SELL": 85,
}


class DivergenceHunterStrategy:
    """Collect every reversal clue and vote on direction.

    Implements ``StrategyProtocol``.

    Each clue scores on its own (regular divergence 75, hidden 70, CVD
    absorption 85, harmonic PRZ at price 100 × confidence).  A side's
    score is its best clue plus 5 per additional agreeing clue.  When
    both sides are within 10 points of each other the runner stays
    NEUTRAL.
    """

    strategy_id = "divergence_hunter"

    def evaluate(self, context: StrategyContext) -> StrategySignal:
        ind = context.indicators
        st = context.structure
        bull: list[tuple[float, str]] = []
        bear: list[tuple[float, str]] = []

        for source, div in (
            ("RSI", st.rsi_divergence),
            ("MACD", st.macd_divergence),
            ("CVD", st.cvd_divergence),
        ):
            if div is None:
                continue
            entry = (float(_DIVERGENCE_SCORES[div.type]), f"{source}: {div.description}")
            (bull if div.is_bullish else bear).append(entry)

        for pattern in st.harmonic_patterns:
            if abs(ind.price - pattern.prz) > _PRZ_TOLERANCE_ATR * ind.atr:
                continue
            entry = (round(pattern.confidence * 100, 1), f"{pattern.direction.title()} {pattern.type} PRZ at price")
            if pattern.direction == "BULLISH":
                bull.append(entry)
            else:
                bear.append(entry)

        bull_score = self._side_score(bull)
        bear_score = self._side_score(bear)
        if bull_score == 0 and bear_score == 0:
            return StrategySignal.neutral(self.strategy_id, "No divergence or PRZ")
        if bull_score and bear_score and abs(bull_score - bear_score) < _CONFLICT_MARGIN:
            return StrategySignal.neutral(self.strategy_id, "Conflicting reversal evidence")

        long = bull_score > bear_score
        clues = bull if long else bear
        return StrategySignal(
            strategy_id=self.strategy_id,
            signal="LONG" if long else "SHORT",
            score=min(bull_score if long else bear_score, 100.0),
            reason="; ".join(note for _, note in sorted(clues, reverse=True)),
        )

    @staticmethod
    def _side_score(clues: list[tuple[float, str]]) -> float:
        if not clues:
            return 0.0
        best = max(score for score, _ in clues)
        return best + _AGREEMENT_BONUS * (len(clues) - 1)
