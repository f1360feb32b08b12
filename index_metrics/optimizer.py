"""
Preference-weighted allocation over index Sharpe ratios.

The search maximises

    alpha * sum(w_i * s_i) - (1 - alpha) * sum((w_i - t_i) ** 2)

over the simplex with a small simulated-annealing loop: start from the
target weights, shift weight between two random coordinates, accept
improvements over the best objective seen so far and worse moves with
probability exp(delta / T). The acceptance test compares against the
best objective, not the current state's objective.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .errors import InvalidWeightsError

logger = logging.getLogger(__name__)

MIN_WEIGHT = 0.0001
MAX_WEIGHT = 0.9999
SUM_TOLERANCE = 1e-10
# clamped shifts below this are rounding noise against a bound
SHIFT_EPSILON = 1e-15

DEFAULT_ASSETS = ("沪深300", "中证500", "中证1000", "中证2000")
DEFAULT_TARGET = (0.4, 0.2, 0.2, 0.2)

STRATEGY_ALPHAS = {
    "balanced": 0.5,
    "sharpe_focused": 0.7,
    "weight_focused": 0.3,
}
STRATEGIES = tuple(STRATEGY_ALPHAS) + ("adaptive",)


@dataclass(frozen=True)
class OptimizationResult:
    weights: Tuple[float, ...]
    objective: float
    score: float                       # sum(w_i * s_i) of the final weights
    target_weights: Tuple[float, ...]
    alpha: float
    iterations_run: int

    @property
    def deviation(self) -> float:
        """Sum of absolute distances from the target weights."""
        return float(sum(abs(w - t) for w, t in zip(self.weights, self.target_weights)))


def _vector(values: Sequence[float], name: str) -> np.ndarray:
    v = np.asarray(values, dtype=float)
    if v.ndim != 1 or v.size < 2:
        raise InvalidWeightsError(f"{name} must be a flat sequence of at least 2 numbers")
    if not np.all(np.isfinite(v)):
        raise InvalidWeightsError(f"{name} contains non-finite values")
    return v


def normalize_weights(weights: Sequence[float]) -> np.ndarray:
    w = np.asarray(weights, dtype=float)
    total = w.sum()
    if total <= 0:
        raise InvalidWeightsError(f"weights must have a positive sum, got {total}")
    if abs(total - 1) > SUM_TOLERANCE:
        w = w / total
    return w


def objective(weights, scores, target_weights, alpha: float) -> float:
    w = np.asarray(weights, dtype=float)
    reward = float(np.dot(w, scores))
    penalty = float(np.sum((w - np.asarray(target_weights)) ** 2))
    return alpha * reward - (1 - alpha) * penalty


def neighbor(weights: np.ndarray, rng: np.random.Generator, step: float = 0.05) -> np.ndarray:
    """
    Move up to ``step`` of weight from one random coordinate to another,
    keeping both inside [MIN_WEIGHT, MAX_WEIGHT]. Drawing the same index
    twice, or a shift clamped to nothing, leaves the weights unchanged.
    """
    w = weights.copy()
    i, j = rng.integers(0, w.size, size=2)
    if i == j:
        return w
    shift = rng.uniform(-step, step)
    low = max(MIN_WEIGHT - w[i], w[j] - MAX_WEIGHT)
    high = min(MAX_WEIGHT - w[i], w[j] - MIN_WEIGHT)
    shift = min(max(shift, low), high)
    if abs(shift) < SHIFT_EPSILON:
        return w
    w[i] += shift
    w[j] -= shift
    return w


def clamp_to_bounds(weights: Sequence[float]) -> np.ndarray:
    """Clip into [MIN_WEIGHT, MAX_WEIGHT] and spread the residual until the sum is 1."""
    w = np.asarray(weights, dtype=float)
    if w.size * MIN_WEIGHT > 1 or w.size * MAX_WEIGHT < 1:
        raise InvalidWeightsError(f"cannot fit {w.size} weights into the bounds")
    for _ in range(100):
        w = np.clip(w, MIN_WEIGHT, MAX_WEIGHT)
        residual = 1.0 - w.sum()
        if abs(residual) <= SUM_TOLERANCE:
            break
        room = (MAX_WEIGHT - w) if residual > 0 else (w - MIN_WEIGHT)
        w = w + residual * room / room.sum()
    return w


def optimize(
    scores: Sequence[float],
    target_weights: Sequence[float] = DEFAULT_TARGET,
    alpha: float = 0.5,
    iterations: int = 10000,
    tolerance: float = 1e-8,
    rng: Optional[np.random.Generator] = None,
    cooling_rate: float = 0.995,
    step: float = 0.05,
) -> OptimizationResult:
    s = _vector(scores, "scores")
    t = normalize_weights(_vector(target_weights, "target_weights"))
    if s.size != t.size:
        raise InvalidWeightsError(f"{s.size} scores but {t.size} target weights")
    if not 0 <= alpha <= 1:
        raise InvalidWeightsError(f"alpha must lie in [0, 1], got {alpha}")
    if rng is None:
        rng = np.random.default_rng()

    weights = t.copy()
    best = t.copy()
    best_objective = objective(best, s, t, alpha)
    temperature = 1.0

    iteration = 0
    for iteration in range(1, iterations + 1):
        candidate = normalize_weights(neighbor(weights, rng, step))
        value = objective(candidate, s, t, alpha)
        delta = value - best_objective
        if delta > 0 or rng.random() < math.exp(delta / temperature):
            weights = candidate
            if value > best_objective:
                best, best_objective = candidate, value

        temperature *= cooling_rate
        if temperature < tolerance:
            break

    final = clamp_to_bounds(best)
    logger.debug("Annealing stopped after %d iterations at T=%.3g", iteration, temperature)
    return OptimizationResult(
        weights=tuple(float(x) for x in final),
        objective=objective(final, s, t, alpha),
        score=float(np.dot(final, s)),
        target_weights=tuple(float(x) for x in t),
        alpha=alpha,
        iterations_run=iteration,
    )


def adaptive_alpha(scores: Sequence[float], low: float = 0.3, high: float = 0.7) -> float:
    """Map the spread of the scores into [low, high]; wider spread favours the scores."""
    variance = float(np.var(np.asarray(scores, dtype=float)))
    normalized = min(1.0, max(0.0, variance / 2))
    return low + normalized * (high - low)


def strategy_alpha(strategy: str, scores: Sequence[float]) -> float:
    if strategy == "adaptive":
        return adaptive_alpha(scores)
    try:
        return STRATEGY_ALPHAS[strategy]
    except KeyError:
        raise ValueError(f"unknown strategy {strategy!r}; choose from {', '.join(STRATEGIES)}") from None


def optimize_strategy(
    scores: Sequence[float],
    strategy: str = "balanced",
    target_weights: Sequence[float] = DEFAULT_TARGET,
    **kwargs,
) -> OptimizationResult:
    return optimize(scores, target_weights, strategy_alpha(strategy, scores), **kwargs)


def max_score_allocation(scores: Sequence[float]) -> Tuple[Tuple[float, ...], float]:
    """Everything on the best score, the floor weight on the rest."""
    s = _vector(scores, "scores")
    w = np.full(s.size, MIN_WEIGHT)
    w[int(np.argmax(s))] = 1 - MIN_WEIGHT * (s.size - 1)
    return tuple(float(x) for x in w), float(np.dot(w, s))


def compare_to_max(result: OptimizationResult, scores: Sequence[float]) -> Dict[str, Optional[float]]:
    """How much portfolio score the preference for balance gives up."""
    _, best_score = max_score_allocation(scores)
    sacrifice = None if best_score == 0 else 1 - result.score / best_score
    return {"max_possible_score": best_score, "sacrifice_for_balance": sacrifice}


def recommendations(result: OptimizationResult, threshold: float = 0.05) -> List[str]:
    notes = []
    first_diff = result.weights[0] - result.target_weights[0]
    if first_diff > threshold:
        notes.append("Reduce the first index and spread the weight over the others to diversify.")
    elif first_diff < -threshold:
        notes.append("Increase the first index for steadier returns.")
    if result.score < 0:
        notes.append("Warning: the expected portfolio Sharpe ratio is negative.")
    return notes
