from abc import ABC
import logging
import random
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from math import ceil, exp, log
from typing import List, Optional, Tuple

from tqdm import tqdm

from layout import Layout
from scorer import PenaltyResult, PenaltyScorer

logger = logging.getLogger(__name__)


class CoolingSchedule:
    """
    Exponential cooling: T(i) = t0 * exp(-i * k / N).

    Higher t0 and a lower k/N ratio favour exploration; a lower t0 and a
    higher ratio favour refining the best layouts found so far.
    """

    def __init__(self, iterations: int, t0: float = 15.0, k: Optional[float] = None, p0: float = 1.0) -> None:
        if iterations < 1:
            raise ValueError(f"iterations must be positive, got {iterations}")
        self.n = iterations
        self.t0 = t0
        self.k = iterations / 2000.0 if k is None else k
        self.p0 = p0
        self.kn = self.k / self.n

    def temperature(self, i: int) -> float:
        return self.t0 * exp(-i * self.kn)

    def cutoff_probability(self, delta: float, i: int) -> float:
        return self.p0 * exp(-delta / self.temperature(i))

    def accept_transition(self, delta: float, i: int, rng: random.Random) -> bool:
        """Metropolis criterion: downhill always, uphill with probability exp(-delta / T)."""
        if delta < 0:
            return True
        return rng.random() < self.cutoff_probability(delta, i)

    def simulation_range(self) -> range:
        return range(1, self.n + 1)


@dataclass
class AnnealingResult:
    best_layout: Layout
    best_penalty: float
    best_results: List[PenaltyResult]
    initial_penalty: float
    iterations_run: int = 0
    interrupted: bool = False
    top_layouts: List[Tuple[float, Layout]] = field(default_factory=list)


def get_stopping_point(layout: Layout) -> int:
    """
    Default iteration count: enough random swaps to expect every pair of
    swappable keys to have been tried once (coupon collector bound).
    """
    n = len(layout.swappable)
    swaps = n * (n - 1) / 2
    if swaps < 2:
        return 1
    euler_mascheroni = 0.5772156649
    return ceil(swaps * (log(swaps) + euler_mascheroni) + 0.5)


class IOptimizer(ABC):
    def optimize(self) -> AnnealingResult:
        ...


class Optimizer(IOptimizer):
    def __init__(
        self,
        layout: Layout,
        scorer: PenaltyScorer,
        iterations: Optional[int] = None,
        max_swaps: int = 3,
        parallelism: int = 1,
        top_layouts: int = 1,
        t0: Optional[float] = 15.0,
        rng: Optional[random.Random] = None,
        stop_event: Optional[threading.Event] = None,
        progress: bool = True,
    ):
        if max_swaps < 1:
            raise ValueError(f"max_swaps must be at least 1, got {max_swaps}")
        if parallelism < 1:
            raise ValueError(f"parallelism must be at least 1, got {parallelism}")
        self.layout = layout
        self.scorer = scorer
        self.max_swaps = max_swaps
        self.parallelism = parallelism
        self.top_count = max(1, top_layouts)
        self.rng = rng or random.Random()
        self.stop_event = stop_event or threading.Event()
        self.progress = progress

        self.iterations = iterations if iterations is not None else get_stopping_point(layout)
        if t0 is None:
            t0 = self.get_initial_temperature(x0=0.8)
        self.schedule = CoolingSchedule(self.iterations, t0=t0)

    def mutate(self, layout: Layout) -> int:
        """Swap 1..max_swaps random pairs of distinct swappable keys. Returns the swap count."""
        swappable = layout.swappable
        if len(swappable) < 2:
            return 0
        num_swaps = self.rng.randint(1, self.max_swaps)
        for _ in range(num_swaps):
            i = self.rng.randrange(len(swappable))
            j = self.rng.randrange(len(swappable) - 1)
            if j >= i:
                j += 1
            layout.swap(swappable[i], swappable[j])
        return num_swaps

    def get_initial_temperature(self, x0: float, sample_size: int = 1000) -> float:
        """
        Estimate the initial temperature T0 such that the average uphill move Δ has acceptance probability x0,
        i.e. T0 = -avg(Δ) / log(x0).
        """
        logger.info("Estimating initial temperature...")

        current_fitness = self.scorer.get_fitness(self.layout)
        swappable = self.layout.swappable
        all_pairs = [(a, b) for n, a in enumerate(swappable) for b in swappable[n + 1 :]]
        swap_samples = self.rng.sample(all_pairs, min(sample_size, len(all_pairs)))

        uphill_deltas = []
        for a, b in swap_samples:
            candidate = self.layout.clone()
            candidate.swap(a, b)
            delta = self.scorer.get_fitness(candidate) - current_fitness
            if delta > 0:
                uphill_deltas.append(delta)

        if uphill_deltas:
            avg_delta = sum(uphill_deltas) / len(uphill_deltas)
            t0 = -avg_delta / log(x0)
        else:
            t0 = 1.0

        logger.info("Initial temperature determined: t0 = %s", t0)
        return t0

    def _keep_top(self, top: List[Tuple[float, Layout]], penalty: float, layout: Layout) -> List[Tuple[float, Layout]]:
        top.append((penalty, layout))
        top.sort(key=lambda entry: entry[0])
        return top[: self.top_count]

    def _candidates(self, accepted: Layout, count: int) -> List[Layout]:
        # Mutations are drawn here, on the calling thread, so the random
        # stream does not depend on how workers are scheduled.
        candidates = []
        for _ in range(count):
            candidate = accepted.clone()
            self.mutate(candidate)
            candidates.append(candidate)
        return candidates

    def simulated_annealing(self) -> AnnealingResult:
        accepted = self.layout.clone()
        accepted_penalty, accepted_results = self.scorer.calculate_penalty(accepted)
        result = AnnealingResult(
            best_layout=accepted.clone(),
            best_penalty=accepted_penalty,
            best_results=accepted_results,
            initial_penalty=accepted_penalty,
        )
        top = [(accepted_penalty, result.best_layout)]
        logger.info("Initial penalty: %.2f over %d iterations", accepted_penalty, self.iterations)

        iterations = list(self.schedule.simulation_range())
        executor = ThreadPoolExecutor(max_workers=self.parallelism) if self.parallelism > 1 else None
        bar = tqdm(total=len(iterations), desc="Annealing", disable=not self.progress)
        try:
            for start in range(0, len(iterations), self.parallelism):
                if self.stop_event.is_set():
                    logger.warning("Stop requested after %d iterations, keeping best layout so far", result.iterations_run)
                    result.interrupted = True
                    break

                batch = iterations[start : start + self.parallelism]
                candidates = self._candidates(accepted, len(batch))
                if executor is not None:
                    scored = list(executor.map(self.scorer.calculate_penalty, candidates))
                else:
                    scored = [self.scorer.calculate_penalty(c) for c in candidates]

                for i, candidate, (penalty, results) in zip(batch, candidates, scored):
                    if self.schedule.accept_transition(penalty - accepted_penalty, i, self.rng):
                        accepted, accepted_penalty, accepted_results = candidate, penalty, results
                        top = self._keep_top(top, penalty, candidate)
                        if penalty < result.best_penalty:
                            result.best_layout = candidate
                            result.best_penalty = penalty
                            result.best_results = results
                            logger.debug("Iteration %d: new best penalty %.2f", i, penalty)

                result.iterations_run += len(batch)
                bar.update(len(batch))
                bar.set_postfix(penalty=f"{accepted_penalty:.0f}", best=f"{result.best_penalty:.0f}")
        finally:
            bar.close()
            if executor is not None:
                executor.shutdown(wait=True)

        result.top_layouts = top
        logger.info(
            "Annealing finished after %d iterations: best penalty %.2f (initial %.2f)",
            result.iterations_run, result.best_penalty, result.initial_penalty,
        )
        return result

    def optimize(self) -> AnnealingResult:
        return self.simulated_annealing()
