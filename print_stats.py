from typing import Dict, Iterable, List

from layout import Layout
from optimizer import AnnealingResult
from scorer import PenaltyResult, PenaltyScorer

BAR_BLOCKS = " ▏▎▍▌▋▊▉"


class Watermark:
    """
    Tracks the highest total seen per rule (the lowest, for negative-weight
    rules) so progress bars can be drawn relative to it.
    """

    def __init__(self) -> None:
        self.penalty = 0.0
        self.rules: Dict[str, float] = {}

    def update(self, penalty: float, results: Iterable[PenaltyResult]) -> None:
        self.penalty = max(self.penalty, penalty)
        for r in results:
            mark = self.rules.get(r.name)
            if mark is None:
                self.rules[r.name] = r.total
            elif r.weight > 0:
                self.rules[r.name] = max(mark, r.total)
            else:
                self.rules[r.name] = min(mark, r.total)

    def percent(self, r: PenaltyResult) -> float:
        mark = self.rules.get(r.name, r.total)
        if mark == 0:
            return 0.0
        if r.weight < 0:
            return abs(mark - r.total) / abs(mark) * 100.0
        return r.total / mark * 100.0


def progress_bar(percent: float, length: int = 16) -> str:
    percent = min(max(percent, 0.0), 100.0)
    cells = length * percent / 100
    filled = int(cells)
    partial = int(cells * 8) % 8
    bar = "█" * filled
    if filled < length:
        bar += BAR_BLOCKS[partial]
        bar += " " * (length - filled - 1)
    return f"[{bar}]"


def format_penalty_results(penalty: float, results: List[PenaltyResult], watermark: Watermark) -> str:
    overall = penalty / watermark.penalty * 100.0 if watermark.penalty else 0.0
    lines = [f"  {f'Layout penalty: {penalty:.0f}':>30}: {progress_bar(overall)} {overall:.3g}%", ""]
    for r in results:
        pct = watermark.percent(r)
        lines.append(f"  {r.name:>30}: {progress_bar(pct)} {pct:.3g}%  ({r.total:.0f})")
    return "\n".join(lines)


def print_layout_scores(result: AnnealingResult, scorer: PenaltyScorer, show_high_keys: int = 0) -> None:
    """Print the retained layouts, best first, with their penalty breakdowns."""
    watermark = Watermark()
    scored = []
    for penalty, layout in result.top_layouts:
        penalty, results = scorer.calculate_penalty(layout)
        watermark.update(penalty, results)
        scored.append((penalty, results, layout))
    watermark.penalty = max(watermark.penalty, result.initial_penalty)

    improvement_pct = (
        (result.initial_penalty - result.best_penalty) / result.initial_penalty * 100
        if result.initial_penalty
        else 0.0
    )
    status = "interrupted" if result.interrupted else "finished"
    print(f"Search {status} after {result.iterations_run} iterations")
    print(f"Initial penalty: {result.initial_penalty:.0f}, best: {result.best_penalty:.0f} ({improvement_pct:+.2f}%)")

    for n, (penalty, results, layout) in enumerate(scored, start=1):
        print(f"\nBest layout #{n}:")
        print_layout(layout)
        print()
        print(format_penalty_results(penalty, results, watermark))
        if show_high_keys:
            for r in results:
                high = scorer.high_quartads(layout, r.name, show_high_keys)
                if high:
                    print(f"  {r.name}: " + ", ".join(f"{str(q)!r}={v:.0f}" for q, v in high))


def print_layout(layout: Layout, costs: bool = False) -> None:
    print(layout.render(costs=costs))
