import argparse
import logging
import random
import signal
import sys
import threading
from typing import Optional

from layout import LayoutError, load_layout
from optimizer import AnnealingResult, Optimizer
from print_stats import print_layout, print_layout_scores
from quartads import load_corpus, prepare_quartads, trim_to_coverage
from scorer import PenaltyScorer
from user_profile import ConfigError, keyboard_path, load_locale, load_user, locale_path


def setup_logging(debug: bool = False) -> None:
    """Set up logging for the script."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description="Generate a personalized keyboard layout.")
    parser.add_argument("user", type=str, help="Path to the user profile JSON file")
    parser.add_argument("-c", "--config-dir", type=str, default=".",
                        help="Directory holding the keyboards/ and locale/ folders")
    parser.add_argument("-l", "--layout", type=str, default=None, help="Override the keyboard name from the profile")
    parser.add_argument("-i", "--iterations", type=int, default=None,
                        help="Number of iterations (default: derived from the number of swappable keys)")
    parser.add_argument("-s", "--swaps", type=int, default=3, help="Maximum key swaps per iteration")
    parser.add_argument("-p", "--parallelism", type=int, default=1, help="Candidates scored concurrently per batch")
    parser.add_argument("-t", "--top", type=int, default=1, help="Number of best layouts to report")
    parser.add_argument("-a", "--attempts", type=int, default=1, help="Independent annealing runs; the best is kept")
    parser.add_argument("--t0", type=float, default=15.0, help="Initial temperature (<= 0 to estimate it)")
    parser.add_argument("--coverage", type=int, default=100, help="Percentage of quartad occurrences to score")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--high-keys", type=int, default=0, help="Show the N worst quartads per rule")
    parser.add_argument("--logfile", type=str, default=None, help="Append each new best layout to this file")
    parser.add_argument("--no-progress", action="store_true", help="Disable the progress bar")
    parser.add_argument("-d", "--debug", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def install_interrupt_handler(stop_event: threading.Event) -> None:
    """First Ctrl+C stops the search at the next batch boundary; a second one aborts."""

    def handler(signum, frame):
        if stop_event.is_set():
            raise KeyboardInterrupt
        logging.warning("Received interrupt signal, finishing with the best layout found so far...")
        stop_event.set()

    signal.signal(signal.SIGINT, handler)


def generate(args: argparse.Namespace, stop_event: Optional[threading.Event] = None) -> Optional[AnnealingResult]:
    user = load_user(args.user)
    locale = load_locale(locale_path(args.config_dir, user.locale))
    layout = load_layout(keyboard_path(args.config_dir, args.layout or user.keyboard), user, locale)
    text = load_corpus(user.corpus)

    info = prepare_quartads(text, layout, locale, user.required)
    quartads = trim_to_coverage(info.quartads, args.coverage)
    scorer = PenaltyScorer(quartads, user.penalties)
    print(layout.render(costs=True))
    print_layout(layout)

    rng = random.Random(args.seed)
    stop_event = stop_event or threading.Event()
    best: Optional[AnnealingResult] = None
    for attempt in range(args.attempts):
        if stop_event.is_set():
            break
        optimizer = Optimizer(
            layout,
            scorer,
            iterations=args.iterations,
            max_swaps=args.swaps,
            parallelism=args.parallelism,
            top_layouts=args.top,
            t0=args.t0 if args.t0 > 0 else None,
            rng=rng,
            stop_event=stop_event,
            progress=not args.no_progress,
        )
        result = optimizer.optimize()
        logging.info("Attempt %d: penalty %.0f", attempt + 1, result.best_penalty)

        if best is None or result.best_penalty < best.best_penalty:
            best = result
            logging.info("New best layout (penalty %.0f)", best.best_penalty)
            if args.logfile:
                with open(args.logfile, "a") as f:
                    f.write(f"{best.best_penalty} @{args.coverage}\n")
                    f.write(best.best_layout.render() + "\n")

    if best is not None:
        print_layout_scores(best, scorer, show_high_keys=args.high_keys)
    return best


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(args.debug)
    stop_event = threading.Event()
    install_interrupt_handler(stop_event)
    try:
        generate(args, stop_event)
    except (ConfigError, LayoutError) as e:
        logging.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
