import argparse
import logging
import math
import sys
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from itertools import repeat

import numpy as np
import matplotlib.pyplot as plt
from scipy.stats import linregress

from percolation import Percolation, percolation_trial, random_sites, simulate
import visualize_percolation

LOG = logging.getLogger(__name__)

# two-sided 95% normal quantile
CONFIDENCE_Z = 1.96
PROGRESS_EVERY = 50
# finite-size scaling exponent, -1/nu with nu = 4/3 for 2D percolation
DEFAULT_EXPONENT = -3 / 4
ENGINES = ("python", "numba")


def run_trial(n, rng):
    """Threshold of one trial: open uniformly random sites until the grid percolates."""
    simulator = Percolation(n)
    for row, col in random_sites(rng, n):
        simulator.open(row, col)
        if simulator.percolates():
            break
    return simulator.open_count() / (n * n)


def run_trial_numba(n, rng):
    """Threshold of one trial on the compiled kernel, opening sites in a random permutation."""
    order = rng.permutation(n * n)
    opened = percolation_trial(order, n)
    if opened < 1:
        raise ValueError(f"{n}x{n} grid did not percolate after opening the whole site order")
    return opened / (n * n)


_TRIALS = {"python": run_trial, "numba": run_trial_numba}


class PercolationStats:
    """
    Monte Carlo estimate of the percolation threshold of an n x n grid.

    All trials are run at construction. Every trial gets its own generator
    spawned from ``rng``, so a fixed seed gives the same samples whatever the
    number of workers.

    The spread is the population standard deviation, and the 95% confidence
    interval is ``mean -/+ 1.96 * stddev / sqrt(trials)``. With a single trial
    the stddev is 0 and both bounds equal the mean.
    """

    def __init__(self, n: int, trials: int, rng=None, workers: int = 1, engine: str = "python"):
        if (n <= 0 or trials <= 0):
            raise ValueError("grid size n and trials count must be positive integers")
        if engine not in _TRIALS:
            raise ValueError(f"unknown engine {engine!r}, expected one of {ENGINES}")
        if workers < 1:
            raise ValueError("workers must be >= 1")

        self.gridSize = n
        self.trialCount = trials
        self.engine = engine

        rngs = np.random.default_rng(rng).spawn(trials)
        trial = _TRIALS[engine]
        results = np.empty(trials, dtype=np.float64)

        LOG.debug("running %d trials on a %dx%d grid (engine=%s, workers=%d)",
                  trials, n, n, engine, workers)
        if workers == 1:
            outcomes = map(trial, repeat(n), rngs)
            self._collect(outcomes, results)
        else:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                self._collect(pool.map(trial, repeat(n), rngs), results)

        results.flags.writeable = False
        self.trialResults = results
        LOG.debug("n=%d: mean=%.6f stddev=%.6f", n, self.mean(), self.stddev())

    def _collect(self, outcomes, results):
        for i, result in enumerate(outcomes):
            results[i] = result
            if (i + 1) % PROGRESS_EVERY == 0:
                LOG.info("Progress: %d/%d trials", i + 1, self.trialCount)

    @property
    def threshold_samples(self) -> np.ndarray:
        return self.trialResults

    @property
    def n(self) -> int:
        return self.gridSize

    @property
    def trials(self) -> int:
        return self.trialCount

    def mean(self) -> float:
        return float(np.mean(self.trialResults))

    def stddev(self) -> float:
        return float(np.std(self.trialResults))

    def _margin(self):
        return (CONFIDENCE_Z * self.stddev()) / math.sqrt(self.trialCount)

    def confidence_low(self) -> float:
        return self.mean() - self._margin()

    def confidence_high(self) -> float:
        return self.mean() + self._margin()

    def confidence_interval(self):
        return self.confidence_low(), self.confidence_high()

    def report(self):
        print("=" * 60)
        print(f"STATS REPORT (n = {self.gridSize}, trials = {self.trialCount})")
        print("=" * 60)

        print(f"mean value of critical value pc = {self.mean(): .6f}")
        print(f"std value of critical value pc = {self.stddev(): .6f}")
        lo, hi = self.confidence_interval()
        print(f"the 95% confidence interval is {lo} ~ {hi}")
        print("=" * 60)


def sweep(sizes, trials, rng=None, workers=1, engine="python"):
    """Runs PercolationStats for every grid size in ``sizes``, each on its own generator."""
    sizes = [int(n) for n in sizes]
    rngs = np.random.default_rng(rng).spawn(len(sizes))
    results = []
    for n, child in zip(sizes, rngs):
        LOG.info("simulate n = %d", n)
        results.append(PercolationStats(n, trials, rng=child, workers=workers, engine=engine))
    return results


@dataclass(frozen=True)
class Extrapolation:
    pc_inf: float
    slope: float
    r_squared: float
    exponent: float = DEFAULT_EXPONENT


def extrapolate_threshold(sizes, means, exponent=DEFAULT_EXPONENT):
    """
    Finite-size scaling fit of ``mean = slope * L**exponent + pc_inf``.

    The intercept is the estimate of the threshold of the infinite lattice.
    Needs at least two distinct sizes.
    """
    sizes = np.asarray(sizes, dtype=float)
    means = np.asarray(means, dtype=float)
    if sizes.shape != means.shape:
        raise ValueError("sizes and means must have the same length")
    if len(np.unique(sizes)) < 2:
        raise ValueError("at least two distinct grid sizes are needed to extrapolate")
    if np.any(sizes <= 0):
        raise ValueError("grid sizes must be positive")

    fit = linregress(sizes ** exponent, means)
    return Extrapolation(
        pc_inf=float(fit.intercept),
        slope=float(fit.slope),
        r_squared=float(fit.rvalue ** 2),
        exponent=exponent,
    )


def parse_args(argv):
    parser = argparse.ArgumentParser(
        description="Run a Monte Carlo simulation for 2D site percolation."
    )
    parser.add_argument('n', type=int, nargs='?', default=None,
                        help="Size of the square grid (n x n); not needed with --sweep.")
    parser.add_argument('trials', type=int, help="The number of Monte Carlo trials to perform.")
    parser.add_argument('--sweep', type=int, nargs=3, metavar=('LMIN', 'LMAX', 'LSTEP'), default=None,
                        help="Sweep grid sizes from LMIN to LMAX in steps of LSTEP and extrapolate "
                             "the threshold; takes the place of n.")
    parser.add_argument('--exponent', type=float, default=DEFAULT_EXPONENT,
                        help="Scaling exponent used for the extrapolation.")
    parser.add_argument('--seed', type=int, default=None, help="Seed for the random generator.")
    parser.add_argument('--workers', type=int, default=1, help="Number of worker threads.")
    parser.add_argument('--engine', choices=ENGINES, default="python", help="Trial engine.")
    parser.add_argument('--plot', action='store_true', help="Show the figures.")
    parser.add_argument('-v', '--verbose', action='store_true', help="Log progress.")

    args = parser.parse_args(argv)
    if args.trials <= 0:
        parser.error("trials count must be a positive integer")
    if args.workers < 1:
        parser.error("--workers must be >= 1")
    if args.sweep is None:
        if args.n is None:
            parser.error("either n or --sweep LMIN LMAX LSTEP is required")
        if args.n <= 0:
            parser.error("grid size n must be a positive integer")
    else:
        lmin, lmax, lstep = args.sweep
        if lmin <= 0 or lmax < lmin or lstep <= 0:
            parser.error("--sweep needs 0 < LMIN <= LMAX and LSTEP > 0")
    return args


def main(argv=None):
    args = parse_args(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    rng = np.random.default_rng(args.seed)

    if args.sweep is None:
        stats = PercolationStats(args.n, args.trials, rng=rng, workers=args.workers, engine=args.engine)
        stats.report()
        if args.plot:
            visualize_percolation.plot_threshold_histogram(stats.threshold_samples, n=args.n)
            visualize_percolation.draw_grid(simulate(args.n, rng=rng))
            plt.show()
        return 0

    lmin, lmax, lstep = args.sweep
    print("Starting Monte Carlo Percolation Analysis...")
    print(f"System sizes (N): {lmin} to {lmax}, step {lstep}")
    print(f"Trials per size: {args.trials}")

    sizes = list(range(lmin, lmax + 1, lstep))
    results = sweep(sizes, args.trials, rng=rng, workers=args.workers, engine=args.engine)
    for stats in results:
        stats.report()

    means = [stats.mean() for stats in results]
    stds = [stats.stddev() for stats in results]
    print("\n--- Simulation Complete ---")
    fit = None
    if len(sizes) >= 2:
        fit = extrapolate_threshold(sizes, means, exponent=args.exponent)
        print(f"\n--- Extrapolation Results (exponent {fit.exponent:.2f}) ---")
        print(f"pc(infinity) = {fit.pc_inf:.6f}, R^2 = {fit.r_squared:.4f}")
        print("-------------------------------------------------------")

    if args.plot:
        visualize_percolation.plot_percolation_stats(sizes, means, stds)
        if fit is not None:
            visualize_percolation.plot_extrapolation(sizes, means, fit)
        plt.show()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
