import argparse
import logging
import sys

import numpy as np
from numba import njit

from union_find import WeightedQuickUnionUF, find_root, union_by_size

LOG = logging.getLogger(__name__)


class Percolation:
    """
    An n-by-n grid of sites, all blocked at creation, opened one at a time.

    Connectivity to the top and to the bottom row is kept as two boolean
    flags on each component root and OR-merged whenever components join.
    There are no virtual top/bottom elements in the forest, so a site that
    only reaches the bottom row is never reported as full, even after the
    grid percolates.
    """

    def __init__(self, n: int):
        if n <= 0: raise ValueError("n must be a positive integer")

        self.gridSize = n
        self.gridSquare = n * n
        self.grid = np.zeros((n, n), dtype=bool)

        self.uf = WeightedQuickUnionUF(self.gridSquare)
        # only meaningful at roots
        self.toTop = np.zeros(self.gridSquare, dtype=bool)
        self.toBottom = np.zeros(self.gridSquare, dtype=bool)

        self.openSite = 0
        self._percolates = False

    # open the site[row, col] if it's not open yet
    def open(self, row: int, col: int) -> None:
        self.validState(row, col)

        if self.grid[row - 1][col - 1]:
            return

        self.grid[row - 1][col - 1] = True
        self.openSite += 1

        idx = self.flattenGrid(row, col)
        self.toTop[idx] = row == 1
        self.toBottom[idx] = row == self.gridSize

        root = idx
        for nrow, ncol in ((row - 1, col), (row + 1, col), (row, col - 1), (row, col + 1)):
            if self.isOnGrid(nrow, ncol) and self.grid[nrow - 1][ncol - 1]:
                root = self._connect(idx, self.flattenGrid(nrow, ncol))

        if self.toTop[root] and self.toBottom[root]:
            self._percolates = True

    def _connect(self, p: int, q: int) -> int:
        rootP = self.uf.find(p)
        rootQ = self.uf.find(q)
        top = self.toTop[rootP] or self.toTop[rootQ]
        bottom = self.toBottom[rootP] or self.toBottom[rootQ]

        root = self.uf.union(rootP, rootQ)
        self.toTop[root] = top
        self.toBottom[root] = bottom
        return root

    # is site[row, col] open?
    def is_open(self, row: int, col: int) -> bool:
        self.validState(row, col)
        return bool(self.grid[row - 1][col - 1])

    # is site[row, col] connected to the top row through open sites?
    def is_full(self, row: int, col: int) -> bool:
        self.validState(row, col)
        return bool(self.toTop[self.uf.find(self.flattenGrid(row, col))])

    def percolates(self) -> bool:
        return self._percolates

    def open_count(self) -> int:
        return self.openSite

    number_of_open_sites = open_count

    @property
    def n(self) -> int:
        return self.gridSize

    def validState(self, row: int, col: int):
        if not self.isOnGrid(row, col):
            raise IndexError(f"site ({row}, {col}) is outside the {self.gridSize}x{self.gridSize} grid")

    def flattenGrid(self, row: int, col: int) -> int:
        return self.gridSize * (row - 1) + (col - 1)

    def isOnGrid(self, row: int, col: int) -> bool:
        return 1 <= row <= self.gridSize and 1 <= col <= self.gridSize

    def full_mask(self) -> np.ndarray:
        """Boolean (n, n) array of the sites that are currently full."""
        n = self.gridSize
        mask = np.zeros((n, n), dtype=bool)
        for i in range(n):
            for j in range(n):
                if self.grid[i][j]:
                    mask[i][j] = self.toTop[self.uf.find(i * n + j)]
        return mask


@njit(cache=True, nogil=True)
def percolation_trial(order, n):
    """
    Opens sites in the given order on a fresh n x n grid and returns how many
    were open when the grid first percolated.

    ``order`` holds flattened 0-based site ids. Same flag rule as Percolation.
    """
    N = n * n
    parent = np.arange(N, dtype=np.int64)
    size = np.ones(N, dtype=np.int64)
    to_top = np.zeros(N, dtype=np.bool_)
    to_bottom = np.zeros(N, dtype=np.bool_)
    open_flags = np.zeros(N, dtype=np.bool_)
    opened = 0

    for site in order:
        if open_flags[site]:
            continue
        open_flags[site] = True
        opened += 1
        row = site // n
        col = site % n
        to_top[site] = row == 0
        to_bottom[site] = row == n - 1

        root = site
        for d in range(4):
            nb = -1
            if d == 0 and row > 0:
                nb = site - n
            elif d == 1 and row < n - 1:
                nb = site + n
            elif d == 2 and col > 0:
                nb = site - 1
            elif d == 3 and col < n - 1:
                nb = site + 1
            if nb < 0 or not open_flags[nb]:
                continue
            ra = find_root(parent, site)
            rb = find_root(parent, nb)
            top = to_top[ra] or to_top[rb]
            bottom = to_bottom[ra] or to_bottom[rb]
            root = union_by_size(parent, size, ra, rb)
            to_top[root] = top
            to_bottom[root] = bottom

        if to_top[root] and to_bottom[root]:
            return opened
    return -1


def random_sites(rng, n, batch=None):
    """Yields uniformly random (row, col) pairs in [1, n] x [1, n], forever."""
    batch = batch or max(n * n, 16)
    while True:
        for row, col in rng.integers(1, n + 1, size=(batch, 2)).tolist():
            yield row, col


def simulate(n, rng=None, verbose=False):
    """
    Opens uniformly random sites on a fresh n x n grid until it percolates
    and returns the grid.

    :param rng: numpy Generator, int seed or None
    :param verbose: print every site opened
    """
    rng = np.random.default_rng(rng)
    perc = Percolation(n)
    for row, col in random_sites(rng, n):
        if verbose:
            print(f"Opening ({row}, {col})")
        perc.open(row, col)
        if perc.percolates():
            break
    LOG.info("%dx%d grid percolated with %d open sites", n, n, perc.open_count())
    return perc


def parse_args(argv):
    parser = argparse.ArgumentParser(
        description="Open random sites of an n x n grid until it percolates."
    )
    parser.add_argument('n', type=int, help="Size of the square grid (n x n).")
    parser.add_argument('--seed', type=int, default=None, help="Seed for the random generator.")
    parser.add_argument('-v', '--verbose', action='store_true', help="Print every site as it is opened and log at INFO.")
    args = parser.parse_args(argv)
    if args.n <= 0:
        parser.error("n must be a positive integer")
    return args


def main(argv=None):
    args = parse_args(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    perc = simulate(args.n, rng=args.seed, verbose=args.verbose)
    threshold = perc.open_count() / (args.n * args.n)
    print(perc.open_count())
    print(args.n)
    print(threshold)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
