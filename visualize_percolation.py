import numpy as np
import matplotlib.pyplot as plt
from matplotlib.colors import ListedColormap

# blocked, open, full
GRID_COLOURS = ListedColormap(['black', 'white', [0.4, 0.6, 1.0]])


def draw_grid(perc, title=None):
    """
    Draw the current state of a Percolation grid.

    Blocked sites are black, open sites white and full sites blue. Row 1 is
    drawn at the top.

    Args:
        perc: Percolation instance
        title: Plot title, defaults to the grid size and open count
    """
    n = perc.n
    state = perc.grid.astype(np.int8) + perc.full_mask().astype(np.int8)

    fig, ax = plt.subplots(figsize=(8, 8), dpi=100)
    ax.imshow(state, cmap=GRID_COLOURS, vmin=0, vmax=2, interpolation='nearest')

    if title is None:
        title = f"{n}x{n} grid, {perc.open_count()} open sites"
        if perc.percolates():
            title += " (percolates)"
    ax.set_title(title, fontsize=14)
    ax.set_xticks([])
    ax.set_yticks([])
    plt.tight_layout()
    return fig, ax


def plot_threshold_histogram(samples, n=None, bins=30):
    """Histogram of the per-trial thresholds with the sample mean marked."""
    samples = np.asarray(samples, dtype=float)
    mean = float(np.mean(samples))

    fig, ax = plt.subplots(figsize=(10, 6))
    ax.hist(samples, bins=bins, color='steelblue', alpha=0.8, edgecolor='black')
    ax.axvline(mean, color='r', linestyle='--', label=f'mean p_c = {mean:.4f}')
    ax.set_xlabel("Fraction of open sites at percolation", fontsize=12)
    ax.set_ylabel("Trials", fontsize=12)
    label = f" (n = {n}, trials = {len(samples)})" if n is not None else ""
    ax.set_title("Percolation threshold samples" + label, fontsize=14)
    ax.grid(True, alpha=0.3)
    ax.legend(loc='best')
    plt.tight_layout()
    return fig, ax


def plot_percolation_stats(L_values, means, stds):
    """
    Error bar plot of the mean critical probability against the grid size.
    """
    fig, ax = plt.subplots(figsize=(10, 6))

    ax.errorbar(
        L_values,
        means,
        yerr=stds,
        fmt='o-',               # Circle markers, connected line
        color='blue',
        ecolor='blue',
        capsize=5,
        label=r'Mean $p_c \pm \sigma$'
    )

    ax.set_xlabel('Linear System Size ($L$)', fontsize=14)
    ax.set_ylabel('Mean Critical Probability ($\\bar{p}_c$)', fontsize=14)
    ax.set_title('Mean $p_c$ vs. System Size ($L$)', fontsize=16)

    ax.grid(True, linestyle='--', alpha=0.6)
    ax.legend(loc='best')
    return fig, ax


def plot_extrapolation(L_values, means, fit):
    """
    Plots mean critical probability vs L^(exponent) together with the fitted
    scaling line, and marks the extrapolated pc(infinity) at X = 0.

    Args:
        L_values: grid sizes
        means: mean threshold per grid size
        fit: Extrapolation returned by percolation_stats.extrapolate_threshold
    """
    L_values = np.asarray(L_values, dtype=float)
    means = np.asarray(means, dtype=float)
    X_scaling = L_values ** fit.exponent

    fig, ax = plt.subplots(figsize=(10, 6))

    X_plot_max = float(np.max(X_scaling) * 1.05)
    X_line = np.linspace(0.0, X_plot_max, 100)
    Y_line = fit.slope * X_line + fit.pc_inf

    ax.plot(X_line, Y_line, color='blue', linestyle='--',
            label=f"Fit: $p_c(\\infty)$ = {fit.pc_inf:.5f}, $R^2$ = {fit.r_squared:.4f}")
    ax.plot(X_scaling, means, 'o', color='blue', markersize=8, label="Data $\\bar{p}_c(L)$")
    ax.plot(0, fit.pc_inf, 'x', color='red', markersize=10)

    ax.set_xlabel(f'$L^{{{fit.exponent:.2f}}}$', fontsize=14)
    ax.set_ylabel('Mean Critical Probability ($\\bar{p}_c$)', fontsize=14)
    ax.set_title('Finite-Size Scaling Extrapolation', fontsize=16)
    ax.set_xlim(-0.05 * X_plot_max, X_plot_max)

    ax.grid(True, linestyle='--', alpha=0.6)
    ax.legend(loc='best')
    return fig, ax
