import logging
import math

import numpy as np
import pytest

import percolation_stats
from percolation_stats import (
    CONFIDENCE_Z,
    Extrapolation,
    PercolationStats,
    extrapolate_threshold,
    main,
    parse_args,
    sweep,
)

# 2x2 grid: percolates after 2 sites with probability 1/3, otherwise after 3
TWO_BY_TWO_MEAN = (1 / 3) * 0.5 + (2 / 3) * 0.75


@pytest.mark.parametrize(
    "kwargs",
    [
        {"n": 0, "trials": 10},
        {"n": -3, "trials": 10},
        {"n": 5, "trials": 0},
        {"n": 5, "trials": -1},
        {"n": 5, "trials": 10, "engine": "gpu"},
        {"n": 5, "trials": 10, "workers": 0},
    ],
)
def test_rejects_invalid_arguments(kwargs):
    with pytest.raises(ValueError):
        PercolationStats(**kwargs)


@pytest.mark.parametrize("engine", ["python", "numba"])
def test_single_site_grid_always_has_threshold_one(engine):
    stats = PercolationStats(1, 20, rng=0, engine=engine)
    assert np.all(stats.threshold_samples == 1.0)
    assert stats.mean() == 1.0
    assert stats.stddev() == 0.0
    assert stats.confidence_interval() == (1.0, 1.0)


def test_single_trial_interval_collapses_to_mean():
    stats = PercolationStats(10, 1, rng=5)
    assert stats.stddev() == 0.0
    assert stats.confidence_low() == stats.mean() == stats.confidence_high()


@pytest.mark.parametrize("engine", ["python", "numba"])
def test_two_by_two_mean(engine):
    stats = PercolationStats(2, 10000, rng=2016, engine=engine)
    assert 0.4 < stats.mean() < 1.0
    assert stats.mean() == pytest.approx(TWO_BY_TWO_MEAN, abs=0.02)
    assert set(np.unique(stats.threshold_samples)) <= {0.5, 0.75}


def test_samples_are_fractions_of_the_grid():
    stats = PercolationStats(6, 40, rng=1)
    samples = stats.threshold_samples
    assert samples.shape == (40,)
    assert np.all((samples > 0) & (samples <= 1))
    assert np.allclose(samples * 36, np.round(samples * 36))


def test_samples_are_read_only():
    stats = PercolationStats(3, 5, rng=1)
    with pytest.raises(ValueError):
        stats.threshold_samples[0] = 0.5


def test_statistics_use_population_stddev():
    stats = PercolationStats(8, 60, rng=9)
    samples = stats.threshold_samples
    assert stats.mean() == pytest.approx(float(np.mean(samples)))
    assert stats.stddev() == pytest.approx(float(np.std(samples, ddof=0)))

    margin = CONFIDENCE_Z * stats.stddev() / math.sqrt(60)
    assert stats.confidence_low() == pytest.approx(stats.mean() - margin)
    assert stats.confidence_high() == pytest.approx(stats.mean() + margin)


@pytest.mark.parametrize("n, trials", [(2, 2), (5, 30), (20, 25)])
def test_confidence_interval_contains_mean(n, trials):
    stats = PercolationStats(n, trials, rng=n * trials)
    assert stats.confidence_low() <= stats.mean() <= stats.confidence_high()


def test_same_seed_gives_same_samples():
    first = PercolationStats(7, 30, rng=42)
    second = PercolationStats(7, 30, rng=np.random.default_rng(42))
    assert np.array_equal(first.threshold_samples, second.threshold_samples)


@pytest.mark.parametrize("engine", ["python", "numba"])
def test_workers_do_not_change_samples(engine):
    serial = PercolationStats(9, 24, rng=77, engine=engine)
    threaded = PercolationStats(9, 24, rng=77, workers=4, engine=engine)
    assert np.array_equal(serial.threshold_samples, threaded.threshold_samples)


def test_larger_grids_approach_known_threshold():
    stats = PercolationStats(50, 60, rng=3, engine="numba")
    assert 0.55 < stats.mean() < 0.64


def test_progress_is_logged(caplog):
    with caplog.at_level(logging.INFO, logger="percolation_stats"):
        PercolationStats(3, 100, rng=0)
    messages = [r.getMessage() for r in caplog.records]
    assert "Progress: 50/100 trials" in messages
    assert "Progress: 100/100 trials" in messages


def test_report(capsys):
    PercolationStats(4, 10, rng=0).report()
    out = capsys.readouterr().out
    assert "STATS REPORT" in out
    assert "mean value of critical value pc" in out
    assert "95% confidence interval" in out


def test_sweep_returns_one_result_per_size():
    results = sweep([2, 4, 6], 10, rng=1)
    assert [stats.n for stats in results] == [2, 4, 6]
    assert all(stats.trials == 10 for stats in results)


def test_extrapolate_recovers_intercept():
    sizes = np.array([10, 20, 40, 80, 160])
    means = 0.5927 + 0.3 * sizes ** -0.75
    fit = extrapolate_threshold(sizes, means)
    assert isinstance(fit, Extrapolation)
    assert fit.pc_inf == pytest.approx(0.5927)
    assert fit.slope == pytest.approx(0.3)
    assert fit.r_squared == pytest.approx(1.0)
    assert fit.exponent == percolation_stats.DEFAULT_EXPONENT


@pytest.mark.parametrize(
    "sizes, means",
    [
        ([10], [0.6]),
        ([10, 10], [0.6, 0.61]),
        ([10, 20], [0.6]),
        ([0, 20], [0.6, 0.6]),
    ],
)
def test_extrapolate_rejects_bad_input(sizes, means):
    with pytest.raises(ValueError):
        extrapolate_threshold(sizes, means)


def test_main_single_run(capsys):
    assert main(["5", "20", "--seed", "1"]) == 0
    assert "STATS REPORT (n = 5, trials = 20)" in capsys.readouterr().out


def test_main_sweep(capsys):
    assert main(["10", "--sweep", "4", "12", "4", "--seed", "1", "--engine", "numba"]) == 0
    out = capsys.readouterr().out
    assert out.count("STATS REPORT") == 3
    assert "pc(infinity) =" in out


def test_main_plot_shows_figures(monkeypatch, capsys):
    shown = []
    monkeypatch.setattr(percolation_stats.plt, "show", lambda: shown.append(True))
    assert main(["10", "--sweep", "4", "8", "4", "--seed", "2", "--plot"]) == 0
    assert shown == [True]
    assert len(percolation_stats.plt.get_fignums()) == 2


@pytest.mark.parametrize(
    "argv",
    [
        ["0", "10"],
        ["5", "0"],
        ["5", "10", "--workers", "0"],
        ["10"],
        ["10", "--sweep", "0", "8", "4"],
        ["10", "--sweep", "12", "4", "4"],
        ["10", "--sweep", "4", "20", "0"],
        ["10", "--sweep", "4", "20"],
        ["5", "10", "--engine", "gpu"],
    ],
)
def test_parse_args_rejects_invalid_input(argv):
    with pytest.raises(SystemExit):
        parse_args(argv)


def test_parse_args_sweep_form():
    args = parse_args(["5", "10", "--sweep", "4", "12", "4"])
    assert args.sweep == [4, 12, 4]
    assert args.trials == 10

    args = parse_args(["10", "--sweep", "4", "12", "4", "--exponent", "-0.5"])
    assert args.n is None
    assert args.exponent == -0.5


def test_main_sweep_takes_the_place_of_n(capsys):
    assert main(["5", "10", "--sweep", "4", "8", "4", "--seed", "3"]) == 0
    out = capsys.readouterr().out
    assert "System sizes (N): 4 to 8, step 4" in out
    assert "STATS REPORT (n = 4, trials = 10)" in out
    assert "STATS REPORT (n = 8, trials = 10)" in out
    assert "STATS REPORT (n = 5," not in out


def test_compiled_trial_that_never_percolates_is_an_error(monkeypatch):
    monkeypatch.setattr(percolation_stats, "percolation_trial", lambda order, n: -1)
    with pytest.raises(ValueError, match="did not percolate"):
        PercolationStats(3, 2, rng=0, engine="numba")
