import matplotlib.pyplot as plt
import pytest

from ffroll.plot_rolling import (
    ALL_SKIPPED_MESSAGE,
    NO_DATA_MESSAGE,
    plot_rolling_coefficients,
    plot_rolling_r_squared,
)
from ffroll.plot_styles import style
from ffroll.workflows import run_rolling_from_frames

FACTORS = ["Mkt-RF", "SMB", "HML"]


@pytest.fixture
def result(factor_frame):
    out = run_rolling_from_frames(factor_frame, FACTORS, window_size=30)
    out["inputs"]["model"] = "ff3"
    return out


def test_r_squared_chart(result):
    fig = plot_rolling_r_squared(result)
    ax = fig.axes[0]
    assert len(ax.lines) == 1
    assert len(ax.lines[0].get_xdata()) == len(result["results"])
    assert ax.get_title() == "Rolling R² (FF3, 30-day window)"
    plt.close(fig)


def test_coefficient_chart(result):
    fig = plot_rolling_coefficients(result, include_intercept=True)
    ax = fig.axes[0]
    # one line per factor + intercept + zero line
    assert len(ax.lines) == len(FACTORS) + 2
    labels = [t.get_text() for t in ax.get_legend().get_texts()]
    assert "Size (SMB)" in labels
    assert "Intercept (alpha)" in labels
    plt.close(fig)


def test_coefficient_chart_subset(result):
    fig = plot_rolling_coefficients(result, factors=["HML"])
    assert len(fig.axes[0].lines) == 2
    plt.close(fig)


def test_charts_show_no_data_state(factor_frame):
    empty = run_rolling_from_frames(factor_frame.iloc[:5], FACTORS, window_size=30)
    for plot in (plot_rolling_r_squared, plot_rolling_coefficients):
        fig = plot(empty)
        texts = [t.get_text() for t in fig.axes[0].texts]
        assert NO_DATA_MESSAGE in texts
        plt.close(fig)


def test_style_lookup():
    assert style("coefficient", "HML")["color"] == "C2"
    assert style("coefficient", "XYZ")["label"] == "XYZ"
    assert style("r_squared", "r_squared", label="fit")["label"] == "fit"
    with pytest.raises(ValueError):
        style("frontier", "HML")


def test_charts_distinguish_all_skipped_from_no_data(factor_frame):
    frame = factor_frame.copy()
    frame["SMB"] = 0.001
    failed = run_rolling_from_frames(frame, FACTORS, window_size=30)
    assert failed["diagnostics"]["status"] == "error"
    for plot in (plot_rolling_r_squared, plot_rolling_coefficients):
        fig = plot(failed)
        texts = [t.get_text() for t in fig.axes[0].texts]
        assert ALL_SKIPPED_MESSAGE in texts
        assert NO_DATA_MESSAGE not in texts
        plt.close(fig)
