import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest


@pytest.fixture
def rng():
    return np.random.default_rng(12345)


@pytest.fixture
def factor_frame(rng):
    """Business-day frame: noisy excess return driven by three factors."""
    dates = pd.bdate_range("2023-01-02", periods=120, name="Date")
    factors = pd.DataFrame(
        rng.normal(0.0, 0.01, size=(len(dates), 3)),
        index=dates,
        columns=["Mkt-RF", "SMB", "HML"],
    )
    noise = rng.normal(0.0, 0.002, size=len(dates))
    excess = 0.0002 + 1.1 * factors["Mkt-RF"] + 0.4 * factors["SMB"] - 0.2 * factors["HML"] + noise
    frame = factors.copy()
    frame.insert(0, "excess", excess)
    return frame
