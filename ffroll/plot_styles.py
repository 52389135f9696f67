"""
Central styling for the rolling regression charts.

Use style(role, series) for all plot calls. Colours come from one SERIES
palette keyed by factor name, so the same factor keeps its colour across
figures. No hardcoded color= in the plotting functions.
"""

# --- Base styles (kwargs for ax.plot) ---
LINE_STYLE = {
    "linewidth": 1.5,
    "zorder": 2,
}

R_SQUARED_STYLE = {
    "linewidth": 1.5,
    "zorder": 3,
}

ZERO_LINE_STYLE = {
    "color": "gray",
    "linewidth": 0.8,
    "linestyle": ":",
    "zorder": 1,
}

# --- Single series palette ---
SERIES = {
    "r_squared": {"color": "C0", "linestyle": "-", "label": "R²"},
    "const": {"color": "gray", "linestyle": "--", "label": "Intercept (alpha)"},
    "Mkt-RF": {"color": "C0", "linestyle": "-", "label": "Market (Mkt-RF)"},
    "SMB": {"color": "C1", "linestyle": "-", "label": "Size (SMB)"},
    "HML": {"color": "C2", "linestyle": "-", "label": "Value (HML)"},
    "RMW": {"color": "C3", "linestyle": "-", "label": "Profitability (RMW)"},
    "CMA": {"color": "C4", "linestyle": "-", "label": "Investment (CMA)"},
    "Mom": {"color": "C5", "linestyle": "-", "label": "Momentum (Mom)"},
}

ROLE_BASES = {
    "coefficient": LINE_STYLE,
    "r_squared": R_SQUARED_STYLE,
}


def style(role: str, series: str, *, label: str | None = None) -> dict:
    """
    Return a single style dict for ax.plot(...).

    - role: "coefficient" | "r_squared"
    - series: key into SERIES; unknown factor names fall back to a neutral
      line labelled with the name itself
    - label: optional legend override

    Example: ax.plot(dates, betas, **style("coefficient", "SMB"))
    """
    base = ROLE_BASES.get(role)
    if base is None:
        raise ValueError(f"Unknown role: {role}")
    series_d = SERIES.get(series, {"linestyle": "-", "label": series})
    out = {**base, **series_d}
    if label is not None:
        out["label"] = label
    return out
