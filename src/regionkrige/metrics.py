# src/regionkrige/metrics.py
# SPDX-License-Identifier: MIT
"""
Skill scores for comparing interpolated and observed values.

- :func:`kge`: Kling–Gupta efficiency (Gupta et al., 2009).
- :func:`nse`: Nash–Sutcliffe efficiency.
- :func:`regression_metrics`: MAE, RMSE, R², KGE and NSE in one dict.

Pairs where either value is missing are ignored. Scores that are undefined
(fewer than two pairs, zero observed variance...) are ``numpy.nan``.
R² is the squared Pearson correlation, not ``sklearn.metrics.r2_score``;
NSE already plays the "variance explained" role.
"""

from __future__ import annotations

from typing import Dict, Iterable, Tuple

import numpy as np
from sklearn.metrics import mean_absolute_error, mean_squared_error


__all__ = ["kge", "nse", "regression_metrics"]


def _paired(y_true: Iterable[float], y_pred: Iterable[float]) -> Tuple[np.ndarray, np.ndarray]:
    """Finite (observed, predicted) pairs as float arrays."""
    yt = np.asarray(y_true, dtype=float).ravel()
    yp = np.asarray(y_pred, dtype=float).ravel()
    if yt.shape != yp.shape:
        raise ValueError(f"Shapes of y_true {yt.shape} and y_pred {yp.shape} do not match.")
    ok = np.isfinite(yt) & np.isfinite(yp)
    return yt[ok], yp[ok]


def kge(y_true: Iterable[float], y_pred: Iterable[float]) -> float:
    """
    Kling–Gupta efficiency.

    .. math::

        \\mathrm{KGE} = 1 - \\sqrt{(r - 1)^2 + (\\alpha - 1)^2 + (\\beta - 1)^2}

    with ``r`` the Pearson correlation, ``alpha = sd(pred) / sd(obs)`` and
    ``beta = mean(pred) / mean(obs)``. ``nan`` when fewer than two pairs
    remain, or the observed mean / either standard deviation is zero.
    """
    yt, yp = _paired(y_true, y_pred)
    if yt.size < 2:
        return np.nan
    mu_t, mu_p = float(np.mean(yt)), float(np.mean(yp))
    sd_t, sd_p = float(np.std(yt, ddof=1)), float(np.std(yp, ddof=1))
    if sd_t == 0.0 or sd_p == 0.0 or mu_t == 0.0:
        return np.nan
    r = float(np.corrcoef(yt, yp)[0, 1])
    if not np.isfinite(r):
        return np.nan
    return float(1.0 - np.sqrt((r - 1.0) ** 2 + (sd_p / sd_t - 1.0) ** 2 + (mu_p / mu_t - 1.0) ** 2))


def nse(y_true: Iterable[float], y_pred: Iterable[float]) -> float:
    """Nash–Sutcliffe efficiency, ``1 - SSE / SST``; may be negative."""
    yt, yp = _paired(y_true, y_pred)
    if yt.size < 2:
        return np.nan
    sst = float(np.sum((yt - yt.mean()) ** 2))
    if sst == 0.0:
        return np.nan
    return float(1.0 - np.sum((yt - yp) ** 2) / sst)


def regression_metrics(y_true: Iterable[float], y_pred: Iterable[float]) -> Dict[str, float]:
    """
    MAE, RMSE, R² (squared Pearson correlation), KGE and NSE.

    Returns
    -------
    dict
        Keys ``"n"``, ``"MAE"``, ``"RMSE"``, ``"R2"``, ``"KGE"``, ``"NSE"``;
        every score is ``nan`` when there are no finite pairs.
    """
    yt, yp = _paired(y_true, y_pred)
    out: Dict[str, float] = {
        "n": int(yt.size),
        "MAE": np.nan,
        "RMSE": np.nan,
        "R2": np.nan,
        "KGE": np.nan,
        "NSE": np.nan,
    }
    if yt.size == 0:
        return out

    out["MAE"] = float(mean_absolute_error(yt, yp))
    out["RMSE"] = float(np.sqrt(mean_squared_error(yt, yp)))
    if yt.size >= 2 and np.std(yt) > 0 and np.std(yp) > 0:
        r = float(np.corrcoef(yt, yp)[0, 1])
        out["R2"] = r * r if np.isfinite(r) else np.nan
    out["KGE"] = kge(yt, yp)
    out["NSE"] = nse(yt, yp)
    return out
