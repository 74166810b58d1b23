# src/regionkrige/kriging.py
# SPDX-License-Identifier: MIT
"""
Kriging engine: Gaussian-process regression with a linear trend.

Model
-----
The response is modelled as

.. math::

    y = X \\beta + \\varepsilon, \\qquad
    \\mathrm{Cov}(\\varepsilon) = \\sigma^2 \\left( R_\\phi(D) + \\eta I \\right)

where ``R_phi`` is an isotropic correlation family evaluated on the distance
matrix ``D`` scaled by the range ``phi``, ``sigma^2`` is the partial sill and
``eta`` the nugget-to-partial-sill ratio (absolute nugget ``sigma^2 * eta``).

Estimation
----------
For fixed ``(phi, eta)`` the GLS coefficients and ``sigma^2`` have closed
forms, so only ``(phi, eta)`` are optimised (profile likelihood, ML or
REML) in log space with L-BFGS-B from a deterministic starting point. Either
parameter can be held fixed through :class:`~regionkrige.config.KrigingConfig`.

Every solve goes through a Cholesky factorisation
(:func:`scipy.linalg.cho_factor`); a failed factorisation or a reciprocal
condition estimate below ``rcond`` raises
:class:`~regionkrige.exceptions.ModelFitError`.

Prediction
----------
Best linear unbiased predictor: ``X_pred @ beta + r(pred, obs) @ w`` with
``w = (R + eta I)^{-1} (y - X beta)`` precomputed at fit time.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import logging
import math

import numpy as np
import pandas as pd
from scipy.linalg import LinAlgError, cho_factor, cho_solve
from scipy.optimize import minimize
from tqdm.auto import tqdm

from .config import KrigingConfig
from .covariance import correlation, pairwise_distances
from .exceptions import InvariantViolation, ModelFitError, ValidationError


logger = logging.getLogger(__name__)

__all__ = ["FittedModel", "SpatialPredictor"]


_PENALTY = 1e25
_NUGGET_BOUNDS = (1e-8, 1e2)
_NUGGET_START = 0.1


# ---------------------------------------------------------------------
# Fitted model (pure output data)
# ---------------------------------------------------------------------


@dataclass(frozen=True, eq=False)
class FittedModel:
    """Parameters and fitting-site data needed for prediction.

    Attributes
    ----------
    covfun, distance, earth_radius_km :
        Correlation family and distance mode used at fit time.
    method :
        ``"ml"`` or ``"reml"``.
    partial_sill, range, nugget, nugget_ratio :
        Covariance parameters; ``nugget == partial_sill * nugget_ratio``.
    coefficients :
        GLS trend coefficients, one per design column.
    column_names :
        Design column names, in coefficient order.
    locations :
        ``(n, 2)`` fitting locations ``[lon, lat]``.
    residuals :
        ``y - X @ coefficients`` at the fitting locations.
    weights :
        ``(R + nugget_ratio * I)^{-1} @ residuals``.
    loglik :
        Maximised (restricted) log-likelihood.
    converged :
        Optimiser success flag (``True`` when nothing was optimised).
    n_obs :
        Number of observations used.

    All arrays are read-only.
    """

    covfun: str
    distance: str
    earth_radius_km: float
    method: str
    partial_sill: float
    range: float
    nugget: float
    nugget_ratio: float
    coefficients: np.ndarray
    column_names: Tuple[str, ...]
    locations: np.ndarray
    residuals: np.ndarray
    weights: np.ndarray
    loglik: float
    converged: bool
    n_obs: int

    def __post_init__(self) -> None:
        for name in ("coefficients", "locations", "residuals", "weights"):
            arr = np.array(getattr(self, name), dtype=float, copy=True)
            arr.flags.writeable = False
            object.__setattr__(self, name, arr)
        object.__setattr__(self, "column_names", tuple(self.column_names))

    @property
    def coef(self) -> pd.Series:
        return pd.Series(self.coefficients, index=list(self.column_names), name="coefficient")

    def summary(self) -> Dict:
        """Plain-Python summary (JSON serialisable)."""
        return {
            "covfun": self.covfun,
            "distance": self.distance,
            "method": self.method,
            "partial_sill": float(self.partial_sill),
            "range": float(self.range),
            "nugget": float(self.nugget),
            "nugget_ratio": float(self.nugget_ratio),
            "coefficients": {k: float(v) for k, v in zip(self.column_names, self.coefficients)},
            "loglik": float(self.loglik),
            "converged": bool(self.converged),
            "n_obs": int(self.n_obs),
        }


# ---------------------------------------------------------------------
# Linear-algebra helpers
# ---------------------------------------------------------------------


def _cholesky(matrix: np.ndarray, rcond: float, what: str):
    """Lower Cholesky factor with a cheap conditioning check."""
    try:
        cf = cho_factor(matrix, lower=True, check_finite=True)
    except (LinAlgError, ValueError) as exc:
        raise ModelFitError(f"Cholesky factorisation of the {what} failed: {exc}") from exc
    diag = np.abs(np.diag(cf[0]))
    if diag.min() <= 0 or (diag.min() / diag.max()) ** 2 < rcond:
        raise ModelFitError(f"The {what} is numerically singular.")
    return cf


def _profile(
    D: np.ndarray,
    y: np.ndarray,
    X: np.ndarray,
    range_: float,
    ratio: float,
    cfg: KrigingConfig,
) -> Dict:
    """Profile negative log-likelihood at fixed ``(range_, ratio)``."""
    n, p = X.shape
    R = correlation(D, range_, cfg.covfun)
    R[np.diag_indices(n)] += ratio
    cf = _cholesky(R, cfg.rcond, "covariance matrix")

    Ri_X = cho_solve(cf, X)
    Ri_y = cho_solve(cf, y)
    XtRiX = X.T @ Ri_X
    try:
        xf = cho_factor(XtRiX, lower=True)
    except LinAlgError as exc:
        raise ModelFitError(f"Trend system is singular: {exc}") from exc
    beta = cho_solve(xf, X.T @ Ri_y)

    resid = y - X @ beta
    weights = cho_solve(cf, resid)
    dof = n if cfg.method == "ml" else n - p
    sigma2 = max(float(resid @ weights) / dof, np.finfo(float).tiny)

    logdet = 2.0 * float(np.sum(np.log(np.diag(cf[0]))))
    nll = 0.5 * (dof * math.log(sigma2) + logdet)
    if cfg.method == "reml":
        nll += float(np.sum(np.log(np.abs(np.diag(xf[0])))))
    nll += 0.5 * dof * (1.0 + math.log(2.0 * math.pi))
    return {"nll": nll, "beta": beta, "sigma2": sigma2, "resid": resid, "weights": weights}


def _distance_scale(D: np.ndarray) -> Tuple[float, float, float]:
    """(min, median, max) of the positive pairwise distances."""
    pos = D[np.triu_indices(D.shape[0], 1)]
    pos = pos[pos > 0]
    if pos.size == 0:
        return 1.0, 1.0, 1.0
    return float(pos.min()), float(np.median(pos)), float(pos.max())


# ---------------------------------------------------------------------
# Predictor
# ---------------------------------------------------------------------


class SpatialPredictor:
    """Fit covariance parameters and trend, then predict at new locations.

    Parameters
    ----------
    config :
        Fit/predict settings; defaults to :class:`KrigingConfig()`.

    Attributes
    ----------
    fitted_ :
        The :class:`FittedModel` returned by the last :meth:`fit` call.
    """

    def __init__(self, config: Optional[KrigingConfig] = None) -> None:
        self.config = config or KrigingConfig()
        self.fitted_: Optional[FittedModel] = None

    # -----------------------------------------------------------------
    # Input checks
    # -----------------------------------------------------------------

    @staticmethod
    def _locations(locations, n: int, what: str) -> np.ndarray:
        locs = np.asarray(locations, dtype=float)
        if locs.ndim != 2 or locs.shape != (n, 2):
            raise InvariantViolation(
                f"{what} must have shape ({n}, 2); got {locs.shape}."
            )
        if not np.isfinite(locs).all():
            raise ValidationError(f"{what} contain non-finite coordinates.")
        return locs

    @staticmethod
    def _design(design) -> Tuple[np.ndarray, List[str]]:
        if isinstance(design, pd.DataFrame):
            names = [str(c) for c in design.columns]
        else:
            names = []
        X = np.asarray(design, dtype=float)
        if X.ndim == 1:
            X = X[:, None]
        if X.ndim != 2:
            raise InvariantViolation(f"Design matrix must be 2-D; got shape {X.shape}.")
        if not names:
            names = [f"x{i}" for i in range(X.shape[1])]
        return X, names

    # -----------------------------------------------------------------
    # Fit
    # -----------------------------------------------------------------

    def fit(self, response, locations, design) -> FittedModel:
        """Estimate trend coefficients and covariance parameters.

        Parameters
        ----------
        response :
            Length-``n`` response vector.
        locations :
            ``(n, 2)`` array of ``[longitude, latitude]``.
        design :
            ``(n, p)`` design matrix (DataFrame column names are kept).

        Returns
        -------
        FittedModel

        Raises
        ------
        ModelFitError
            Too few observations, rank-deficient design, or a singular /
            non-positive-definite covariance matrix.
        """
        cfg = self.config
        y = np.asarray(response, dtype=float).ravel()
        X, names = self._design(design)
        n, p = X.shape
        if y.size != n:
            raise InvariantViolation(f"Response has {y.size} rows but design has {n}.")
        locs = self._locations(locations, n, "Fitting locations")
        if not (np.isfinite(y).all() and np.isfinite(X).all()):
            raise ValidationError("Response and design matrix must be finite.")

        if n < cfg.min_observations:
            raise ModelFitError(
                f"At least {cfg.min_observations} observations are required; got {n}."
            )
        if n < p or (cfg.method == "reml" and n == p):
            raise ModelFitError(f"Not enough observations ({n}) for {p} design columns.")
        if np.linalg.matrix_rank(X) < p:
            raise ModelFitError("Design matrix is rank-deficient.")

        D = pairwise_distances(
            locs, locs, mode=cfg.distance, earth_radius_km=cfg.earth_radius_km
        )
        d_min, d_med, d_max = _distance_scale(D)

        # free parameters live in log space: [log range][, log nugget ratio]
        x0: List[float] = []
        bounds: List[Tuple[float, float]] = []
        if cfg.fixed_range is None:
            lo, hi = math.log(d_min / 100.0), math.log(d_max * 100.0)
            x0.append(min(max(math.log(d_med), lo), hi))
            bounds.append((lo, hi))
        if cfg.fixed_nugget is None:
            x0.append(math.log(_NUGGET_START))
            bounds.append(tuple(math.log(b) for b in _NUGGET_BOUNDS))

        def _unpack(theta: Sequence[float]) -> Tuple[float, float]:
            it = iter(theta)
            rng = cfg.fixed_range if cfg.fixed_range is not None else math.exp(next(it))
            ratio = cfg.fixed_nugget if cfg.fixed_nugget is not None else math.exp(next(it))
            return rng, ratio

        def _objective(theta: np.ndarray) -> float:
            try:
                val = _profile(D, y, X, *_unpack(theta), cfg)["nll"]
            except ModelFitError:
                return _PENALTY
            return val if np.isfinite(val) else _PENALTY

        converged = True
        theta = np.asarray(x0, dtype=float)
        if x0:
            res = minimize(
                _objective,
                theta,
                method="L-BFGS-B",
                bounds=bounds,
                options={"maxiter": int(cfg.max_iter), "ftol": float(cfg.tol)},
            )
            theta = np.asarray(res.x, dtype=float)
            converged = bool(res.success)
            if not converged:
                logger.warning("Covariance optimisation did not converge: %s", res.message)

        range_, ratio = _unpack(theta)
        best = _profile(D, y, X, range_, ratio, cfg)
        if not (np.isfinite(best["beta"]).all() and np.isfinite(best["weights"]).all()):
            raise ModelFitError("Fit produced non-finite coefficients.")

        fitted = FittedModel(
            covfun=cfg.covfun,
            distance=cfg.distance,
            earth_radius_km=cfg.earth_radius_km,
            method=cfg.method,
            partial_sill=best["sigma2"],
            range=float(range_),
            nugget=best["sigma2"] * ratio,
            nugget_ratio=float(ratio),
            coefficients=best["beta"],
            column_names=names,
            locations=locs,
            residuals=best["resid"],
            weights=best["weights"],
            loglik=-best["nll"],
            converged=converged,
            n_obs=n,
        )
        logger.info(
            "Fitted %s covariance on %d observations: range=%.4g partial_sill=%.4g "
            "nugget=%.4g loglik=%.4f",
            cfg.covfun,
            n,
            fitted.range,
            fitted.partial_sill,
            fitted.nugget,
            fitted.loglik,
        )
        self.fitted_ = fitted
        return fitted

    # -----------------------------------------------------------------
    # Predict
    # -----------------------------------------------------------------

    def predict(self, fitted: FittedModel, locations_pred, design_pred) -> np.ndarray:
        """Kriging predictions at ``locations_pred``.

        Rows of ``design_pred`` with missing values give ``NaN``.

        Raises
        ------
        InvariantViolation
            When the design columns or row counts do not match the fit.
        """
        Xp, names = self._design(design_pred)
        m, p = Xp.shape
        if p != fitted.coefficients.size:
            raise InvariantViolation(
                f"Prediction design has {p} columns; the model has {fitted.coefficients.size}."
            )
        if isinstance(design_pred, pd.DataFrame) and tuple(names) != fitted.column_names:
            raise InvariantViolation(
                f"Prediction columns {names} differ from fitted columns {list(fitted.column_names)}."
            )
        locs = self._locations(locations_pred, m, "Prediction locations")

        out = np.empty(m, dtype=float)
        bs = int(self.config.batch_size)
        for start in tqdm(
            range(0, m, bs),
            desc="Kriging",
            unit="block",
            disable=not self.config.verbose,
        ):
            sl = slice(start, start + bs)
            d = pairwise_distances(
                locs[sl],
                fitted.locations,
                mode=fitted.distance,
                earth_radius_km=fitted.earth_radius_km,
            )
            r0 = correlation(d, fitted.range, fitted.covfun)
            out[sl] = Xp[sl] @ fitted.coefficients + r0 @ fitted.weights
        return out
