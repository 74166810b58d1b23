# src/regionkrige/design.py
# SPDX-License-Identifier: MIT
"""
Declarative model specifications and aligned design matrices.

A specification string reads ``"response ~ term + term + ..."``. It is
parsed once into a :class:`DesignSpec`, a small syntax tree whose terms are
either a bare covariate (:class:`Variable`) or a named transform of one
covariate (:class:`Transform`). Terms are evaluated as plain functions of
the covariate columns; nothing is ever ``eval``-ed.

Supported transforms
--------------------
``sin(x)``, ``cos(x)``
    Plain sine / cosine.
``sin(x, P)``, ``cos(x, P)``
    Harmonic with period ``P``: ``sin(2*pi*x/P)``.
``log(x)``, ``exp(x)``, ``sqrt(x)``, ``abs(x)``
    Element-wise functions.
``pow(x, k)``
    Polynomial power ``x**k`` (``k`` is required).

The literal ``1`` is accepted and ignored: the intercept is always
present. Non-finite transform results (``log(0)``, ``sqrt(-1)``...) are
treated as missing values.

Both the fitting matrix and the prediction matrix come from one
:class:`DesignBuilder`, so their columns always carry the same names in the
same order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import logging
import re

import numpy as np
import pandas as pd

from .exceptions import ConfigurationError, InvariantViolation, ValidationError


logger = logging.getLogger(__name__)

__all__ = [
    "INTERCEPT",
    "TRANSFORMS",
    "Variable",
    "Transform",
    "DesignSpec",
    "parse_design",
    "DesignBuilder",
]


INTERCEPT = "(Intercept)"


# ---------------------------------------------------------------------
# Transform registry
# ---------------------------------------------------------------------


def _sin(x: np.ndarray, period: Optional[float]) -> np.ndarray:
    return np.sin(x if period is None else 2.0 * np.pi * x / period)


def _cos(x: np.ndarray, period: Optional[float]) -> np.ndarray:
    return np.cos(x if period is None else 2.0 * np.pi * x / period)


# name -> (function, parameter rule: "none" | "optional" | "required")
TRANSFORMS: Dict[str, Tuple[Callable[[np.ndarray, Optional[float]], np.ndarray], str]] = {
    "sin": (_sin, "optional"),
    "cos": (_cos, "optional"),
    "log": (lambda x, _: np.log(x), "none"),
    "exp": (lambda x, _: np.exp(x), "none"),
    "sqrt": (lambda x, _: np.sqrt(x), "none"),
    "abs": (lambda x, _: np.abs(x), "none"),
    "pow": (lambda x, k: np.power(x, k), "required"),
}


# ---------------------------------------------------------------------
# Syntax tree
# ---------------------------------------------------------------------


@dataclass(frozen=True)
class Variable:
    """Bare covariate reference."""

    name: str

    @property
    def operand(self) -> str:
        return self.name

    @property
    def label(self) -> str:
        return self.name

    def evaluate(self, values: np.ndarray) -> np.ndarray:
        return np.asarray(values, dtype=float)


@dataclass(frozen=True)
class Transform:
    """Named transform of a single covariate, e.g. ``sin(doy, 365.25)``."""

    kind: str
    operand: str
    param: Optional[float] = None

    @property
    def label(self) -> str:
        if self.param is None:
            return f"{self.kind}({self.operand})"
        # short form unless it loses precision
        text = format(self.param, "g")
        if float(text) != self.param:
            text = repr(float(self.param))
        return f"{self.kind}({self.operand}, {text})"

    def evaluate(self, values: np.ndarray) -> np.ndarray:
        func, _ = TRANSFORMS[self.kind]
        with np.errstate(all="ignore"):
            out = np.asarray(func(np.asarray(values, dtype=float), self.param), dtype=float)
        out[~np.isfinite(out)] = np.nan
        return out


Term = Union[Variable, Transform]


@dataclass(frozen=True)
class DesignSpec:
    """Parsed ``response ~ predictors`` specification."""

    response: str
    terms: Tuple[Term, ...]

    @property
    def labels(self) -> List[str]:
        return [t.label for t in self.terms]

    @property
    def operands(self) -> List[str]:
        """Distinct covariates referenced by the terms, in first-use order."""
        seen: List[str] = []
        for t in self.terms:
            if t.operand not in seen:
                seen.append(t.operand)
        return seen

    def __str__(self) -> str:
        rhs = " + ".join(self.labels) if self.terms else "1"
        return f"{self.response} ~ {rhs}"


# ---------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------


_NAME = r"[A-Za-z_][A-Za-z0-9_.]*"
_NUMBER = r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?"
_NAME_RE = re.compile(rf"^{_NAME}$")
_TRANSFORM_RE = re.compile(
    rf"^(?P<kind>[A-Za-z_]\w*)\(\s*(?P<operand>{_NAME})\s*(?:,\s*(?P<param>{_NUMBER})\s*)?\)$"
)


def _split_terms(rhs: str) -> List[str]:
    """Split on ``+`` at parenthesis depth 0 (so ``pow(x, 1e+2)`` survives)."""
    parts, depth, cur = [], 0, []
    for ch in rhs:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth < 0:
                raise ConfigurationError(f"Unbalanced parentheses in {rhs!r}.")
        if ch == "+" and depth == 0:
            parts.append("".join(cur).strip())
            cur = []
        else:
            cur.append(ch)
    if depth != 0:
        raise ConfigurationError(f"Unbalanced parentheses in {rhs!r}.")
    parts.append("".join(cur).strip())
    return parts


def _parse_term(token: str) -> Term:
    if _NAME_RE.match(token):
        return Variable(token)
    m = _TRANSFORM_RE.match(token)
    if m is None:
        raise ConfigurationError(f"Malformed predictor term {token!r}.")
    kind, operand, param = m.group("kind"), m.group("operand"), m.group("param")
    if kind not in TRANSFORMS:
        raise ConfigurationError(
            f"Unknown transform {kind!r} in {token!r}; expected one of {sorted(TRANSFORMS)}."
        )
    rule = TRANSFORMS[kind][1]
    if rule == "none" and param is not None:
        raise ConfigurationError(f"Transform {kind!r} takes no parameter: {token!r}.")
    if rule == "required" and param is None:
        raise ConfigurationError(f"Transform {kind!r} needs a parameter: {token!r}.")
    value = None if param is None else float(param)
    if kind in ("sin", "cos") and value == 0.0:
        raise ConfigurationError(f"Harmonic period must be non-zero: {token!r}.")
    return Transform(kind, operand, value)


def parse_design(spec: Union[str, DesignSpec]) -> DesignSpec:
    """Parse ``"response ~ t1 + t2"`` into a :class:`DesignSpec`.

    Raises
    ------
    ConfigurationError
        Empty specification, missing ``~`` or response, empty or malformed
        term, unknown transform, duplicated term, or the response reused as
        a predictor.
    """
    if isinstance(spec, DesignSpec):
        return spec
    if not isinstance(spec, str) or not spec.strip():
        raise ConfigurationError("Model specification must be a non-empty string.")

    sides = spec.split("~")
    if len(sides) != 2:
        raise ConfigurationError(f"Specification must contain exactly one '~': {spec!r}.")
    response, rhs = sides[0].strip(), sides[1].strip()
    if not response:
        raise ConfigurationError(f"Specification has no response: {spec!r}.")
    if not _NAME_RE.match(response):
        raise ConfigurationError(f"Response must be a plain column name, got {response!r}.")
    if not rhs:
        raise ConfigurationError(
            f"Specification has no predictors: {spec!r} (use '1' for an intercept-only model)."
        )

    terms: List[Term] = []
    for token in _split_terms(rhs):
        if not token:
            raise ConfigurationError(f"Empty predictor term in {spec!r}.")
        if token == "1":
            continue
        terms.append(_parse_term(token))

    labels = [t.label for t in terms]
    dupes = sorted({lab for lab in labels if labels.count(lab) > 1})
    if dupes:
        raise ConfigurationError(f"Duplicated predictor terms: {dupes}")
    if any(t.operand == response for t in terms):
        raise ConfigurationError(f"Response {response!r} cannot also be a predictor.")
    return DesignSpec(response=response, terms=tuple(terms))


# ---------------------------------------------------------------------
# Design matrices
# ---------------------------------------------------------------------


def _as_frame(rows) -> pd.DataFrame:
    if isinstance(rows, pd.DataFrame):
        return rows
    try:
        return pd.DataFrame(rows)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Rows must be a table-like object: {exc}") from exc


def _numeric(df: pd.DataFrame, col: str) -> np.ndarray:
    try:
        return df[col].to_numpy(dtype=float, na_value=np.nan)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Column {col!r} is not numeric: {exc}") from exc


class DesignBuilder:
    """Build aligned design matrices from one :class:`DesignSpec`.

    Parameters
    ----------
    spec :
        Specification string or an already parsed :class:`DesignSpec`.
    coordinate_aliases :
        Optional mapping from observation-side names to grid columns, used
        when an operand is not a grid column itself. The pipeline maps the
        observation coordinate columns onto the grid's ``longitude`` and
        ``latitude``.

    Attributes
    ----------
    n_dropped_ :
        Number of fitting rows excluded for missing values by the last
        :meth:`build` call (``None`` before the first call).
    columns_ :
        Design columns produced by the last :meth:`build` call;
        :meth:`build_predict` must produce exactly these.
    """

    def __init__(
        self,
        spec: Union[str, DesignSpec],
        *,
        coordinate_aliases: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.spec = parse_design(spec)
        self.coordinate_aliases = dict(coordinate_aliases or {})
        self.n_dropped_: Optional[int] = None
        self.columns_: Optional[List[str]] = None

    @property
    def columns(self) -> List[str]:
        return [INTERCEPT] + self.spec.labels

    # -----------------------------------------------------------------

    def _resolve(self, df: pd.DataFrame, operand: str, *, predict: bool) -> str:
        if operand in df.columns:
            return operand
        if predict:
            alias = self.coordinate_aliases.get(operand)
            if alias is not None and alias in df.columns:
                return alias
            raise ConfigurationError(
                f"Predictor {operand!r} referenced in the model was not found "
                "in the grid covariates."
            )
        raise ConfigurationError(
            f"Predictor {operand!r} referenced in the model was not found in the fitting data."
        )

    def validate(self, rows, *, predict: bool = False) -> Dict[str, str]:
        """Resolve every operand (and the response when fitting) without
        evaluating anything. Returns the operand -> column mapping."""
        df = _as_frame(rows)
        if not predict and self.spec.response not in df.columns:
            raise ConfigurationError(
                f"Response {self.spec.response!r} was not found in the fitting data."
            )
        return {op: self._resolve(df, op, predict=predict) for op in self.spec.operands}

    def _matrix(self, df: pd.DataFrame, resolved: Dict[str, str]) -> pd.DataFrame:
        cache = {op: _numeric(df, col) for op, col in resolved.items()}
        data = {INTERCEPT: np.ones(len(df), dtype=float)}
        for term in self.spec.terms:
            data[term.label] = term.evaluate(cache[term.operand])
        return pd.DataFrame(data, index=df.index)

    def build(
        self, rows, *, required: Sequence[str] = ()
    ) -> Tuple[pd.Series, pd.DataFrame]:
        """Response vector and design matrix for the fitting rows.

        Rows with a missing response, any missing term value or a missing
        value in one of the ``required`` columns (e.g. the coordinates) are
        excluded; the count is logged and kept in :attr:`n_dropped_`.
        """
        df = _as_frame(rows)
        resolved = self.validate(df)
        absent = [c for c in required if c not in df.columns]
        if absent:
            raise ConfigurationError(f"Required columns {absent} were not found in the fitting data.")
        y = pd.Series(_numeric(df, self.spec.response), index=df.index, name=self.spec.response)
        X = self._matrix(df, resolved)

        complete = np.isfinite(y.to_numpy()) & np.isfinite(X.to_numpy()).all(axis=1)
        for col in required:
            complete &= np.isfinite(_numeric(df, col))
        self.n_dropped_ = int((~complete).sum())
        self.columns_ = list(X.columns)
        if self.n_dropped_:
            logger.info(
                "Excluded %d of %d fitting rows with missing values.",
                self.n_dropped_,
                len(df),
            )
        return y[complete], X[complete]

    def build_predict(self, rows) -> pd.DataFrame:
        """Design matrix for prediction rows (missing values kept as NaN).

        Raises
        ------
        InvariantViolation
            When the columns differ from those of the last :meth:`build`.
        """
        df = _as_frame(rows)
        resolved = self.validate(df, predict=True)
        X = self._matrix(df, resolved)
        if self.columns_ is not None and list(X.columns) != self.columns_:
            raise InvariantViolation(
                f"Prediction columns {list(X.columns)} do not match fitted columns {self.columns_}."
            )
        n_missing = int((~np.isfinite(X.to_numpy()).all(axis=1)).sum())
        if n_missing:
            logger.warning(
                "%d of %d prediction rows have missing covariates; their "
                "predictions will be missing.",
                n_missing,
                len(df),
            )
        return X
