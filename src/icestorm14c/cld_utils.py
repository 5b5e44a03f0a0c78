"""
Compact Letter Display (CLD) labels from pairwise post-hoc results.
"""

from __future__ import annotations

import logging
from itertools import permutations

import pandas as pd

from .constants import D14C_COL, DEFAULT_POSTHOC, TREATMENT_COL
from .posthoc_tests import POSTHOC_FUNCTIONS

logger = logging.getLogger(__name__)

_REJECT_COLUMN = {
    "tukey": "reject_at_0.05",
    "bonferroni": "significant_at_0.05",
}


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


def pairwise_significance(
    df: pd.DataFrame,
    response: str = D14C_COL,
    group: str = TREATMENT_COL,
    method: str = DEFAULT_POSTHOC,
) -> dict[tuple[str, str], bool]:
    """
    Build a symmetric significance map from a post-hoc method.

    Parameters
    ----------
    df : pd.DataFrame
        Input data.
    response : str
        Numeric response column name.
    group : str
        Grouping column name.
    method : str
        One of ``POSTHOC_FUNCTIONS`` ("tukey" or "bonferroni").

    Returns
    -------
    dict[tuple[str, str], bool]
        ``{(group_a, group_b): is_significant}`` for every ordered pair.
    """
    key = method.lower()
    if key not in POSTHOC_FUNCTIONS:
        raise ValueError(f"Unknown post-hoc method {method!r}; choose from {sorted(POSTHOC_FUNCTIONS)}")

    levels = sorted(df[group].dropna().astype(str).unique())
    sig = {(a, b): False for a in levels for b in levels}
    table = POSTHOC_FUNCTIONS[key](df, response=response, group=group)
    for _, row in table.iterrows():
        a, b = str(row["group_a"]), str(row["group_b"])
        if a in levels and b in levels:
            rej = _as_bool(row[_REJECT_COLUMN[key]])
            sig[(a, b)] = sig[(b, a)] = rej
    return sig


def _drop_redundant(sets_in: list[set[str]]) -> list[set[str]]:
    """Remove empty, duplicate and strictly-contained sets, keeping order."""
    unique: list[set[str]] = []
    for s in sets_in:
        if s and s not in unique:
            unique.append(set(s))
    return [s for s in unique if not any(s < t for t in unique)]


def make_cld_from_significance(
    sig: dict[tuple[str, str], bool],
    group_order: list[str],
) -> dict[str, str]:
    """
    Generate compact letters with the insert-and-absorb approach.

    Starting from one set holding every group, each significant pair splits
    the sets containing both members. Redundant sets are then removed and
    letters are assigned so that the first group in ``group_order`` gets
    "a" and letters run contiguously where possible.

    Parameters
    ----------
    sig : dict[tuple[str, str], bool]
        Significance map from ``pairwise_significance``.
    group_order : list[str]
        Display order, typically by descending mean.

    Returns
    -------
    dict[str, str]
        Mapping of group -> letters, e.g. ``{"Control": "a", "High": "b"}``.
    """
    levels = [str(x) for x in group_order]
    if not levels:
        return {}

    pairs = [(a, b) for i, a in enumerate(levels) for b in levels[i + 1:]]
    sig_pairs = [(a, b) for a, b in pairs if sig.get((a, b), False)]
    ns_pairs = [(a, b) for a, b in pairs if not sig.get((a, b), False)]

    letter_sets: list[set[str]] = [set(levels)]
    for a, b in sig_pairs:
        split: list[set[str]] = []
        for s in letter_sets:
            if a in s and b in s:
                split.extend([s - {a}, s - {b}])
            else:
                split.append(s)
        letter_sets = _drop_redundant(split)

    def _valid(sets_in: list[set[str]]) -> bool:
        covered = all(any(g in s for s in sets_in) for g in levels)
        joined = all(any(a in s and b in s for s in sets_in) for a, b in ns_pairs)
        return covered and joined

    i = len(letter_sets) - 1
    while i >= 0 and len(letter_sets) > 1:
        trial = letter_sets[:i] + letter_sets[i + 1:]
        if _valid(trial):
            letter_sets = trial
        i -= 1

    rank = {g: i for i, g in enumerate(levels)}

    def _score(order: tuple[int, ...]):
        position = {old: new for new, old in enumerate(order)}
        by_group = {g: sorted(position[i] for i, s in enumerate(letter_sets) if g in s) for g in levels}
        top_not_a = 0 if by_group[levels[0]][:1] == [0] else 1
        gaps = sum(idx[-1] - idx[0] + 1 - len(idx) for idx in by_group.values() if idx)
        first = tuple(by_group[g][0] for g in levels)
        return top_not_a, gaps, first

    indices = range(len(letter_sets))
    if len(letter_sets) <= 8:
        best = min(permutations(indices), key=_score)
    else:
        best = tuple(sorted(indices, key=lambda i: (min(rank[g] for g in letter_sets[i]), len(letter_sets[i]))))

    symbols = {old: _letter(new) for new, old in enumerate(best)}
    labels = {
        g: "".join(sorted((symbols[i] for i, s in enumerate(letter_sets) if g in s), key=lambda c: (len(c), c)))
        for g in levels
    }
    logger.debug("CLD labels: %s", labels)
    return labels


def _letter(index: int) -> str:
    if index < 26:
        return chr(ord("a") + index)
    return f"a{index - 25}"


def cld_labels(
    df: pd.DataFrame,
    response: str = D14C_COL,
    group: str = TREATMENT_COL,
    method: str = DEFAULT_POSTHOC,
) -> dict[str, str]:
    """Compact letters for ``group`` levels ordered by descending mean response."""
    means = pd.to_numeric(df[response], errors="coerce").groupby(df[group]).mean().dropna()
    if means.empty:
        return {}
    order = [str(g) for g in means.sort_values(ascending=False).index]
    sig = pairwise_significance(df, response=response, group=group, method=method)
    return make_cld_from_significance(sig, order)
