from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

import pandas as pd


# Genres weigh half as much as the content type so an entity tagged with many
# genres does not drown out the type signal.
TYPE_WEIGHT_DIVISOR = 10.0
GENRE_WEIGHT_DIVISOR = 20.0

TYPE_PREFIX = "type:"
GENRE_PREFIX = "genre:"

_REVIEW_COLUMNS = ("kind", "key", "score")


@dataclass(frozen=True)
class PreferenceProfile:
    """
    A user's inferred affinities, kept as two separate maps so content types
    and genres never compete for the same slot.

    Both maps are ordered by descending score; ties keep first-seen order.
    """

    types: Dict[str, float] = field(default_factory=dict)
    genres: Dict[str, float] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.types and not self.genres

    @property
    def top_type(self) -> Optional[str]:
        return next(iter(self.types), None)

    @property
    def top_genre(self) -> Optional[str]:
        return next(iter(self.genres), None)

    def affinity(self, entity_type: Optional[str], genre_names: Iterable[str]) -> float:
        score = self.types.get(entity_type, 0.0) if entity_type else 0.0
        return score + sum(self.genres.get(name, 0.0) for name in set(genre_names))

    def to_document(self) -> Dict[str, float]:
        """Flat mapping persisted on the user, keys namespaced by kind."""
        doc = {f"{TYPE_PREFIX}{k}": v for k, v in self.types.items()}
        doc.update({f"{GENRE_PREFIX}{k}": v for k, v in self.genres.items()})
        return doc


def genre_names(entity: Mapping[str, Any]) -> List[str]:
    return [g["name"] for g in entity.get("genres") or [] if isinstance(g, Mapping) and g.get("name")]


def _ordered_scores(df: pd.DataFrame, kind: str) -> Dict[str, float]:
    subset = df[df["kind"] == kind]
    if subset.empty:
        return {}
    totals = subset.groupby("key", sort=False)["score"].sum().reset_index()
    totals = totals.sort_values("score", ascending=False, kind="mergesort")
    return {str(k): float(v) for k, v in zip(totals["key"], totals["score"])}


def build_preference_profile(reviews: Iterable[Mapping[str, Any]]) -> PreferenceProfile:
    """
    Score content types and genres from a user's review history.

    Each review must carry ``rating`` and the reviewed ``entity`` document
    (at least ``type`` and ``genres``). Reviews whose entity is missing are
    ignored.
    """
    rows: List[Dict[str, Any]] = []
    for review in reviews:
        entity = review.get("entity")
        if not isinstance(entity, Mapping):
            continue
        rating = float(review.get("rating") or 0)

        if entity.get("type"):
            rows.append({"kind": "type", "key": entity["type"], "score": rating / TYPE_WEIGHT_DIVISOR})
        for name in genre_names(entity):
            rows.append({"kind": "genre", "key": name, "score": rating / GENRE_WEIGHT_DIVISOR})

    if not rows:
        return PreferenceProfile()

    df = pd.DataFrame(rows, columns=list(_REVIEW_COLUMNS))
    return PreferenceProfile(types=_ordered_scores(df, "type"), genres=_ordered_scores(df, "genre"))


def rank_candidates(
    candidates: List[Mapping[str, Any]],
    profile: PreferenceProfile,
    top_k: int,
) -> pd.DataFrame:
    """
    Order candidate entities by affinity to ``profile``.

    Sort order:
      - score : descending
      - rating : descending
      - createdAt : descending (newer first)

    Returns a DataFrame with columns ``position`` (index into ``candidates``)
    and ``score``, at most ``top_k`` rows.
    """
    if not candidates:
        return pd.DataFrame(columns=["position", "score"])

    df = pd.DataFrame(
        {
            "position": range(len(candidates)),
            "score": [profile.affinity(c.get("type"), genre_names(c)) for c in candidates],
            "rating": [float(c.get("rating") or 0) for c in candidates],
            "createdAt": pd.to_datetime([c.get("createdAt") for c in candidates]),
        }
    )

    ranked = df.sort_values(
        ["score", "rating", "createdAt"],
        ascending=[False, False, False],
        kind="mergesort",
        na_position="last",
    )
    return ranked.head(top_k)[["position", "score"]].reset_index(drop=True)
