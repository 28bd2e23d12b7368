import logging
import re
import time
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

logger = logging.getLogger("shop.catalog.recommender")

PREFERENCE_WEIGHT = 1.5

# Outfit slot -> category substrings that qualify a product for it
OUTFIT_SLOTS = {
    "shirt": ("shirt", "kurta", "top"),
    "pant": ("pant", "trouser", "jeans", "chino"),
    "shoe": ("shoe", "footwear", "sneaker"),
}

_TOKEN_RE = re.compile(r"[^a-z0-9]+")


def _tokens(text: str) -> List[str]:
    return [t for t in _TOKEN_RE.split((text or "").lower()) if len(t) > 2]


def product_features(product: Dict[str, Any]) -> Dict[str, float]:
    """Bag of features: category, tags, colours and name tokens, all weight 1."""
    feats: Dict[str, float] = {}
    for key in [product.get("category")] + list(product.get("tags") or []) + list(product.get("colors") or []):
        if isinstance(key, str) and key.strip():
            feats[key.strip().lower()] = 1.0
    for tok in _tokens(product.get("name") or ""):
        feats[tok] = 1.0
    return feats


def query_features(query: str, preferences: Optional[Sequence[str]] = None) -> Dict[str, float]:
    feats: Dict[str, float] = {tok: 1.0 for tok in _tokens(query)}
    for pref in preferences or []:
        if not isinstance(pref, str):
            continue
        for tok in _tokens(pref) or [pref.strip().lower()]:
            if tok:
                feats[tok] = PREFERENCE_WEIGHT
    return feats


class FeatureRecommender:
    """
    Content-based recommender: products and queries become sparse feature
    bags, densified over a shared vocabulary and ranked by cosine similarity.
    """
    def __init__(self, min_score: float = 0.25):
        self.min_score = min_score

    def _score(self, products: List[Dict[str, Any]], qfeats: Dict[str, float]) -> np.ndarray:
        pfeats = [product_features(p) for p in products]
        vocab: Dict[str, int] = {}
        for feats in pfeats + [qfeats]:
            for k in feats:
                vocab.setdefault(k, len(vocab))

        mat = np.zeros((len(products), len(vocab)), dtype=np.float32)
        for i, feats in enumerate(pfeats):
            for k, w in feats.items():
                mat[i, vocab[k]] = w
        q = np.zeros(len(vocab), dtype=np.float32)
        for k, w in qfeats.items():
            q[vocab[k]] = w

        norms = np.linalg.norm(mat, axis=1)
        norms[norms == 0] = 1e-12
        q_norm = np.linalg.norm(q) or 1e-12
        return (mat @ q) / (norms * q_norm)

    def recommend(
        self,
        products: List[Dict[str, Any]],
        query: str = "",
        preferences: Optional[Sequence[str]] = None,
        limit: int = 10,
    ) -> List[Dict[str, Any]]:
        t0 = time.time()
        if not products:
            return []
        qfeats = query_features(query, preferences)
        if not qfeats:
            # Nothing to rank against: catalog order
            return [dict(p, similarityScore=0.0) for p in products[:limit]]

        scores = self._score(products, qfeats)
        order = np.argsort(-scores, kind="stable")
        out = []
        for idx in order:
            score = float(scores[idx])
            if score < self.min_score:
                break
            out.append(dict(products[idx], similarityScore=round(score, 4)))
            if len(out) >= limit:
                break
        logger.debug("recommend: q=%r pool=%d hits=%d took=%.4fs", query, len(products), len(out), time.time() - t0)
        return out

    def recommend_outfit(
        self,
        products: List[Dict[str, Any]],
        query: str = "",
        preferences: Optional[Sequence[str]] = None,
    ) -> Dict[str, Dict[str, Any]]:
        """Best-scoring product per outfit slot; slots with no candidates are left out."""
        qfeats = query_features(query, preferences)
        outfit: Dict[str, Dict[str, Any]] = {}
        for slot, needles in OUTFIT_SLOTS.items():
            pool = [p for p in products if any(n in (p.get("category") or "").lower() for n in needles)]
            if not pool:
                continue
            if qfeats:
                scores = self._score(pool, qfeats)
                best = int(np.argmax(scores))
                outfit[slot] = dict(pool[best], similarityScore=round(float(scores[best]), 4))
            else:
                outfit[slot] = dict(pool[0], similarityScore=0.0)
        logger.info(f"Outfit for '{query}': {[p['id'] for p in outfit.values()]}")
        return outfit
