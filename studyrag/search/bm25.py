"""Okapi BM25 relevance ranking over an in-memory set of documents."""

import math
import re
from collections import Counter

TOKEN_PATTERN = re.compile(r"[a-z0-9]+(?:'[a-z]+)?")

STOPWORDS = frozenset(
    """
    a an and are as at be but by for from has have how i in is it its of on or
    that the their this to was were what when where which who why will with you your
    """.split()
)


def tokenize(text: str) -> list[str]:
    """Lowercase word tokens with stopwords removed."""
    return [t for t in TOKEN_PATTERN.findall(text.lower()) if t not in STOPWORDS]


class BM25Index:
    """Term statistics for a fixed corpus, keyed by document id."""

    def __init__(self, documents: dict[str, str], k1: float = 1.5, b: float = 0.75) -> None:
        self.k1 = k1
        self.b = b
        self._term_freqs: dict[str, Counter[str]] = {}
        self._doc_len: dict[str, int] = {}
        self._doc_freq: Counter[str] = Counter()

        for doc_id, text in documents.items():
            tf = Counter(tokenize(text))
            self._term_freqs[doc_id] = tf
            self._doc_len[doc_id] = sum(tf.values())
            self._doc_freq.update(tf.keys())

        total_len = sum(self._doc_len.values())
        self._avgdl = total_len / max(len(self._doc_len), 1) or 1.0

    def idf(self, term: str) -> float:
        n = len(self._doc_len)
        df = self._doc_freq.get(term, 0)
        return math.log(1.0 + (n - df + 0.5) / (df + 0.5))

    def scores(self, query: str) -> dict[str, float]:
        """Score every document containing at least one query term.

        Documents without any query term are omitted rather than scored zero.
        """
        terms = set(tokenize(query))
        if not terms:
            return {}

        results: dict[str, float] = {}
        for doc_id, tf in self._term_freqs.items():
            dl = self._doc_len[doc_id]
            score = 0.0
            for term in terms:
                f = tf.get(term, 0)
                if not f:
                    continue
                denom = f + self.k1 * (1 - self.b + self.b * dl / self._avgdl)
                score += self.idf(term) * (f * (self.k1 + 1) / denom)
            if score > 0:
                results[doc_id] = score
        return results
