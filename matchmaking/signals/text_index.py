"""
TF-IDF text relevance index over the actor corpus.

Each actor contributes one document built from its text fields and tags.
The index is rebuilt wholesale; there is no incremental update.
"""

import logging
from typing import Dict, Iterable, Optional

import numpy as np
from scipy.sparse import csr_matrix
from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.metrics.pairwise import cosine_similarity

from ..schema.actors import Actor

logger = logging.getLogger(__name__)


class TextIndex:
    """
    Fitted TF-IDF matrix with a row per indexed actor.

    Attributes:
        vectorizer: Fitted TfidfVectorizer (None until built)
        matrix: Sparse document-term matrix (n_docs x vocab)
        rows: Actor id -> matrix row
    """

    def __init__(self):
        self.vectorizer: Optional[TfidfVectorizer] = None
        self.matrix: Optional[csr_matrix] = None
        self.rows: Dict[str, int] = {}

    @property
    def size(self) -> int:
        return len(self.rows)

    def build(self, actors: Iterable[Actor]) -> None:
        """
        Fit the index on the actors' content text.

        Actors with no text are not indexed.
        """
        ids = []
        documents = []
        for actor in actors:
            text = actor.content_text()
            if text:
                ids.append(actor.id)
                documents.append(text)

        self.vectorizer = None
        self.matrix = None
        self.rows = {}

        if not documents:
            logger.info("Text index: no documents to index")
            return

        vectorizer = TfidfVectorizer(lowercase=True, dtype=np.float64)
        try:
            matrix = vectorizer.fit_transform(documents)
        except ValueError as e:
            # Raised when every document is empty after tokenization
            logger.warning(f"Text index not built: {e}")
            return

        self.vectorizer = vectorizer
        self.matrix = csr_matrix(matrix)
        self.rows = {actor_id: i for i, actor_id in enumerate(ids)}
        logger.info(
            f"Text index built: {len(ids)} documents, "
            f"vocabulary size {len(vectorizer.vocabulary_)}"
        )

    def similarity(self, id_a: str, id_b: str) -> float:
        """
        Cosine similarity of two indexed actors.

        Returns 0 when the index holds fewer than two documents or either
        actor is not indexed.
        """
        if self.size < 2 or id_a not in self.rows or id_b not in self.rows:
            return 0.0
        vec_a = self.matrix[self.rows[id_a]]
        vec_b = self.matrix[self.rows[id_b]]
        # Rounding can put identical documents a hair above 1
        return float(np.clip(cosine_similarity(vec_a, vec_b)[0, 0], 0.0, 1.0))
