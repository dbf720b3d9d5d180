import os
import numpy as np
from collections import namedtuple
from scipy.sparse import csr_matrix, diags, vstack
from sklearn.feature_extraction.text import TfidfTransformer
from sklearn.preprocessing import normalize
from tqdm import tqdm

from descriptor_loader import list_descriptor_files, read_descriptors
from errors import LoadError

Match = namedtuple("Match", ["id", "score"])


def image_to_bow(visual_words, num_words):
    """
    Converts the visual words of one image to a sparse Bag-of-Words row vector.
    """
    visual_words = np.asarray(visual_words, dtype=np.int64)
    counts = np.bincount(visual_words, minlength=num_words).astype(np.float64)
    nonzero = np.flatnonzero(counts)
    return csr_matrix(
        (counts[nonzero], (np.zeros(len(nonzero), dtype=np.int64), nonzero)),
        shape=(1, num_words),
    )


class Database:
    """
    Inverted bag-of-words index with TF-IDF weighting.

    Documents keep their raw word sequences; the weighted, L2 normalised
    matrix used for scoring is rebuilt whenever the weights change.
    """

    def __init__(self, num_words):
        self.num_words = int(num_words)
        self.documents = {}
        self.weights = None
        self._counts = []
        self._weighted = None

    def size(self):
        return len(self.documents)

    def insert(self, visual_words):
        """Adds a document and returns its id. Ids are dense and follow insertion order."""
        doc_id = len(self.documents)
        words = np.array(visual_words, dtype=np.int64)
        words.setflags(write=False)
        self.documents[doc_id] = words
        self._counts.append(image_to_bow(words, self.num_words))
        self._weighted = None
        return doc_id

    def _term_counts(self):
        if not self._counts:
            return csr_matrix((0, self.num_words), dtype=np.float64)
        return vstack(self._counts, format="csr")

    def compute_tfidf_weights(self):
        """
        Computes the inverse document frequency of every visual word from the
        documents currently in the database.
        """
        transformer = TfidfTransformer(smooth_idf=True, use_idf=True)
        transformer.fit(self._term_counts())
        self.weights = transformer.idf_.astype(np.float64)
        self._weighted = None

    def load_weights(self, filepath):
        filepath = str(filepath)
        if not os.path.isfile(filepath):
            raise LoadError(f"Weights file not found: {filepath}")
        try:
            weights = np.load(filepath, allow_pickle=False)
        except (OSError, ValueError) as e:
            raise LoadError(f"Could not load weights from {filepath}: {e}") from e
        weights = np.asarray(weights, dtype=np.float64).ravel()
        if len(weights) != self.num_words:
            raise LoadError(
                f"Weights file {filepath} holds {len(weights)} weights, "
                f"the vocabulary has {self.num_words} words"
            )
        self.weights = weights
        self._weighted = None

    def save_weights(self, filepath):
        if self.weights is None:
            raise RuntimeError("No weights to save: compute or load them first.")
        with open(filepath, "wb") as f:
            np.save(f, self.weights)

    def _weight(self, counts):
        return normalize((counts @ diags(self.weights)).tocsr(), norm="l2")

    def _weighted_matrix(self):
        if self.weights is None:
            raise RuntimeError("The database has no weights: compute or load them first.")
        if self._weighted is None:
            self._weighted = self._weight(self._term_counts())
        return self._weighted

    def find(self, visual_words, n):
        """
        Returns the n best matching documents for a bag of visual words,
        best first. Equal scores keep ascending document id order.
        """
        database = self._weighted_matrix()
        query = self._weight(image_to_bow(visual_words, self.num_words))
        scores = np.asarray((database @ query.T).toarray()).ravel()
        order = np.argsort(-scores, kind="stable")[:n]
        return [Match(int(i), float(scores[i])) for i in order]

    def sanity_check(self, n, show_progress=False):
        """Queries the database with each of its own documents, in id order."""
        return [
            self.find(self.documents[doc_id], n)
            for doc_id in tqdm(
                range(self.size()), desc="Sanity check", disable=not show_progress
            )
        ]


def populate_database(source, tree, db, show_progress=False):
    """
    Quantizes every document of source and inserts it into db.
    Returns (document map, descriptors read per document, total descriptors).
    """
    documents = {}
    features_read = []
    for desc_path in tqdm(
        list_descriptor_files(source), desc="Reading descriptors", disable=not show_progress
    ):
        descriptors = read_descriptors(desc_path)
        doc_id = db.insert(tree.quantize(descriptors))
        documents[doc_id] = db.documents[doc_id]
        features_read.append(len(descriptors))
    return documents, features_read, sum(features_read)


def query_database(source, tree, db, n, show_progress=False):
    """
    Queries db with every document of source. Query documents are numbered
    from 0 in read order, independently of the ids stored in db.
    Returns (query batch, total descriptors read).
    """
    all_matches = []
    total = 0
    for desc_path in tqdm(
        list_descriptor_files(source), desc="Querying", disable=not show_progress
    ):
        descriptors = read_descriptors(desc_path)
        total += len(descriptors)
        all_matches.append(db.find(tree.quantize(descriptors), n))
    return all_matches, total
