import numpy as np
from sklearn.metrics.pairwise import euclidean_distances

from errors import LoadError
from utils import load_model, save_model

DIMENSION = 128


class VocabularyTree:
    """
    Hierarchical quantizer mapping a 128-d descriptor to a visual word id.

    The tree is complete: level l holds splits ** (l + 1) centres and the
    children of node n at level l are rows n * splits ... n * splits + splits - 1
    of level l + 1. Leaves of the last level are the visual words.
    """

    def __init__(self, centers):
        if not centers:
            raise ValueError("A vocabulary tree needs at least one level of centres.")
        self.centers = [np.asarray(level, dtype=np.float32) for level in centers]
        self.splits = self.centers[0].shape[0]
        for depth, level in enumerate(self.centers):
            expected = (self.splits ** (depth + 1), DIMENSION)
            if level.shape != expected:
                raise ValueError(
                    f"Level {depth} has shape {level.shape}, expected {expected}."
                )

    @property
    def levels(self):
        return len(self.centers)

    @property
    def words(self):
        """Vocabulary size, i.e. the number of leaves."""
        return self.splits ** self.levels

    def quantize(self, descriptors):
        """
        Converts descriptors to visual word ids by descending the tree greedily
        towards the nearest child centre. Ties go to the lowest child index.
        """
        if descriptors is None or len(descriptors) == 0:
            return np.array([], dtype=np.int64)
        descriptors = np.asarray(descriptors, dtype=np.float32)
        if descriptors.ndim != 2 or descriptors.shape[1] != DIMENSION:
            raise ValueError(
                f"Expected descriptors of dimension {DIMENSION}, got shape {descriptors.shape}."
            )

        nodes = np.zeros(len(descriptors), dtype=np.int64)
        offsets = np.arange(self.splits)
        for level in self.centers:
            children = nodes[:, None] * self.splits + offsets  # (n, splits)
            best = np.empty(len(descriptors), dtype=np.int64)
            # descriptors sharing a parent are compared against the same children
            for parent in np.unique(nodes):
                mask = nodes == parent
                distances = euclidean_distances(
                    descriptors[mask], level[children[mask][0]]
                )
                best[mask] = np.argmin(distances, axis=1)
            nodes = nodes * self.splits + best
        return nodes

    def save(self, filepath):
        save_model({"centers": self.centers}, filepath)

    @classmethod
    def load(cls, filepath):
        data = load_model(filepath)
        try:
            return cls(data["centers"])
        except (KeyError, TypeError, ValueError) as e:
            raise LoadError(f"Invalid vocabulary tree file {filepath}: {e}") from e
