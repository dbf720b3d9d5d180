import json
import os

import numpy as np
import pytest

from descriptor_loader import write_descriptors
from vocabulary_tree import DIMENSION, VocabularyTree

LEVELS = 2
SPLITS = 4


def _digits(value, count, base):
    digits = []
    for _ in range(count):
        digits.append(value % base)
        value //= base
    return digits[::-1]


def _path_vector(digits, splits):
    vector = np.zeros(DIMENSION, dtype=np.float32)
    for level, digit in enumerate(digits):
        vector[level * splits + digit] = 1.0
    return vector


def make_tree(levels=LEVELS, splits=SPLITS):
    """A tree whose leaf w is reached exactly by word_descriptor(w)."""
    centers = []
    for level in range(levels):
        nodes = splits ** (level + 1)
        centers.append(
            np.stack([_path_vector(_digits(n, level + 1, splits), splits) for n in range(nodes)])
        )
    return VocabularyTree(centers)


def word_descriptor(word, levels=LEVELS, splits=SPLITS):
    return _path_vector(_digits(word, levels, splits), splits)


def descriptors_for(words):
    if not words:
        return np.zeros((0, DIMENSION), dtype=np.float32)
    return np.stack([word_descriptor(w) for w in words])


def write_scene(path, filenames, root_path, view_ids=None):
    if view_ids is None:
        view_ids = range(len(filenames))
    views = [
        {
            "key": view_id,
            "value": {
                "polymorphic_id": 1073741824,
                "ptr_wrapper": {
                    "id": 2147483649 + view_id,
                    "data": {
                        "local_path": "",
                        "filename": filename,
                        "width": 640,
                        "height": 480,
                        "id_view": view_id,
                        "id_intrinsic": 0,
                        "id_pose": view_id,
                    },
                },
            },
        }
        for view_id, filename in zip(view_ids, filenames)
    ]
    with open(path, "w", encoding="utf-8") as f:
        json.dump({"sfm_data_version": "0.2", "root_path": str(root_path), "views": views}, f)


def make_scene_corpus(directory, documents, prefix="img", view_ids=None):
    """Writes <view id>.desc files, the images and an sfm_data.json describing them."""
    if view_ids is None:
        view_ids = list(range(len(documents)))
    directory.mkdir(parents=True, exist_ok=True)
    images = directory / "images"
    images.mkdir(exist_ok=True)
    filenames = []
    for view_id, words in zip(view_ids, documents):
        write_descriptors(str(directory / f"{view_id}.desc"), descriptors_for(words))
        filename = f"{prefix}_{view_id}.jpg"
        (images / filename).write_bytes(b"")
        filenames.append(filename)
    scene_path = directory / "sfm_data.json"
    write_scene(scene_path, filenames, images, view_ids=view_ids)
    return scene_path


def make_list_corpus(directory, documents, prefix="img"):
    """Writes <image stem>.desc files and a list.txt naming the images."""
    directory.mkdir(parents=True, exist_ok=True)
    lines = []
    for doc_id, words in enumerate(documents):
        stem = f"{prefix}_{doc_id}"
        write_descriptors(str(directory / f"{stem}.desc"), descriptors_for(words))
        lines.append(f"{stem}.jpg 0 0\n")
    list_path = directory / "list.txt"
    list_path.write_text("".join(lines))
    return list_path


CORPUS = [
    [0, 1, 2, 3],
    [4, 5, 6, 7, 7],
    [8, 9, 10],
    [11, 12, 12, 13],
    [14, 15, 0],
]


@pytest.fixture
def tree():
    return make_tree()


@pytest.fixture
def tree_file(tmp_path, tree):
    path = tmp_path / "tree.pkl"
    tree.save(str(path))
    return path


@pytest.fixture
def scene_corpus(tmp_path):
    return make_scene_corpus(tmp_path / "corpus", CORPUS)


@pytest.fixture
def list_corpus(tmp_path):
    return make_list_corpus(tmp_path / "corpus_list", CORPUS)


symlinks_supported = pytest.mark.skipif(
    not hasattr(os, "symlink") or os.name == "nt", reason="symbolic links unavailable"
)
