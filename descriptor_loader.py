import os
import numpy as np
from typing import List

from errors import LoadError
from scene_description import load_scene_description
from vocabulary_tree import DIMENSION

_HEADER = np.dtype("<u8")


def is_scene_description(path) -> bool:
    """Scene descriptions are JSON files, anything else is read as an image list."""
    return os.path.splitext(str(path))[1].lower() == ".json"


def list_descriptor_files(source) -> List[str]:
    """
    Returns the descriptor files of a document source in read order.
    The .desc files are expected to sit in the same directory as the source:
    <view id>.desc for a scene description, <image stem>.desc for an image list.
    """
    source = str(source)
    base_dir = os.path.dirname(os.path.abspath(source))

    if is_scene_description(source):
        scene = load_scene_description(source)
        return [
            os.path.join(base_dir, f"{scene.document_view(doc_id)}.desc")
            for doc_id in range(len(scene))
        ]

    if not os.path.isfile(source):
        raise LoadError(f"Image list not found: {source}")
    desc_files = []
    with open(source, "r", encoding="utf-8") as f:
        for line in f:
            fields = line.split()
            if not fields:
                continue
            stem = os.path.splitext(os.path.basename(fields[0]))[0]
            desc_files.append(os.path.join(base_dir, stem + ".desc"))
    return desc_files


def read_descriptors(desc_path) -> np.ndarray:
    """
    Reads one .desc file: a little-endian uint64 count followed by count * 128
    values stored either as float32 or as uint8.
    Returns a (count, 128) float32 array.
    """
    try:
        with open(desc_path, "rb") as f:
            raw = f.read()
    except OSError as e:
        raise LoadError(f"Could not read descriptor file {desc_path}: {e}") from e

    if len(raw) < _HEADER.itemsize:
        raise LoadError(f"Truncated descriptor file {desc_path}")
    count = int(np.frombuffer(raw, dtype=_HEADER, count=1)[0])
    payload = raw[_HEADER.itemsize:]

    if len(payload) == count * DIMENSION * 4:
        descriptors = np.frombuffer(payload, dtype="<f4")
    elif len(payload) == count * DIMENSION:
        descriptors = np.frombuffer(payload, dtype=np.uint8)
    else:
        raise LoadError(
            f"Descriptor file {desc_path} declares {count} descriptors "
            f"but holds {len(payload)} bytes of data"
        )
    return descriptors.reshape(count, DIMENSION).astype(np.float32)


def write_descriptors(desc_path, descriptors, dtype=np.float32):
    """Writes descriptors in the layout understood by read_descriptors."""
    descriptors = np.asarray(descriptors).astype(dtype).reshape(-1, DIMENSION)
    with open(desc_path, "wb") as f:
        f.write(np.array([len(descriptors)], dtype=_HEADER).tobytes())
        f.write(descriptors.astype(np.dtype(dtype).newbyteorder("<")).tobytes())

