import numpy as np
import pytest

from conftest import CORPUS, descriptors_for, make_scene_corpus
from descriptor_loader import (
    is_scene_description,
    list_descriptor_files,
    read_descriptors,
    write_descriptors,
)
from errors import LoadError


def test_source_kind():
    assert is_scene_description("a/sfm_data.json")
    assert is_scene_description("a/SFM_DATA.JSON")
    assert not is_scene_description("a/list.txt")


def test_list_files_from_scene(scene_corpus):
    files = list_descriptor_files(scene_corpus)
    assert [f.rsplit("/", 1)[-1] for f in files] == [f"{i}.desc" for i in range(len(CORPUS))]


def test_list_files_from_image_list(list_corpus):
    files = list_descriptor_files(list_corpus)
    assert [f.rsplit("/", 1)[-1] for f in files] == [f"img_{i}.desc" for i in range(len(CORPUS))]


def test_image_list_skips_blank_lines(tmp_path):
    list_path = tmp_path / "list.txt"
    list_path.write_text("a.jpg 0 0\n\n  \nsub/b.png\n")
    files = list_descriptor_files(list_path)
    assert [f.rsplit("/", 1)[-1] for f in files] == ["a.desc", "b.desc"]


def test_missing_image_list(tmp_path):
    with pytest.raises(LoadError):
        list_descriptor_files(tmp_path / "list.txt")


@pytest.mark.parametrize("dtype", [np.float32, np.uint8])
def test_read_descriptors(tmp_path, dtype):
    descriptors = descriptors_for([1, 2, 3]) * 7
    path = tmp_path / "x.desc"
    write_descriptors(str(path), descriptors, dtype=dtype)

    read = read_descriptors(str(path))
    assert read.dtype == np.float32
    np.testing.assert_array_equal(read, descriptors)


def test_read_empty_descriptor_file(tmp_path):
    path = tmp_path / "x.desc"
    write_descriptors(str(path), descriptors_for([]))
    assert read_descriptors(str(path)).shape == (0, 128)


def test_read_missing_descriptor_file(tmp_path):
    with pytest.raises(LoadError):
        read_descriptors(str(tmp_path / "x.desc"))


def test_read_inconsistent_descriptor_file(tmp_path):
    path = tmp_path / "x.desc"
    path.write_bytes(np.array([3], dtype="<u8").tobytes() + b"\x00" * 10)
    with pytest.raises(LoadError):
        read_descriptors(str(path))


def test_scene_descriptor_files_follow_view_order(tmp_path):
    scene_path = make_scene_corpus(tmp_path / "c", [[1], [2], [3]], view_ids=[9, 2, 5])
    files = list_descriptor_files(scene_path)
    assert [f.rsplit("/", 1)[-1] for f in files] == ["2.desc", "5.desc", "9.desc"]
