import json
import os
from typing import Dict, List, Optional

from errors import ConsistencyError, LoadError


class SceneDescription:
    """View id -> image path mapping of a capture session, plus its root directory."""

    def __init__(self, views: Dict[int, str], root_path: str = "", source: Optional[str] = None):
        self.views = dict(views)
        self.root_path = root_path
        self.source = source

    def __len__(self):
        return len(self.views)

    def view_ids(self) -> List[int]:
        return sorted(self.views)

    def document_view(self, document_id) -> int:
        """
        View id of a document. Documents are numbered densely in ascending
        view id order, which is the order their descriptors are read in.
        """
        view_ids = self.view_ids()
        if not 0 <= int(document_id) < len(view_ids):
            raise ConsistencyError(document_id)
        return view_ids[int(document_id)]

    def image_path(self, view_id) -> str:
        """Image path of a view, relative to root_path."""
        try:
            return self.views[int(view_id)]
        except KeyError:
            raise ConsistencyError(view_id) from None

    def absolute_image_path(self, view_id) -> str:
        return os.path.abspath(os.path.join(self.root_path, self.image_path(view_id)))

    def image_filename(self, view_id) -> str:
        return os.path.basename(self.image_path(view_id))


def _parse_view(entry):
    """
    Parses one entry of the "views" list. Accepts the polymorphic form
    {"key": id, "value": {"ptr_wrapper": {"data": {...}}}} and the flat
    {"key": id, "value": {...}} form.
    """
    value = entry["value"]
    data = value.get("ptr_wrapper", {}).get("data", value)
    view_id = int(entry.get("key", data.get("id_view")))
    image_path = os.path.join(data.get("local_path", ""), data["filename"])
    return view_id, image_path


def load_scene_description(filepath) -> SceneDescription:
    """Loads the views of an sfm_data-style JSON file."""
    filepath = str(filepath)
    if not os.path.isfile(filepath):
        raise LoadError(f"Could not load the sfm_data file {filepath}!")
    try:
        with open(filepath, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise LoadError(f"Could not load the sfm_data file {filepath}: {e}") from e

    views = {}
    try:
        for entry in data.get("views", []):
            view_id, image_path = _parse_view(entry)
            views[view_id] = image_path
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise LoadError(f"Malformed view in {filepath}: {e}") from e

    root_path = data.get("root_path", "")
    if not root_path:
        root_path = os.path.dirname(os.path.abspath(filepath))
    return SceneDescription(views, root_path=root_path, source=filepath)
