import os
import pickle

from errors import LoadError


def ensure_dir(path):
    """Creates a directory (and its parents) if it does not exist yet."""
    if path:
        os.makedirs(path, exist_ok=True)


def zero_pad(value, width=4):
    return f"{value:0{width}d}"


def save_model(model, filepath):
    """Saves a model to a file using pickle."""
    ensure_dir(os.path.dirname(filepath))
    with open(filepath, "wb") as f:
        pickle.dump(model, f)


def load_model(filepath):
    """Loads a model from a file using pickle."""
    if not os.path.exists(filepath):
        raise LoadError(f"Model file not found: {filepath}")
    try:
        with open(filepath, "rb") as f:
            return pickle.load(f)
    except Exception as e:
        raise LoadError(f"Error loading model from {filepath}: {e}") from e
