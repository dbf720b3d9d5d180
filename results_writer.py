import os
from tqdm import tqdm

from utils import ensure_dir, zero_pad

RANK_WIDTH = 4


def format_score(score):
    return f"{score:g}"


def render_plain(all_matches):
    """One "<query> <match id> <score>" line per match, matches in rank order."""
    lines = []
    for i, matches in enumerate(all_matches):
        for match in matches:
            lines.append(f"{i} {match.id} {format_score(match.score)}\n")
    return "".join(lines)


def render_matlab(all_matches):
    """One 1-based cell array assignment per query: m{i+1}=[ id, score; ... ];"""
    lines = []
    for i, matches in enumerate(all_matches):
        pairs = "".join(f"{m.id}, {format_score(m.score)}; " for m in matches)
        lines.append(f"m{{{i + 1}}}=[ {pairs}];\n")
    return "".join(lines)


def write_report(filepath, all_matches, matlab=False):
    ensure_dir(os.path.dirname(str(filepath)))
    text = render_matlab(all_matches) if matlab else render_plain(all_matches)
    with open(filepath, "w", encoding="utf-8") as f:
        f.write(text)


def render_document_map(documents):
    """One "d{<id>} = [ w, w, ... ];" line per document, ids ascending."""
    lines = []
    for doc_id in sorted(documents):
        words = "".join(f"{w}, " for w in documents[doc_id])
        lines.append(f"d{{{doc_id}}} = [ {words}];\n")
    return "".join(lines)


def save_document_map(filepath, documents):
    ensure_dir(os.path.dirname(str(filepath)))
    with open(filepath, "w", encoding="utf-8") as f:
        f.write(render_document_map(documents))


def _symlink(target, link_name):
    if os.path.lexists(link_name):
        os.remove(link_name)
    os.symlink(target, link_name)


def build_symlink_tree(outdir, all_matches, corpus_scene, query_scene, show_progress=False):
    """
    Creates outdir/<query image>/ for every query, holding a link to the query
    image itself and one NNNN.<image> link per match, NNNN being its rank.
    Document ids are resolved to views through each scene's read order.
    Raises ConsistencyError on the first id missing from a scene description.
    """
    outdir = str(outdir)
    ensure_dir(outdir)
    for i, matches in enumerate(
        tqdm(all_matches, desc="Creating symlinks", disable=not show_progress)
    ):
        query_view = query_scene.document_view(i)
        query_name = query_scene.image_filename(query_view)
        bucket = os.path.join(outdir, query_name)
        ensure_dir(bucket)
        _symlink(query_scene.absolute_image_path(query_view), os.path.join(bucket, query_name))

        for rank, match in enumerate(matches):
            view = corpus_scene.document_view(match.id)
            link_name = f"{zero_pad(rank, RANK_WIDTH)}.{corpus_scene.image_filename(view)}"
            _symlink(corpus_scene.absolute_image_path(view), os.path.join(bucket, link_name))
