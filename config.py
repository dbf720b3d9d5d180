from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


def _is_json(path: Path) -> bool:
    return path.suffix.lower() == ".json"


class ReportTarget(BaseModel):
    """Where to write the match report and in which syntax."""

    model_config = ConfigDict(frozen=True)

    path: Path = Field(description="File receiving the match report.")
    matlab: bool = Field(default=False, description="Write m{i}=[ id, score; ... ]; cell assignments.")


class QueryConfig(BaseModel):
    """Immutable settings of one database build and query run."""

    model_config = ConfigDict(frozen=True)

    tree: Path = Field(description="Vocabulary tree file.")
    keylist: Path = Field(description="Image list or scene description of the corpus.")
    weights: Optional[Path] = Field(default=None, description="Precomputed word weights; skips computing them.")
    querylist: Optional[Path] = Field(default=None, description="Query documents; without it a sanity check is run.")
    report: Optional[ReportTarget] = Field(default=None, description="Match report output.")
    outdir: Optional[Path] = Field(default=None, description="Root of the symlink tree of ranked matches.")
    document_map: Optional[Path] = Field(default=None, description="Dump of the word ids of every document.")
    num_results: int = Field(default=10, ge=0, description="Matches per query, 0 for the whole database.")
    verbosity: int = Field(default=1, ge=0, description="0 mutes status output.")

    @property
    def symlinks_enabled(self) -> bool:
        """The symlink tree needs scene descriptions for the corpus and the query set."""
        if self.outdir is None or not _is_json(self.keylist):
            return False
        return self.querylist is None or _is_json(self.querylist)


__all__ = ["QueryConfig", "ReportTarget"]
