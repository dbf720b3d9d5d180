import time
from typing import Dict, List, NamedTuple, Optional, Tuple, Union

import numpy as np

from config import QueryConfig
from errors import EmptyCorpusError, EmptyQuerySetError
from indexer import Database, Match, populate_database, query_database
from results_writer import build_symlink_tree, save_document_map, write_report
from scene_description import SceneDescription, load_scene_description
from vocabulary_tree import VocabularyTree


class SameAsCorpus(NamedTuple):
    """The query images are the corpus images (sanity check)."""


class OwnedScene(NamedTuple):
    scene: SceneDescription


QuerySceneSource = Union[SameAsCorpus, OwnedScene]


class RunResult(NamedTuple):
    documents: Dict[int, np.ndarray]
    all_matches: List[List[Match]]
    wrong_matches: Optional[int]


def count_wrong_matches(all_matches, report=None):
    """
    Counts the documents of a self-query batch whose best match is not the
    document itself. report, if given, is called with each offending index.
    """
    wrong = 0
    for i, matches in enumerate(all_matches):
        if matches[0].id != i:
            wrong += 1
            if report is not None:
                report(i)
    return wrong


class VoctreeQuery:
    """
    Builds a bag-of-words database from a corpus with a trained vocabulary tree
    and queries it, either with a separate query set or with the corpus itself.
    """

    def __init__(self, config: QueryConfig):
        self.config = config
        self.tree = None
        self.db = None

    def log(self, message, level=1):
        if self.config.verbosity >= level:
            print(message)

    @property
    def show_progress(self):
        return self.config.verbosity >= 1

    def load_tree(self):
        self.log("Loading vocabulary tree")
        self.tree = VocabularyTree.load(str(self.config.tree))
        self.log(
            f"tree loaded with\n\t{self.tree.levels} levels\n\t{self.tree.splits} branching factor"
        )
        self.db = Database(self.tree.words)
        return self.tree

    def build_index(self, source=None):
        """
        Reads every document of source (the corpus by default), quantizes it
        and inserts it into the database. Returns (document map, total descriptors).
        """
        source = source if source is not None else self.config.keylist
        self.log(f"Reading descriptors from {source}")
        start = time.perf_counter()
        documents, features_read, total = populate_database(
            source, self.tree, self.db, show_progress=self.show_progress
        )
        elapsed = time.perf_counter() - start

        if total == 0:
            raise EmptyCorpusError(f"No descriptors loaded from {source}!!")

        self.log(
            f"Done! {len(documents)} sets of descriptors read for a total of {total} features"
        )
        self.log(f"Reading took {elapsed:.3f} sec")
        for doc_id, count in enumerate(features_read):
            self.log(f"\tdocument {doc_id}: {count} features", level=2)
        return documents, total

    def load_weights(self):
        """Loads the weights file if one is configured. Returns True if it did."""
        if self.config.weights is None:
            self.log("No weights specified, skipping...")
            return False
        self.log("Loading weights...")
        self.db.load_weights(self.config.weights)
        return True

    def resolve_weights(self, loaded=None):
        """
        Either uses the configured weights file or computes TF-IDF weights
        from the documents already in the database, never both.
        """
        if loaded is None:
            loaded = self.load_weights()
        if not loaded:
            self.log("Computing weights...")
            self.db.compute_tfidf_weights()

    def num_results(self):
        return self.config.num_results or self.db.size()

    def run_sanity_check(self):
        self.log("Sanity check: querying the database with the same documents")
        return self.db.sanity_check(self.num_results(), show_progress=self.show_progress)

    def run_external_query(self, source=None):
        source = source if source is not None else self.config.querylist
        self.log(f"Querying the database with the documents in {source}")
        all_matches, total = query_database(
            source, self.tree, self.db, self.num_results(), show_progress=self.show_progress
        )
        if total == 0:
            raise EmptyQuerySetError(f"No descriptors loaded from {source}!!")
        return all_matches

    def load_scenes(self) -> Tuple[SceneDescription, QuerySceneSource]:
        """Loads the corpus scene description and decides where query images come from."""
        corpus_scene = load_scene_description(self.config.keylist)
        self.log(f"SfM data loaded from {self.config.keylist} containing: ")
        self.log(f"\tnumber of views      : {len(corpus_scene)}")
        if self.config.querylist is None:
            return corpus_scene, SameAsCorpus()

        query_scene = load_scene_description(self.config.querylist)
        self.log(f"SfM data loaded from {self.config.querylist} containing: ")
        self.log(f"\tnumber of views      : {len(query_scene)}")
        return corpus_scene, OwnedScene(query_scene)

    def report_matches(self, all_matches):
        for i, matches in enumerate(all_matches):
            best = matches[0]
            self.log(
                f"query document {i} has {len(matches)} matches\tBest {best.id} with score {best.score:g}"
            )
            for match in matches:
                self.log(f"\t match {match.id} with score {match.score:g}", level=2)

    def materialize(self, all_matches):
        config = self.config
        if config.report is not None:
            write_report(config.report.path, all_matches, matlab=config.report.matlab)

        if config.symlinks_enabled:
            corpus_scene, query_source = self.load_scenes()
            query_scene = (
                query_source.scene if isinstance(query_source, OwnedScene) else corpus_scene
            )
            build_symlink_tree(
                config.outdir,
                all_matches,
                corpus_scene,
                query_scene,
                show_progress=self.show_progress,
            )
        elif config.outdir is not None:
            self.log("Symlinks need scene description (.json) inputs, skipping...")

    def run(self):
        config = self.config
        self.load_tree()

        self.log("Creating the database...")
        weights_loaded = self.load_weights()
        documents, _ = self.build_index()

        if config.document_map is not None:
            save_document_map(config.document_map, documents)

        self.resolve_weights(loaded=weights_loaded)

        wrong = None
        if config.querylist is None:
            all_matches = self.run_sanity_check()
        else:
            all_matches = self.run_external_query()

        self.report_matches(all_matches)
        self.materialize(all_matches)

        if config.querylist is None:
            wrong = count_wrong_matches(
                all_matches, report=lambda i: self.log(f"##### wrong match for document {i}")
            )
            if wrong:
                self.log(f"there are {wrong} wrong matches")
            else:
                self.log("no wrong matches!")

        return RunResult(documents, all_matches, wrong)


def run(config: QueryConfig) -> RunResult:
    return VoctreeQuery(config).run()
