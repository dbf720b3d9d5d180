class VoctreeError(Exception):
    """Base class for every fatal condition of a query run."""


class LoadError(VoctreeError):
    """A tree, weights, descriptor or scene description file could not be read."""


class EmptyCorpusError(VoctreeError):
    """No descriptors could be read from any document of the corpus."""


class EmptyQuerySetError(EmptyCorpusError):
    """No descriptors could be read from any document of the query set."""


class ConsistencyError(VoctreeError):
    """A document id has no matching view in the scene description."""

    def __init__(self, document_id):
        super().__init__(f"Could not find the image file for the document {document_id}!")
        self.document_id = document_id
