"""Typed failures raised by the store, the graph cache and the search engine"""


class SixthDegreeError(Exception):
    """Base class for all application errors"""


class PersonNotFound(SixthDegreeError):
    """A person name (or id) does not resolve to a stored person"""

    def __init__(self, name):
        self.name = name
        super().__init__(f'Person "{name}" not found')


class CacheLoadFailed(SixthDegreeError):
    """Building a graph snapshot from the store failed"""

    def __init__(self, cause: Exception):
        self.cause = cause
        super().__init__(f"Failed to load graph cache: {cause}")


class PathReconstructionError(SixthDegreeError):
    """
    The predecessor map does not lead back to the start node.

    Only raised when the BFS bookkeeping is inconsistent, so it is never
    mapped to a user-facing 4xx response.
    """


class PersonAlreadyExists(SixthDegreeError):
    """A person with the same unique name is already stored"""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f'Person "{name}" already exists')
