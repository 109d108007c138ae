"""
In-flight guard for authority resources.
"""

from contextlib import contextmanager
from typing import Iterator, Set

from ..errors import AuthorityBusy

VERSIONS = "versions"
CHECKPOINTS = "checkpoints"
RESUME = "resume"
SYSTEM = "system"


class InFlightGuard:
    """
    One flag per authority resource.

    A second call for a resource that is still awaiting its authority is
    refused with AuthorityBusy instead of being queued.
    """

    def __init__(self):
        self._busy: Set[str] = set()

    def busy(self, resource: str) -> bool:
        return resource in self._busy

    @contextmanager
    def hold(self, resource: str) -> Iterator[None]:
        if resource in self._busy:
            raise AuthorityBusy(f"A {resource} request is already in progress")
        self._busy.add(resource)
        try:
            yield
        finally:
            self._busy.discard(resource)
