import pytest

from clinicdesk.services.cache import Cache
from clinicdesk.services.document_store import InMemoryDocumentStore


class FakeClock:
    """Manually advanced clock for expiry tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return Cache(clock=clock)


@pytest.fixture
def store():
    return InMemoryDocumentStore(
        {
            "products": {
                "p1": {"name": "Phonak Audeo", "price": 1200, "company": "Sonova"},
                "p2": {"name": "Oticon More", "price": 1500, "company": "Demant"},
                "p3": {"name": "Battery 312", "price": 5, "company": "Rayovac"},
            },
            "centers": {
                "c1": {"name": "Main Street"},
                "c2": {"name": "Central Mall"},
            },
        }
    )
