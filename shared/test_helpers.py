"""
Test helper functions and factory methods for the Backrest repository services.
"""

from typing import Dict, Any, List


class TestDataFactory:
    """Factory for creating test data."""

    @staticmethod
    def create_test_communities() -> List[Dict[str, Any]]:
        """Create test communities."""
        return [
            {
                "id": 1,
                "name": "School of Engineering",
                "handle": "1721.1/1",
                "parentId": None,
                "shortDescription": "Engineering research output",
                "countItems": 2,
            },
            {
                "id": 2,
                "name": "Department of Aeronautics",
                "handle": "1721.1/2",
                "parentId": 1,
                "shortDescription": "Aero/Astro theses and papers",
                "countItems": 1,
            },
        ]

    @staticmethod
    def create_test_collections() -> List[Dict[str, Any]]:
        """Create test collections."""
        return [
            {"id": 10, "name": "Theses", "handle": "1721.1/10", "communityId": 2, "numberItems": 1},
            {"id": 11, "name": "Working Papers", "handle": "1721.1/11", "communityId": 1, "numberItems": 1},
        ]

    @staticmethod
    def create_test_items() -> List[Dict[str, Any]]:
        """Create test items."""
        return [
            {
                "id": 100,
                "name": "Wing flutter at transonic speeds",
                "handle": "1721.1/100",
                "collectionId": 10,
                "metadata": [
                    {"key": "dc.title", "value": "Wing flutter at transonic speeds", "language": "en"},
                    {"key": "dc.date.issued", "value": "2015-06-01", "language": None},
                ],
            },
            {
                "id": 101,
                "name": "Notes on lattice structures",
                "handle": "1721.1/101",
                "collectionId": 11,
                "metadata": [
                    {"key": "dc.title", "value": "Notes on lattice structures", "language": "en"},
                ],
            },
        ]

    @staticmethod
    def create_test_bitstreams() -> List[Dict[str, Any]]:
        """Create test bitstreams."""
        return [
            {
                "id": 1000,
                "name": "thesis.pdf",
                "itemId": 100,
                "mimeType": "application/pdf",
                "sizeBytes": 11,
                "bundleName": "ORIGINAL",
                "sequenceId": 1,
                "path": "12/34/1000",
                "policies": [{"action": "READ", "groupId": 0, "resourceId": 1000}],
            },
        ]

    @classmethod
    def create_test_catalog(cls) -> Dict[str, List[Dict[str, Any]]]:
        """Create a complete catalog document."""
        return {
            "communities": cls.create_test_communities(),
            "collections": cls.create_test_collections(),
            "items": cls.create_test_items(),
            "bitstreams": cls.create_test_bitstreams(),
        }


class FakeClock:
    """Manually advanced monotonic clock for expiry tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
