from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from shared.logging import get_logger


RESOURCE_TYPES = ("communities", "collections", "items", "bitstreams")

TYPE_NAMES = {
    "communities": "community",
    "collections": "collection",
    "items": "item",
    "bitstreams": "bitstream",
}


class CatalogClient:
    """Read-only access to repository communities, collections, items and bitstreams.

    Records are loaded from a JSON document with one list per resource type.
    Cross references use ``communityId``/``parentId`` (communities),
    ``communityId`` (collections), ``collectionId`` (items) and ``itemId``
    (bitstreams).
    """

    def __init__(self, data: Optional[Dict[str, List[Dict[str, Any]]]] = None) -> None:
        self._logger = get_logger("repository.catalog")
        self._records: Dict[str, Dict[int, Dict[str, Any]]] = {
            kind: {int(row["id"]): dict(row) for row in (data or {}).get(kind, [])}
            for kind in RESOURCE_TYPES
        }

    @classmethod
    def from_file(cls, path: Optional[Union[str, Path]]) -> "CatalogClient":
        if not path:
            return cls()
        file_path = Path(path)
        try:
            data = json.loads(file_path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            get_logger("repository.catalog").warning("Catalog file not found", path=str(file_path))
            return cls()
        return cls(data)

    def _view(self, kind: str, row: Dict[str, Any]) -> Dict[str, Any]:
        view = {key: value for key, value in row.items() if key not in ("path", "content")}
        view["type"] = TYPE_NAMES[kind]
        view["link"] = f"/{kind}/{row['id']}"
        if kind == "bitstreams":
            view["retrieveLink"] = f"/bitstreams/{row['id']}/retrieve"
        return view

    def _all(self, kind: str, **match: Any) -> List[Dict[str, Any]]:
        rows = self._records[kind].values()
        return [
            self._view(kind, row)
            for row in sorted(rows, key=lambda r: r["id"])
            if all(row.get(field) == value for field, value in match.items())
        ]

    def _one(self, kind: str, record_id: int) -> Optional[Dict[str, Any]]:
        row = self._records[kind].get(record_id)
        return self._view(kind, row) if row is not None else None

    async def list_communities(self, *, top_only: bool = False) -> List[Dict[str, Any]]:
        if top_only:
            return self._all("communities", parentId=None)
        return self._all("communities")

    async def get_community(self, community_id: int) -> Optional[Dict[str, Any]]:
        return self._one("communities", community_id)

    async def sub_communities(self, community_id: int) -> List[Dict[str, Any]]:
        return self._all("communities", parentId=community_id)

    async def community_collections(self, community_id: int) -> List[Dict[str, Any]]:
        return self._all("collections", communityId=community_id)

    async def list_collections(self) -> List[Dict[str, Any]]:
        return self._all("collections")

    async def get_collection(self, collection_id: int) -> Optional[Dict[str, Any]]:
        return self._one("collections", collection_id)

    async def collection_items(self, collection_id: int) -> List[Dict[str, Any]]:
        return self._all("items", collectionId=collection_id)

    async def list_items(self) -> List[Dict[str, Any]]:
        return self._all("items")

    async def get_item(self, item_id: int) -> Optional[Dict[str, Any]]:
        return self._one("items", item_id)

    async def item_metadata(self, item_id: int) -> Optional[List[Dict[str, Any]]]:
        row = self._records["items"].get(item_id)
        return list(row.get("metadata", [])) if row is not None else None

    async def item_bitstreams(self, item_id: int) -> List[Dict[str, Any]]:
        return self._all("bitstreams", itemId=item_id)

    async def list_bitstreams(self) -> List[Dict[str, Any]]:
        return self._all("bitstreams")

    async def get_bitstream(self, bitstream_id: int) -> Optional[Dict[str, Any]]:
        return self._one("bitstreams", bitstream_id)

    async def bitstream_policies(self, bitstream_id: int) -> Optional[List[Dict[str, Any]]]:
        row = self._records["bitstreams"].get(bitstream_id)
        return list(row.get("policies", [])) if row is not None else None

    def bitstream_path(self, bitstream_id: int) -> Optional[str]:
        row = self._records["bitstreams"].get(bitstream_id)
        return row.get("path") if row is not None else None

    async def find_by_handle(self, handle: str) -> Optional[Dict[str, Any]]:
        for kind in ("communities", "collections", "items"):
            for row in self._records[kind].values():
                if row.get("handle") == handle:
                    return self._view(kind, row)
        self._logger.debug("Handle not found", handle=handle)
        return None

    def counts(self) -> Dict[str, int]:
        return {kind: len(rows) for kind, rows in self._records.items()}
