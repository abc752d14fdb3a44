"""
Repository read API service for Backrest.
"""

from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import Query, Request, Response
from fastapi.responses import FileResponse, PlainTextResponse

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config
from service_repository.app.adapters.catalog_client import CatalogClient
from service_repository.app.caching.cache_manager import CacheManager, CacheState
from service_repository.app.negotiation import render, response_media_type


NO_STORE = {"Cache-Control": "must-revalidate,no-cache,no-store"}


class RepositoryService(BaseService):
    """Repository read API service implementation."""

    def __init__(self, config: Optional[ServiceConfig] = None, catalog: Optional[CatalogClient] = None):
        super().__init__("repository", config=config or get_config("repository"))
        self.catalog = catalog or CatalogClient.from_file(self.config.catalog_file)
        self.cache_manager = CacheManager.from_config(self.config, metrics=self.metrics)

        self._setup_repository_routes()
        self._setup_cache_routes()
        self._setup_fallback_routes()

    async def on_startup(self) -> None:
        await self.cache_manager.start()
        self.logger.info(
            "Repository service started",
            cache=self.cache_manager.backend_name,
            cache_active=self.cache_manager.active,
            catalog=self.catalog.counts(),
        )

    async def on_shutdown(self) -> None:
        await self.cache_manager.stop()

    def _setup_middleware(self):
        """Set up the response cache inside the common request middleware."""

        @self.app.middleware("http")
        async def response_cache(request: Request, call_next):
            control = await self.cache_manager.lookup(request)
            request.state.cache_ctl = control

            if control.hit:
                return Response(content=control.value, media_type=control.media_type)

            response = await call_next(request)
            if control.state is not CacheState.MISS:
                return response

            body = b"".join([chunk async for chunk in response.body_iterator])
            if response.status_code == 200:
                await self.cache_manager.remember(control, body.decode("utf-8"))

            replayed = Response(content=body, status_code=response.status_code)
            # Raw header pairs keep repeated fields such as set-cookie.
            replayed.raw_headers = list(response.raw_headers)
            return replayed

        super()._setup_middleware()

    def _negotiated(self, request: Request, data: Any, root: str) -> Response:
        media_type = response_media_type(request.headers.get("accept"))
        return Response(content=render(data, media_type, root), media_type=media_type)

    @staticmethod
    def _not_found(message: str) -> PlainTextResponse:
        return PlainTextResponse(message, status_code=404)

    def _setup_repository_routes(self):
        """Set up catalog read routes."""
        catalog = self.catalog

        @self.app.get("/ping")
        async def ping():
            return PlainTextResponse("pong", headers=NO_STORE)

        @self.app.get("/handle/{prefix}/{suffix}")
        async def get_handle(prefix: str, suffix: str, request: Request):
            handle = f"{prefix}/{suffix}"
            dso = await catalog.find_by_handle(handle)
            if dso is None:
                return self._not_found(f"No such handle: {handle}")
            return self._negotiated(request, dso, dso["type"])

        @self.app.get("/communities")
        async def list_communities(request: Request):
            return self._negotiated(request, await catalog.list_communities(), "communities")

        @self.app.get("/communities/top-communities")
        async def top_communities(request: Request):
            return self._negotiated(request, await catalog.list_communities(top_only=True), "communities")

        @self.app.get("/communities/{community_id}")
        async def get_community(community_id: int, request: Request):
            community = await catalog.get_community(community_id)
            if community is None:
                return self._not_found(f"No such community: {community_id}")
            return self._negotiated(request, community, "community")

        @self.app.get("/communities/{community_id}/collections")
        async def community_collections(community_id: int, request: Request):
            if await catalog.get_community(community_id) is None:
                return self._not_found(f"No such community: {community_id}")
            return self._negotiated(request, await catalog.community_collections(community_id), "collections")

        @self.app.get("/communities/{community_id}/communities")
        async def sub_communities(community_id: int, request: Request):
            if await catalog.get_community(community_id) is None:
                return self._not_found(f"No such community: {community_id}")
            return self._negotiated(request, await catalog.sub_communities(community_id), "communities")

        @self.app.get("/collections")
        async def list_collections(request: Request):
            return self._negotiated(request, await catalog.list_collections(), "collections")

        @self.app.get("/collections/{collection_id}")
        async def get_collection(collection_id: int, request: Request):
            collection = await catalog.get_collection(collection_id)
            if collection is None:
                return self._not_found(f"No such collection: {collection_id}")
            return self._negotiated(request, collection, "collection")

        @self.app.get("/collections/{collection_id}/items")
        async def collection_items(collection_id: int, request: Request):
            if await catalog.get_collection(collection_id) is None:
                return self._not_found(f"No such collection: {collection_id}")
            return self._negotiated(request, await catalog.collection_items(collection_id), "items")

        @self.app.get("/items")
        async def list_items(request: Request):
            return self._negotiated(request, await catalog.list_items(), "items")

        @self.app.get("/items/{item_id}")
        async def get_item(item_id: int, request: Request):
            item = await catalog.get_item(item_id)
            if item is None:
                return self._not_found(f"No such item: {item_id}")
            return self._negotiated(request, item, "item")

        @self.app.get("/items/{item_id}/metadata")
        async def item_metadata(item_id: int, request: Request):
            metadata = await catalog.item_metadata(item_id)
            if metadata is None:
                return self._not_found(f"No such item: {item_id}")
            return self._negotiated(request, metadata, "metadata")

        @self.app.get("/items/{item_id}/bitstreams")
        async def item_bitstreams(item_id: int, request: Request):
            if await catalog.get_item(item_id) is None:
                return self._not_found(f"No such item: {item_id}")
            return self._negotiated(request, await catalog.item_bitstreams(item_id), "bitstreams")

        @self.app.get("/bitstreams")
        async def list_bitstreams(request: Request):
            return self._negotiated(request, await catalog.list_bitstreams(), "bitstreams")

        @self.app.get("/bitstreams/{bitstream_id}")
        async def get_bitstream(bitstream_id: int, request: Request):
            bitstream = await catalog.get_bitstream(bitstream_id)
            if bitstream is None:
                return self._not_found(f"No such bitstream: {bitstream_id}")
            return self._negotiated(request, bitstream, "bitstream")

        @self.app.get("/bitstreams/{bitstream_id}/policy")
        async def bitstream_policy(bitstream_id: int, request: Request):
            policies = await catalog.bitstream_policies(bitstream_id)
            if policies is None:
                return self._not_found(f"No such bitstream: {bitstream_id}")
            return self._negotiated(request, policies, "policies")

        @self.app.get("/bitstreams/{bitstream_id}/retrieve")
        async def retrieve_bitstream(bitstream_id: int):
            bitstream = await catalog.get_bitstream(bitstream_id)
            if bitstream is None:
                return self._not_found(f"No such bitstream: {bitstream_id}")
            if not self.config.assets_dir:
                return PlainTextResponse(f"Inaccessible bitstream: {bitstream_id}", status_code=403)

            relative = catalog.bitstream_path(bitstream_id)
            assets = Path(self.config.assets_dir).resolve()
            file_path = (assets / relative).resolve() if relative else None
            if file_path is None or assets not in file_path.parents or not file_path.is_file():
                return self._not_found(f"No content for bitstream: {bitstream_id}")
            return FileResponse(
                file_path,
                media_type=bitstream.get("mimeType") or "application/octet-stream",
                filename=bitstream.get("name"),
            )

    def _setup_cache_routes(self):
        """Set up the cache control surface."""

        @self.app.get("/cache")
        async def cache_status(request: Request):
            status = await self.cache_manager.status()
            if status is None:
                return PlainTextResponse("Cache not active", status_code=404)
            return self._negotiated(request, status.model_dump(), "cacheStatus")

        @self.app.post("/cache")
        async def cache_control(command: Optional[str] = Query(default=None)):
            if not self.cache_manager.active:
                return PlainTextResponse("Cache not active", status_code=404)
            await self.cache_manager.control(command)
            return PlainTextResponse("Cache command received", status_code=202)

    def _setup_fallback_routes(self):
        """Catch-all for unknown GET paths; must be registered last."""

        @self.app.get("/{path:path}", include_in_schema=False)
        async def no_such_page(path: str):
            return self._not_found("No such page")

    async def _check_dependencies(self) -> Dict[str, Any]:
        """Check repository service dependencies."""
        return {
            "catalog": "ok",
            "cache": self.cache_manager.backend_name or "disabled",
            "cache_active": self.cache_manager.active,
        }


def create_app():
    """Create FastAPI application."""
    service = RepositoryService()
    return service.app


if __name__ == "__main__":
    service = RepositoryService()
    service.run()
