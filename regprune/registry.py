import hashlib
import logging
from collections.abc import AsyncIterator
from datetime import datetime, timezone

import dateutil.parser
import httpx

from regprune.config import Config
from regprune.errors import (
    DeleteRejected,
    ManifestNotFound,
    NetworkError,
    RegistryError,
    UnexpectedStatus,
)
from regprune.utils import build_headers

DELETE_REJECTED_CODES = {403, 405, 409}


class RegistryClient:
    """Thin async wrapper around the Docker Registry HTTP API V2.

    The client owns an ``httpx.AsyncClient``; use it as an async context
    manager so the connection pool is closed when the run is over. Every
    failure is raised as a ``RegistryError`` subclass.
    """

    def __init__(self, session: httpx.AsyncClient, page_size: int = 100) -> None:
        self.session = session
        self.page_size = page_size

    @classmethod
    def from_config(
        cls, config: Config, transport: httpx.AsyncBaseTransport | None = None
    ) -> "RegistryClient":
        max_concurrent_requests = config.max_concurrent_requests
        max_keepalive_connections = (max_concurrent_requests // 2) or 1
        session = httpx.AsyncClient(
            base_url=config.registry_url,
            headers=build_headers(config),
            timeout=config.timeout,
            follow_redirects=True,
            limits=httpx.Limits(
                max_connections=max_concurrent_requests,
                max_keepalive_connections=max_keepalive_connections,
            ),
            proxy=config.proxy,
            transport=transport,
            trust_env=False,
        )
        return cls(session, page_size=config.page_size)

    async def __aenter__(self) -> "RegistryClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.session.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        logging.debug(f"{method} {url}")
        try:
            return await self.session.request(method, url, **kwargs)
        except httpx.TransportError as err:
            raise NetworkError(f"{method} {url} failed: {err!r}", url) from err

    async def _paginate(self, url: str, field: str, what: str) -> AsyncIterator[str]:
        next_url: str | None = url
        params: dict[str, int] | None = {"n": self.page_size}
        while next_url:
            response = await self._request("GET", next_url, params=params)
            if response.status_code != 200:
                raise UnexpectedStatus(
                    f"Error getting {what}",
                    str(response.url),
                    response.status_code,
                    response.text,
                )
            try:
                items = response.json().get(field) or []
            except (ValueError, AttributeError) as err:
                raise RegistryError(f"Invalid response for {what}: {err}", str(response.url)) from err
            for item in items:
                yield item

            # The next link already carries the page size and the last item
            params = None
            next_link = response.links.get("next", {}).get("url")
            next_url = str(response.url.join(next_link)) if next_link else None

    def list_repositories(self) -> AsyncIterator[str]:
        return self._paginate("/v2/_catalog", "repositories", "catalog")

    async def list_tags(self, repository: str) -> list[str]:
        return [
            tag
            async for tag in self._paginate(
                f"/v2/{repository}/tags/list", "tags", f"tags for {repository}"
            )
        ]

    async def fetch_manifest(self, repository: str, tag: str) -> tuple[str, str | None]:
        """Return the manifest digest and the config blob digest of a tag.

        The config digest is None for manifest lists and OCI indexes, which
        have no single image configuration.
        """
        response = await self._request("GET", f"/v2/{repository}/manifests/{tag}")
        if response.status_code == 404:
            raise ManifestNotFound(
                f"Manifest {repository}:{tag} not found",
                str(response.url),
                response.status_code,
                response.text,
            )
        if response.status_code != 200:
            raise UnexpectedStatus(
                f"Error getting digest for {repository}:{tag}",
                str(response.url),
                response.status_code,
                response.text,
            )

        digest = response.headers.get("Docker-Content-Digest")
        if not digest:
            digest = f"sha256:{hashlib.sha256(response.content).hexdigest()}"

        try:
            config_digest = (response.json().get("config") or {}).get("digest")
        except (ValueError, AttributeError):
            config_digest = None
        return digest, config_digest

    async def resolve_digest(self, repository: str, tag: str) -> str:
        digest, _ = await self.fetch_manifest(repository, tag)
        return digest

    async def fetch_created_at(self, repository: str, digest: str) -> datetime | None:
        """Read the `created` field of an image config blob.

        Returns None when the timestamp cannot be determined, so callers treat
        the tag as having an unknown age.
        """
        try:
            response = await self._request("GET", f"/v2/{repository}/blobs/{digest}")
        except NetworkError as err:
            logging.warning(f"Error getting creation time for {repository}@{digest}. {err}")
            return None
        if response.status_code != 200:
            logging.warning(
                f"Error getting creation time for {repository}@{digest}. "
                f"code: {response.status_code}"
            )
            return None
        try:
            created = response.json().get("created")
        except (ValueError, AttributeError):
            return None
        if not created:
            return None
        try:
            timestamp = dateutil.parser.parse(created)
        except (ValueError, TypeError, OverflowError):
            logging.warning(f"Unparsable creation time '{created}' for {repository}@{digest}")
            return None
        if timestamp.tzinfo is None:
            return timestamp.replace(tzinfo=timezone.utc)
        return timestamp.astimezone(timezone.utc)

    async def delete_manifest(self, repository: str, digest: str) -> None:
        response = await self._request("DELETE", f"/v2/{repository}/manifests/{digest}")
        if response.status_code in DELETE_REJECTED_CODES:
            raise DeleteRejected(
                f"Registry rejected deletion of {repository}@{digest}",
                str(response.url),
                response.status_code,
                response.text,
            )
        if not response.is_success:
            raise UnexpectedStatus(
                f"Error deleting {repository}@{digest}",
                str(response.url),
                response.status_code,
                response.text,
            )
