import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from regprune.config import Config
from regprune.models import RepositoryInventory, TagInfo

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def days_ago(days: int) -> datetime:
    return NOW - timedelta(days=days)


def make_inventory(*tags: tuple[str, str, int | None]) -> RepositoryInventory:
    return RepositoryInventory(
        name="app",
        tags=[
            TagInfo(
                repository="app",
                name=name,
                digest=digest,
                created=days_ago(age) if age is not None else None,
            )
            for name, digest, age in tags
        ],
    )


def names(tags: list[TagInfo]) -> list[str]:
    return [tag.name for tag in tags]


@dataclass
class Image:
    digest: str
    config_digest: str | None
    created: str | None


@dataclass
class FakeRegistry:
    """In-memory Registry V2 server served through httpx.MockTransport."""

    repositories: dict[str, dict[str, Image]] = field(default_factory=dict)
    read_only: bool = False
    broken_tags: set[tuple[str, str]] = field(default_factory=set)
    broken_repositories: set[str] = field(default_factory=set)
    catalog_status: int = 200
    page_size: int | None = None
    requests: list[httpx.Request] = field(default_factory=list)

    def add(self, repository: str, tag: str, digest: str, created: datetime | str | None) -> None:
        if isinstance(created, datetime):
            created = created.isoformat().replace("+00:00", "Z")
        config_digest = f"sha256:config-{digest}"
        self.repositories.setdefault(repository, {})[tag] = Image(digest, config_digest, created)

    @property
    def deletes(self) -> list[httpx.Request]:
        return [req for req in self.requests if req.method == "DELETE"]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def paginate(self, request: httpx.Request, items: list[str], key: str, extra: dict) -> httpx.Response:
        items = sorted(items)
        n = self.page_size or int(request.url.params.get("n", len(items) or 1))
        last = request.url.params.get("last")
        if last:
            items = [item for item in items if item > last]
        page, rest = items[:n], items[n:]
        headers = {}
        if rest:
            headers["Link"] = f'<{request.url.path}?n={n}&last={page[-1]}>; rel="next"'
        return httpx.Response(200, json={**extra, key: page}, headers=headers)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/v2/_catalog":
            if self.catalog_status != 200:
                return httpx.Response(self.catalog_status, text="catalog unavailable")
            return self.paginate(request, list(self.repositories), "repositories", {})

        repo, _, rest = path[len("/v2/"):].partition("/")
        if repo not in self.repositories:
            return httpx.Response(404, json={"errors": [{"code": "NAME_UNKNOWN"}]})
        tags = self.repositories[repo]

        if rest == "tags/list":
            if repo in self.broken_repositories:
                return httpx.Response(500, text="boom")
            return self.paginate(request, list(tags), "tags", {"name": repo})

        if rest.startswith("manifests/"):
            reference = rest[len("manifests/"):]
            if request.method == "DELETE":
                if self.read_only:
                    return httpx.Response(405, json={"errors": [{"code": "UNSUPPORTED"}]})
                matched = [tag for tag, image in tags.items() if image.digest == reference]
                if not matched:
                    return httpx.Response(404)
                for tag in matched:
                    del tags[tag]
                return httpx.Response(202)
            if (repo, reference) in self.broken_tags:
                return httpx.Response(500, text="manifest storage error")
            if reference not in tags:
                return httpx.Response(404, json={"errors": [{"code": "MANIFEST_UNKNOWN"}]})
            image = tags[reference]
            manifest = {"schemaVersion": 2}
            if image.config_digest:
                manifest["config"] = {"digest": image.config_digest, "size": 1}
            return httpx.Response(
                200, json=manifest, headers={"Docker-Content-Digest": image.digest}
            )

        if rest.startswith("blobs/"):
            digest = rest[len("blobs/"):]
            for image in tags.values():
                if image.config_digest == digest:
                    body = {"architecture": "amd64"}
                    if image.created is not None:
                        body["created"] = image.created
                    return httpx.Response(200, content=json.dumps(body))
            return httpx.Response(404)

        return httpx.Response(404)


@pytest.fixture
def registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture
def config() -> Config:
    return Config(registry_url="http://registry.local:5000")
