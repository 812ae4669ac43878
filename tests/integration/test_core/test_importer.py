"""Import pipeline tests against an in-memory database, tmp storage and mocked HTTP."""

from __future__ import annotations

from dataclasses import dataclass, field
from io import BytesIO
from typing import AsyncGenerator
from uuid import uuid4

import httpx
import pytest
import pytest_asyncio
from sqlmodel.ext.asyncio.session import AsyncSession

from skillhub.core.skills import (
    GitHubSource,
    MarketSource,
    SkillCreateInput,
    SkillImporter,
    SkillImportError,
    SkillImportErrorCode,
    SkillResourceError,
    SkillResourceService,
    UrlSource,
    ZipSource,
)
from skillhub.core.storage import FileService, LocalStorageService
from skillhub.models.file import File, FileCreate
from skillhub.models.skill import SkillImportStatus, SkillSource
from skillhub.repos.file import FileRepository
from skillhub.repos.skill import SkillRepository
from tests.fixtures.packages import make_zip, skill_md

USER_ID = "user-importer"
GITHUB_ZIPBALL = "https://api.github.com/repos/acme/demo/zipball"


@dataclass
class _Upstream:
    """Serves canned responses by URL and records every request."""

    routes: dict[str, tuple[int, bytes, dict[str, str]]] = field(default_factory=dict)
    requests: list[httpx.Request] = field(default_factory=list)

    def serve(self, url: str, content: bytes | str, status: int = 200, content_type: str = "text/markdown") -> None:
        body = content.encode("utf-8") if isinstance(content, str) else content
        self.routes[url] = (status, body, {"content-type": content_type})

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, body, headers = self.routes.get(str(request.url), (404, b"", {}))
        return httpx.Response(status, content=body, headers=headers)


@pytest.fixture
def upstream() -> _Upstream:
    return _Upstream()


@pytest_asyncio.fixture
async def http_client(upstream: _Upstream) -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(upstream)) as client:
        yield client


@pytest.fixture
def importer(db_session: AsyncSession, storage: LocalStorageService, http_client: httpx.AsyncClient) -> SkillImporter:
    return SkillImporter(db_session, USER_ID, storage=storage, http_client=http_client)


@pytest.fixture
def resource_service(db_session: AsyncSession, storage: LocalStorageService) -> SkillResourceService:
    return SkillResourceService(FileService(db_session, storage))


def _skill_zip(name: str = "Demo", body: str = "Use the demo.", extra: dict[str, bytes | str] | None = None) -> bytes:
    files: dict[str, bytes | str] = {"demo-main/SKILL.md": skill_md(name=name, description="Demo skill", body=body)}
    for path, data in (extra or {}).items():
        files[f"demo-main/{path}"] = data
    return make_zip(files)


async def _upload(db: AsyncSession, storage: LocalStorageService, data: bytes, user_id: str = USER_ID) -> File:
    key = f"uploads/{uuid4().hex}/my-skill.zip"
    await storage.upload_file(BytesIO(data), key)
    return await FileRepository(db).create_file(
        FileCreate(
            user_id=user_id,
            storage_key=key,
            original_filename="my-skill.zip",
            content_type="application/zip",
            file_size=len(data),
        )
    )


@pytest.mark.integration
class TestUrlImport:
    async def test_markdown_url_end_to_end(self, importer: SkillImporter, upstream: _Upstream):
        url = "https://example.com/skill.md"
        upstream.serve(url, "---\nname: URL Skill\ndescription: A skill from URL\n---\n\n# Steps\n\nDo it.\n")

        result = await importer.import_from_url(url)

        assert result.status == SkillImportStatus.CREATED
        skill = result.skill
        assert skill.identifier == "url.example.com.skill"
        assert skill.name == "URL Skill"
        assert skill.description == "A skill from URL"
        assert skill.content == "# Steps\n\nDo it."
        assert skill.manifest["sourceUrl"] == url
        assert skill.source == SkillSource.MARKET
        assert skill.zip_file_hash is None
        assert not skill.resources

    async def test_identifier_drops_extension_and_keeps_path(self, importer: SkillImporter, upstream: _Upstream):
        url = "https://example.com/skills/writing/SKILL.md"
        upstream.serve(url, skill_md(name=""))

        result = await importer.import_from_url(url)

        assert result.skill.identifier == "url.example.com.skills.writing.SKILL"
        assert result.skill.name == "writing"

    async def test_reimport_same_markdown_is_unchanged(self, importer: SkillImporter, upstream: _Upstream):
        url = "https://example.com/skill.md"
        upstream.serve(url, skill_md())

        first = await importer.import_from_url(url)
        second = await importer.import_from_url(url)

        assert second.status == SkillImportStatus.UNCHANGED
        assert second.skill.id == first.skill.id
        assert second.skill.updated_at == first.skill.updated_at

    async def test_host_case_and_credentials_map_to_one_record(self, importer: SkillImporter, upstream: _Upstream):
        variants = ("https://example.com/skill.md", "https://EXAMPLE.com/skill.md", "https://user:pw@example.com/skill.md")
        for url in variants:
            upstream.serve(url, skill_md())

        first = await importer.import_from_url("https://EXAMPLE.com/skill.md")
        second = await importer.import_from_url("https://user:pw@example.com/skill.md")

        assert first.skill.identifier == "url.example.com.skill"
        assert second.status == SkillImportStatus.UNCHANGED
        assert second.skill.id == first.skill.id

    async def test_reimport_changed_markdown_updates(self, importer: SkillImporter, upstream: _Upstream):
        url = "https://example.com/skill.md"
        upstream.serve(url, skill_md(body="v1"))
        first = await importer.import_from_url(url)

        upstream.serve(url, skill_md(name="Renamed", body="v2"))
        second = await importer.import_from_url(url)

        assert second.status == SkillImportStatus.UPDATED
        assert second.skill.id == first.skill.id
        assert second.skill.content == "v2"
        assert second.skill.name == "Renamed"

    async def test_skill_deleted_during_update_is_not_found(
        self, importer: SkillImporter, upstream: _Upstream, monkeypatch: pytest.MonkeyPatch
    ):
        url = "https://example.com/skill.md"
        upstream.serve(url, skill_md(body="v1"))
        await importer.import_from_url(url)

        async def _vanished(*args, **kwargs):
            return None

        monkeypatch.setattr(importer.skill_repo, "update_skill", _vanished)
        upstream.serve(url, skill_md(body="v2"))

        with pytest.raises(SkillImportError) as exc_info:
            await importer.import_from_url(url)

        assert exc_info.value.code == SkillImportErrorCode.NOT_FOUND

    async def test_archive_url_detected_by_extension(
        self,
        importer: SkillImporter,
        upstream: _Upstream,
        storage: LocalStorageService,
        resource_service: SkillResourceService,
    ):
        url = "https://example.com/packages/demo.zip"
        upstream.serve(url, _skill_zip(extra={"readme.md": "# Readme"}), content_type="application/zip")

        result = await importer.import_from_url(url)

        skill = result.skill
        assert skill.identifier == "url.example.com.packages.demo"
        assert skill.zip_file_hash is not None
        assert set(skill.resources or {}) == {"readme.md"}
        assert await storage.file_exists(f"skills/zip/{skill.zip_file_hash}.zip")
        content = await resource_service.read_resource(skill.resources or {}, "readme.md")
        assert content.content == "# Readme"

    async def test_archive_url_detected_by_content_type(self, importer: SkillImporter, upstream: _Upstream):
        url = "https://example.com/get?id=1"
        upstream.serve(url, _skill_zip(), content_type="application/octet-stream")

        result = await importer.import_from_url(url)

        assert result.skill.zip_file_hash is not None

    async def test_archive_reimport_is_unchanged_without_writes(
        self, importer: SkillImporter, upstream: _Upstream, storage: LocalStorageService
    ):
        url = "https://example.com/demo/download"
        upstream.serve(url, _skill_zip(extra={"lib/a.ts": "export {}"}), content_type="application/zip")

        first = await importer.import_from_url(url)
        stored_before = await storage.list_files()
        second = await importer.import_from_url(url)

        assert second.status == SkillImportStatus.UNCHANGED
        assert second.skill.id == first.skill.id
        assert await storage.list_files() == stored_before

    async def test_not_found(self, importer: SkillImporter):
        with pytest.raises(SkillImportError) as exc_info:
            await importer.import_from_url("https://example.com/missing.md")

        assert exc_info.value.code == SkillImportErrorCode.NOT_FOUND

    async def test_server_error_is_download_failed(self, importer: SkillImporter, upstream: _Upstream):
        upstream.serve("https://example.com/skill.md", "oops", status=500)

        with pytest.raises(SkillImportError, match="500") as exc_info:
            await importer.import_from_url("https://example.com/skill.md")

        assert exc_info.value.code == SkillImportErrorCode.DOWNLOAD_FAILED

    @pytest.mark.parametrize(
        "url", ["not a url", "ftp://example.com/skill.md", "https:///skill.md", "https://example.com:abc/skill.md"]
    )
    async def test_invalid_url_fails_before_any_request(self, importer: SkillImporter, upstream: _Upstream, url):
        with pytest.raises(SkillImportError) as exc_info:
            await importer.import_from_url(url)

        assert exc_info.value.code == SkillImportErrorCode.INVALID_URL
        assert upstream.requests == []

    async def test_malformed_frontmatter_is_invalid_package(self, importer: SkillImporter, upstream: _Upstream):
        upstream.serve("https://example.com/skill.md", "---\nname: [broken\n---\nbody")

        with pytest.raises(SkillImportError, match="Malformed front-matter") as exc_info:
            await importer.import_from_url("https://example.com/skill.md")

        assert exc_info.value.code == SkillImportErrorCode.INVALID_PACKAGE

    async def test_archive_without_document_is_invalid_package(self, importer: SkillImporter, upstream: _Upstream):
        url = "https://example.com/empty.zip"
        upstream.serve(url, make_zip({"README.md": "nothing"}), content_type="application/zip")

        with pytest.raises(SkillImportError, match="Canonical document not found") as exc_info:
            await importer.import_from_url(url)

        assert exc_info.value.code == SkillImportErrorCode.INVALID_PACKAGE


@pytest.mark.integration
class TestGitHubImport:
    async def test_identifier_for_repository_root(self, importer: SkillImporter, upstream: _Upstream):
        upstream.serve(GITHUB_ZIPBALL, _skill_zip(), content_type="application/zip")

        result = await importer.import_from_github("https://github.com/acme/demo")

        skill = result.skill
        assert result.status == SkillImportStatus.CREATED
        assert skill.identifier == "acme-demo"
        assert skill.manifest["repository"] == "https://github.com/acme/demo"
        assert skill.manifest["sourceUrl"] == "https://github.com/acme/demo"
        assert skill.source == SkillSource.MARKET

    async def test_identifier_for_sub_directory(self, importer: SkillImporter, upstream: _Upstream):
        archive = make_zip(
            {
                "demo-main/README.md": "repo readme",
                "demo-main/skills/foo/SKILL.md": skill_md(name="Foo"),
                "demo-main/skills/foo/ref.md": "ref",
            }
        )
        upstream.serve(f"{GITHUB_ZIPBALL}/main", archive, content_type="application/zip")

        result = await importer.import_from_github("https://github.com/acme/demo/tree/main/skills/foo")

        assert result.skill.identifier.endswith("-foo")
        assert result.skill.identifier == "acme-demo-foo"
        assert set(result.skill.resources or {}) == {"ref.md"}

    async def test_reimport_is_idempotent(self, importer: SkillImporter, upstream: _Upstream):
        upstream.serve(GITHUB_ZIPBALL, _skill_zip(), content_type="application/zip")

        first = await importer.import_from_github("https://github.com/acme/demo")
        second = await importer.import_from_github("https://github.com/acme/demo")

        assert second.status == SkillImportStatus.UNCHANGED
        assert second.skill.id == first.skill.id

    async def test_changed_upstream_updates_same_record(
        self, importer: SkillImporter, upstream: _Upstream, db_session: AsyncSession
    ):
        upstream.serve(GITHUB_ZIPBALL, _skill_zip(name="Demo", body="v1"), content_type="application/zip")
        first = await importer.import_from_github("https://github.com/acme/demo")

        upstream.serve(GITHUB_ZIPBALL, _skill_zip(name="Demo Two", body="v2"), content_type="application/zip")
        second = await importer.import_from_github("https://github.com/acme/demo")

        assert second.status == SkillImportStatus.UPDATED
        assert second.skill.id == first.skill.id
        assert second.skill.content == "v2"
        assert second.skill.name == "Demo Two"
        skills = await SkillRepository(db_session, USER_ID).list_skills()
        assert [s.identifier for s in skills] == ["acme-demo"]

    async def test_update_merges_manifest(self, importer: SkillImporter, upstream: _Upstream):
        first_doc = "---\nname: Demo\ndescription: d\nlicense: MIT\n---\nv1\n"
        upstream.serve(GITHUB_ZIPBALL, make_zip({"demo-main/SKILL.md": first_doc}), content_type="application/zip")
        await importer.import_from_github("https://github.com/acme/demo")

        second_doc = "---\nname: Demo\ndescription: d\nversion: '2'\n---\nv2\n"
        upstream.serve(GITHUB_ZIPBALL, make_zip({"demo-main/SKILL.md": second_doc}), content_type="application/zip")
        result = await importer.import_from_github("https://github.com/acme/demo")

        assert result.skill.manifest["license"] == "MIT"
        assert result.skill.manifest["version"] == "2"

    async def test_resources_round_trip(
        self, importer: SkillImporter, upstream: _Upstream, resource_service: SkillResourceService
    ):
        png = b"\x89PNG\r\n\x1a\nbinary"
        upstream.serve(
            GITHUB_ZIPBALL,
            _skill_zip(extra={"readme.md": "# Readme", "lib/a.ts": "export const a = 1;", "img/logo.png": png}),
            content_type="application/zip",
        )

        skill = (await importer.import_from_github("https://github.com/acme/demo")).skill
        resources = skill.resources or {}

        assert set(resources) == {"readme.md", "lib/a.ts", "img/logo.png"}
        readme = await resource_service.read_resource(resources, "readme.md")
        source = await resource_service.read_resource(resources, "lib/a.ts")
        logo = await resource_service.read_resource(resources, "img/logo.png")
        assert (readme.content, readme.encoding) == ("# Readme", "utf-8")
        assert source.content == "export const a = 1;"
        assert logo.encoding == "base64"

        with pytest.raises(SkillResourceError, match="Resource not found: lib/A.ts"):
            await resource_service.read_resource(resources, "lib/A.ts")

    async def test_repository_not_found(self, importer: SkillImporter):
        with pytest.raises(SkillImportError) as exc_info:
            await importer.import_from_github("https://github.com/acme/demo")

        assert exc_info.value.code == SkillImportErrorCode.NOT_FOUND

    async def test_download_failure(self, importer: SkillImporter, upstream: _Upstream):
        upstream.serve(GITHUB_ZIPBALL, b"", status=502)

        with pytest.raises(SkillImportError, match="502") as exc_info:
            await importer.import_from_github("https://github.com/acme/demo")

        assert exc_info.value.code == SkillImportErrorCode.DOWNLOAD_FAILED

    async def test_invalid_url(self, importer: SkillImporter, upstream: _Upstream):
        with pytest.raises(SkillImportError) as exc_info:
            await importer.import_from_github("https://gitlab.com/acme/demo")

        assert exc_info.value.code == SkillImportErrorCode.INVALID_URL
        assert upstream.requests == []


@pytest.mark.integration
class TestZipImport:
    async def test_import_uploaded_archive(
        self, importer: SkillImporter, db_session: AsyncSession, storage: LocalStorageService
    ):
        upload = await _upload(db_session, storage, _skill_zip(name="Uploaded", extra={"notes.md": "n"}))

        result = await importer.import_from_zip(upload.id)

        skill = result.skill
        assert result.status == SkillImportStatus.CREATED
        assert skill.identifier.startswith("user.")
        assert skill.source == SkillSource.USER
        assert set(skill.resources or {}) == {"notes.md"}

    async def test_name_falls_back_to_file_stem(
        self, importer: SkillImporter, db_session: AsyncSession, storage: LocalStorageService
    ):
        upload = await _upload(db_session, storage, make_zip({"SKILL.md": "# No front-matter"}))

        result = await importer.import_from_zip(upload.id)

        assert result.skill.name == "my-skill"
        assert result.skill.description == ""

    async def test_name_collision_is_conflict(
        self, importer: SkillImporter, db_session: AsyncSession, storage: LocalStorageService
    ):
        await importer.create_user_skill(SkillCreateInput(name="Uploaded", content="body"))
        upload = await _upload(db_session, storage, _skill_zip(name="Uploaded"))

        with pytest.raises(SkillImportError, match='"Uploaded"') as exc_info:
            await importer.import_from_zip(upload.id)

        assert exc_info.value.code == SkillImportErrorCode.CONFLICT

    async def test_other_users_file_is_not_found(
        self, importer: SkillImporter, db_session: AsyncSession, storage: LocalStorageService
    ):
        upload = await _upload(db_session, storage, _skill_zip(), user_id="someone-else")

        with pytest.raises(SkillImportError) as exc_info:
            await importer.import_from_zip(upload.id)

        assert exc_info.value.code == SkillImportErrorCode.FILE_NOT_FOUND

    async def test_explicit_identifier_reimport_updates(
        self, importer: SkillImporter, db_session: AsyncSession, storage: LocalStorageService
    ):
        first_upload = await _upload(db_session, storage, _skill_zip(body="v1"))
        second_upload = await _upload(db_session, storage, _skill_zip(body="v2"))

        first = await importer.import_from_zip(first_upload.id, identifier="user.pinned")
        second = await importer.import_from_zip(second_upload.id, identifier="user.pinned")

        assert second.status == SkillImportStatus.UPDATED
        assert second.skill.id == first.skill.id
        assert second.skill.content == "v2"


@pytest.mark.integration
class TestUserSkillsAndDispatch:
    async def test_duplicate_explicit_identifier_is_conflict(self, importer: SkillImporter):
        first = await importer.create_user_skill(
            SkillCreateInput(name="First", content="one", identifier="user.same")
        )

        with pytest.raises(SkillImportError, match="user.same") as exc_info:
            await importer.create_user_skill(SkillCreateInput(name="Second", content="two", identifier="user.same"))

        assert exc_info.value.code == SkillImportErrorCode.CONFLICT
        assert first.content == "one"
        assert first.name == "First"

    async def test_duplicate_name_is_conflict(self, importer: SkillImporter):
        await importer.create_user_skill(SkillCreateInput(name="Writer", content="one"))

        with pytest.raises(SkillImportError) as exc_info:
            await importer.create_user_skill(SkillCreateInput(name="writer", content="two"))

        assert exc_info.value.code == SkillImportErrorCode.CONFLICT

    async def test_hand_authored_defaults(self, importer: SkillImporter):
        skill = await importer.create_user_skill(SkillCreateInput(name="Mine", content="body", description="d"))

        assert skill.identifier.startswith("user.")
        assert len(skill.identifier) == len("user.") + 12
        assert skill.manifest == {"name": "Mine", "description": "d"}
        assert skill.zip_file_hash is None

    async def test_market_import_resolves_download_url(self, importer: SkillImporter, upstream: _Upstream):
        url = importer.market.get_skill_download_url("acme-demo")
        upstream.serve(url, _skill_zip(), content_type="application/zip")

        result = await importer.import_from_market("acme-demo")

        assert str(upstream.requests[0].url) == url
        assert result.skill.source == SkillSource.MARKET
        assert result.skill.manifest["sourceUrl"] == url

    async def test_import_skill_dispatches_on_source(
        self, importer: SkillImporter, upstream: _Upstream, db_session: AsyncSession, storage: LocalStorageService
    ):
        upstream.serve("https://example.com/skill.md", skill_md(name="From URL"))
        upstream.serve(GITHUB_ZIPBALL, _skill_zip(name="From GitHub"), content_type="application/zip")
        upload = await _upload(db_session, storage, _skill_zip(name="From Zip"))
        market_url = importer.market.get_skill_download_url("market-skill")
        upstream.serve(market_url, _skill_zip(name="From Market"), content_type="application/zip")

        names = [
            (await importer.import_skill(source)).skill.name
            for source in (
                UrlSource(url="https://example.com/skill.md"),
                GitHubSource(git_url="https://github.com/acme/demo"),
                ZipSource(file_id=upload.id),
                MarketSource(identifier="market-skill"),
            )
        ]

        assert names == ["From URL", "From GitHub", "From Zip", "From Market"]

    async def test_records_are_scoped_per_user(
        self,
        db_session: AsyncSession,
        storage: LocalStorageService,
        http_client: httpx.AsyncClient,
        upstream: _Upstream,
    ):
        upstream.serve("https://example.com/skill.md", skill_md())
        alice = SkillImporter(db_session, "alice", storage=storage, http_client=http_client)
        bob = SkillImporter(db_session, "bob", storage=storage, http_client=http_client)

        a = await alice.import_from_url("https://example.com/skill.md")
        b = await bob.import_from_url("https://example.com/skill.md")

        assert a.status == b.status == SkillImportStatus.CREATED
        assert a.skill.id != b.skill.id
        assert a.skill.identifier == b.skill.identifier
