"""
Content-addressed storage and retrieval of skill resource files.

Resource bytes are uploaded under ``skills/source_files/{package_hash}/{path}``
and recorded as global files keyed by their sha256, so identical packages
share one copy. A skill only keeps the map of virtual path -> {file_hash, size}.
"""

from __future__ import annotations

import asyncio
import base64
import hashlib
import logging
from typing import Any, Literal, Mapping

from pydantic import BaseModel

from skillhub.core.storage import FileService

from .errors import SkillResourceError, SkillResourceErrorKind
from .mime import get_mime_type, is_text_mime_type

logger = logging.getLogger(__name__)

SOURCE_FILES_PREFIX = "skills/source_files"


class SkillResourceContent(BaseModel):
    content: str
    encoding: Literal["utf-8", "base64"]
    file_hash: str
    file_type: str
    path: str
    size: int


class ResourceTreeNode(BaseModel):
    name: str
    path: str
    type: Literal["file", "directory"]
    children: list["ResourceTreeNode"] | None = None
    content: str | None = None


def validate_virtual_path(virtual_path: str) -> str:
    """
    Reject absolute paths and paths with empty, '.' or '..' segments.

    Raises:
        SkillResourceError: With kind INVALID_PATH.
    """
    if not virtual_path or virtual_path.startswith("/") or "\\" in virtual_path:
        raise SkillResourceError(f"Invalid resource path: {virtual_path}", SkillResourceErrorKind.INVALID_PATH)
    if any(part in ("", ".", "..") for part in virtual_path.split("/")):
        raise SkillResourceError(f"Invalid resource path: {virtual_path}", SkillResourceErrorKind.INVALID_PATH)
    return virtual_path


def build_resource_tree(paths: list[str]) -> list[ResourceTreeNode]:
    """Build a directory tree from '/'-separated paths. Directories sort before files."""
    root: list[ResourceTreeNode] = []
    nodes: dict[str, ResourceTreeNode] = {}

    for path in sorted(paths):
        parts = path.split("/")
        current_path = ""
        level = root

        for index, part in enumerate(parts):
            is_file = index == len(parts) - 1
            current_path = f"{current_path}/{part}" if current_path else part

            node = nodes.get(current_path)
            if node is None:
                node = ResourceTreeNode(
                    name=part,
                    path=current_path,
                    type="file" if is_file else "directory",
                    children=None if is_file else [],
                )
                nodes[current_path] = node
                level.append(node)

            if not is_file and node.children is not None:
                level = node.children

    _sort_nodes(root)
    return root


def _sort_nodes(nodes: list[ResourceTreeNode]) -> None:
    nodes.sort(key=lambda n: (n.type != "directory", n.name))
    for node in nodes:
        if node.children:
            _sort_nodes(node.children)


def _iter_files(nodes: list[ResourceTreeNode]):
    for node in nodes:
        if node.type == "file":
            yield node
        elif node.children:
            yield from _iter_files(node.children)


def _resource_hash(meta: Mapping[str, Any]) -> str:
    return meta.get("file_hash") or meta.get("fileHash") or ""


class SkillResourceService:
    def __init__(self, file_service: FileService) -> None:
        self.file_service = file_service

    async def store_resources(self, package_hash: str, resources: Mapping[str, bytes]) -> dict[str, dict[str, Any]]:
        """
        Upload resource files and record them as global files.

        Args:
            package_hash: Hash of the package the resources belong to; used as the key prefix.
            resources: Virtual path -> bytes.

        Returns:
            Virtual path -> {"file_hash", "size"}.
        """
        logger.debug(f"Storing {len(resources)} resources for package {package_hash}")
        stored: dict[str, dict[str, Any]] = {}

        for virtual_path, data in resources.items():
            stored[virtual_path] = {
                "file_hash": await self._store_resource(package_hash, virtual_path, data),
                "size": len(data),
            }

        return stored

    async def _store_resource(self, package_hash: str, virtual_path: str, data: bytes) -> str:
        key = f"{SOURCE_FILES_PREFIX}/{package_hash}/{virtual_path}"
        file_type = get_mime_type(virtual_path)
        await self.file_service.upload_buffer(data, key, file_type)

        file_hash = hashlib.sha256(data).hexdigest()
        dirname, _, filename = key.rpartition("/")
        await self.file_service.create_global_file(
            file_hash=file_hash,
            file_type=file_type,
            size=len(data),
            url=key,
            metadata={"dirname": dirname, "filename": filename, "path": key},
        )
        logger.debug(f"Stored resource {virtual_path} as {file_hash} ({file_type})")
        return file_hash

    async def read_resource(
        self, resources: Mapping[str, Mapping[str, Any]], virtual_path: str
    ) -> SkillResourceContent:
        """
        Read one resource by its exact virtual path.

        Text types come back as UTF-8 text, everything else base64-encoded.

        Raises:
            SkillResourceError: If the path is invalid or not in ``resources``.
        """
        validate_virtual_path(virtual_path)
        meta = resources.get(virtual_path)
        if not meta:
            raise SkillResourceError(f"Resource not found: {virtual_path}")

        file_hash = _resource_hash(meta)
        file_type = get_mime_type(virtual_path)
        try:
            data = await self.file_service.get_file_bytes_by_hash(file_hash)
        except FileNotFoundError as e:
            raise SkillResourceError(f"Resource not found: {virtual_path}") from e

        if is_text_mime_type(file_type):
            text = data.decode("utf-8", errors="replace")
            return SkillResourceContent(
                content=text,
                encoding="utf-8",
                file_hash=file_hash,
                file_type=file_type,
                path=virtual_path,
                size=len(text.encode("utf-8")),
            )

        return SkillResourceContent(
            content=base64.b64encode(data).decode("ascii"),
            encoding="base64",
            file_hash=file_hash,
            file_type=file_type,
            path=virtual_path,
            size=len(data),
        )

    async def list_resources(
        self, resources: Mapping[str, Mapping[str, Any]], include_content: bool = False
    ) -> list[ResourceTreeNode]:
        """Build the resource tree; optionally fill in text file contents."""
        tree = build_resource_tree(list(resources))
        if include_content:
            await self._populate_content(tree, resources)
        return tree

    async def _populate_content(
        self, tree: list[ResourceTreeNode], resources: Mapping[str, Mapping[str, Any]]
    ) -> None:
        nodes = [
            node
            for node in _iter_files(tree)
            if node.path in resources and is_text_mime_type(get_mime_type(node.path))
        ]
        # Record lookups share one session and must not overlap.
        keys: list[tuple[ResourceTreeNode, str]] = []
        for node in nodes:
            record = await self.file_service.get_global_file(_resource_hash(resources[node.path]))
            if record is None:
                logger.warning(f"Failed to read content for {node.path}: no file recorded")
                continue
            keys.append((node, record.url))

        results = await asyncio.gather(
            *(self.file_service.read_file_bytes(key) for _, key in keys),
            return_exceptions=True,
        )
        for (node, _), result in zip(keys, results):
            if isinstance(result, BaseException):
                logger.warning(f"Failed to read content for {node.path}: {result}")
                continue
            node.content = result.decode("utf-8", errors="replace")


__all__ = [
    "ResourceTreeNode",
    "SkillResourceContent",
    "SkillResourceService",
    "build_resource_tree",
    "validate_virtual_path",
]
