from __future__ import annotations

import asyncio
from enum import unique
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from ..config import Settings
from ..utils.errors import InvalidArgument, UpstreamError
from .base import Handler, Route, optional_str, require_str
from .remote import RemoteProvider

EXPORT_FORMATS = ("png", "jpg", "svg")
EXPORT_SCALE = 2

# Figma style_type -> design token group
TOKEN_GROUPS = {
    "colors": "FILL",
    "typography": "TEXT",
    "effects": "EFFECT",
    "spacing": "GRID",
}


@unique
class FigmaRoute(Route):
    FILES = "GET:/files"
    FILE = "GET:/file"
    EXPORT = "POST:/export"
    COMPONENTS = "GET:/components"
    STYLES = "GET:/styles"
    SEARCH_COMPONENTS = "GET:/search-components"
    FRAMES = "GET:/frames"
    DESIGN_TOKENS = "GET:/design-tokens"


def _node_ids(body: Dict[str, Any]) -> List[str]:
    value = body.get("nodeIds")
    if isinstance(value, str):
        value = [part.strip() for part in value.split(",") if part.strip()]
    if not isinstance(value, list) or not value or not all(isinstance(v, str) for v in value):
        raise InvalidArgument("'nodeIds' must be a non-empty list of node ids")
    return value


def process_node(node: Dict[str, Any]) -> Dict[str, Any]:
    """Trim a Figma document node to id, name, type and children."""
    processed = {
        "id": node.get("id"),
        "name": node.get("name"),
        "type": node.get("type"),
    }
    children = node.get("children")
    if isinstance(children, list):
        processed["children"] = [process_node(child) for child in children]
    return processed


def find_frames_by_name(node: Dict[str, Any], target: str) -> List[Dict[str, Any]]:
    results = []
    if node.get("type") == "FRAME" and target.lower() in (node.get("name") or "").lower():
        results.append(node)
    for child in node.get("children") or []:
        results.extend(find_frames_by_name(child, target))
    return results


class FigmaProvider(RemoteProvider):
    """Design-file operations against the Figma REST API."""

    name = "figma"
    display_name = "Figma"
    route_enum = FigmaRoute
    token_env = "FIGMA_ACCESS_TOKEN"

    def __init__(
        self,
        token: Optional[str],
        *,
        base_url: str = "https://api.figma.com/v1",
        timeout: float = 30.0,
    ) -> None:
        super().__init__(base_url, token, timeout=timeout)

    @classmethod
    def from_settings(cls, settings: Settings) -> "FigmaProvider":
        return cls(
            settings.figma_access_token,
            base_url=settings.figma_api_url,
            timeout=settings.request_timeout,
        )

    def _build_routes(self) -> Dict[Route, Handler]:
        return {
            FigmaRoute.FILES: lambda body: self.list_recent_files(),
            FigmaRoute.FILE: lambda body: self.get_file(require_str(body, "fileKey")),
            FigmaRoute.EXPORT: lambda body: self.export_images(
                require_str(body, "fileKey"), _node_ids(body), optional_str(body, "format", "png")
            ),
            FigmaRoute.COMPONENTS: lambda body: self.get_components(require_str(body, "fileKey")),
            FigmaRoute.STYLES: lambda body: self.get_styles(require_str(body, "fileKey")),
            FigmaRoute.SEARCH_COMPONENTS: lambda body: self.search_components(
                require_str(body, "fileKey"), require_str(body, "query")
            ),
            FigmaRoute.FRAMES: lambda body: self.get_frames_by_name(
                require_str(body, "fileKey"), require_str(body, "frameName")
            ),
            FigmaRoute.DESIGN_TOKENS: lambda body: self.get_design_tokens(require_str(body, "fileKey")),
        }

    def _auth_headers(self) -> Dict[str, str]:
        return {"X-Figma-Token": self._token, "Content-Type": "application/json"}

    # =========================================================================
    # Files
    # =========================================================================

    async def get_file(self, file_key: str) -> Dict[str, Any]:
        self.logger.info(f"Getting Figma file: {file_key}")
        try:
            data = await self._request_json("GET", f"/files/{quote(file_key)}")
            return {
                "message": "Successfully retrieved Figma file",
                "file": {
                    "name": data.get("name"),
                    "lastModified": data.get("lastModified"),
                    "thumbnailUrl": data.get("thumbnailUrl"),
                    "version": data.get("version"),
                    "document": process_node(data.get("document") or {}),
                    "components": data.get("components") or {},
                    "styles": data.get("styles") or {},
                },
            }
        except Exception as exc:
            self.logger.error(f"Failed to get Figma file {file_key}: {exc}")
            raise

    async def list_recent_files(self) -> Dict[str, Any]:
        self.logger.info("Getting recent Figma files")
        try:
            data = await self._request_json("GET", "/files/recent")
            return {
                "message": "Successfully retrieved recent files",
                "files": [
                    {
                        "key": f.get("key"),
                        "name": f.get("name"),
                        "thumbnailUrl": f.get("thumbnail_url"),
                        "lastModified": f.get("last_modified"),
                    }
                    for f in data.get("files") or []
                ],
            }
        except Exception as exc:
            self.logger.error(f"Failed to get recent files: {exc}")
            raise

    async def export_images(self, file_key: str, node_ids: List[str], fmt: str = "png") -> Dict[str, Any]:
        if fmt not in EXPORT_FORMATS:
            raise InvalidArgument(f"Unsupported export format: {fmt}")

        self.logger.info(f"Exporting {len(node_ids)} images from Figma file: {file_key}")
        try:
            data = await self._request_json(
                "GET",
                f"/images/{quote(file_key)}",
                params={"ids": ",".join(node_ids), "format": fmt, "scale": str(EXPORT_SCALE)},
            )
            if data.get("err"):
                raise UpstreamError(f"Figma export error: {data['err']}")

            return {
                "message": f"Successfully exported {len(node_ids)} images",
                "images": data.get("images") or {},
                "format": fmt,
                "scale": EXPORT_SCALE,
            }
        except Exception as exc:
            self.logger.error(f"Failed to export images from {file_key}: {exc}")
            raise

    # =========================================================================
    # Library metadata
    # =========================================================================

    async def get_components(self, file_key: str) -> Dict[str, Any]:
        self.logger.info(f"Getting components from Figma file: {file_key}")
        try:
            data = await self._request_json("GET", f"/files/{quote(file_key)}/components")
            components = (data.get("meta") or {}).get("components") or []
            return {
                "message": "Successfully retrieved components",
                "components": [
                    {
                        "key": c.get("key"),
                        "name": c.get("name"),
                        "description": c.get("description"),
                        "componentSetId": c.get("component_set_id"),
                        "documentationLinks": c.get("documentation_links"),
                    }
                    for c in components
                ],
            }
        except Exception as exc:
            self.logger.error(f"Failed to get components from {file_key}: {exc}")
            raise

    async def get_styles(self, file_key: str) -> Dict[str, Any]:
        self.logger.info(f"Getting styles from Figma file: {file_key}")
        try:
            data = await self._request_json("GET", f"/files/{quote(file_key)}/styles")
            styles = (data.get("meta") or {}).get("styles") or []
            return {
                "message": "Successfully retrieved styles",
                "styles": [
                    {
                        "key": s.get("key"),
                        "name": s.get("name"),
                        "description": s.get("description"),
                        "styleType": s.get("style_type"),
                    }
                    for s in styles
                ],
            }
        except Exception as exc:
            self.logger.error(f"Failed to get styles from {file_key}: {exc}")
            raise

    async def search_components(self, file_key: str, query: str) -> Dict[str, Any]:
        self.logger.info(f"Searching components in {file_key} for: {query}")
        file_data = await self.get_file(file_key)
        needle = query.lower()
        matches = [
            comp
            for comp in file_data["file"]["components"].values()
            if needle in (comp.get("name") or "").lower()
        ]
        return {
            "message": f'Found {len(matches)} components matching "{query}"',
            "components": matches,
            "query": query,
        }

    async def get_frames_by_name(self, file_key: str, frame_name: str) -> Dict[str, Any]:
        self.logger.info(f'Getting frames named "{frame_name}" from {file_key}')
        file_data = await self.get_file(file_key)
        frames = find_frames_by_name(file_data["file"]["document"], frame_name)
        return {
            "message": f'Found {len(frames)} frames named "{frame_name}"',
            "frames": frames,
            "frameName": frame_name,
        }

    async def get_design_tokens(self, file_key: str) -> Dict[str, Any]:
        self.logger.info(f"Extracting design tokens from {file_key}")
        styles, components = await asyncio.gather(
            self.get_styles(file_key),
            self.get_components(file_key),
        )
        tokens = {
            group: [s for s in styles["styles"] if s["styleType"] == style_type]
            for group, style_type in TOKEN_GROUPS.items()
        }
        return {
            "message": "Successfully extracted design tokens",
            "tokens": tokens,
            "componentsCount": len(components["components"]),
            "stylesCount": len(styles["styles"]),
        }
