from __future__ import annotations

import base64
from enum import unique
from typing import Any, Dict, Optional
from urllib.parse import quote

from ..config import Settings
from ..utils.errors import InvalidArgument, NotFound, ProviderUnavailable, UpstreamError
from .base import Handler, Route, optional_int, optional_str, require_str
from .remote import RemoteProvider


@unique
class GitHubRoute(Route):
    REPOS = "GET:/repos"
    BRANCHES = "GET:/branches"
    COMMITS = "GET:/commits"
    READ_FILE = "GET:/file"
    WRITE_FILE = "POST:/file"
    CREATE_PR = "POST:/pulls"
    WEBHOOK = "POST:/webhook"


class GitHubProvider(RemoteProvider):
    """Version-control operations against the GitHub REST API."""

    name = "github"
    display_name = "GitHub"
    route_enum = GitHubRoute
    token_env = "GITHUB_TOKEN"

    def __init__(
        self,
        token: Optional[str],
        owner: str = "",
        repo: str = "",
        *,
        base_url: str = "https://api.github.com",
        timeout: float = 30.0,
    ) -> None:
        super().__init__(base_url, token, timeout=timeout)
        self.owner = owner
        self.repo = repo
        if not self.owner or not self.repo:
            self.logger.warning("GITHUB_OWNER and GITHUB_REPO should be set for full functionality")

    @classmethod
    def from_settings(cls, settings: Settings) -> "GitHubProvider":
        return cls(
            settings.github_token,
            settings.github_owner,
            settings.github_repo,
            base_url=settings.github_api_url,
            timeout=settings.request_timeout,
        )

    def _build_routes(self) -> Dict[Route, Handler]:
        return {
            GitHubRoute.REPOS: lambda body: self.list_repos(),
            GitHubRoute.BRANCHES: lambda body: self.list_branches(),
            GitHubRoute.COMMITS: lambda body: self.list_commits(
                optional_str(body, "branch", "main"), optional_int(body, "limit", 10)
            ),
            GitHubRoute.READ_FILE: lambda body: self.read_file(
                require_str(body, "path"), optional_str(body, "branch", "main")
            ),
            GitHubRoute.WRITE_FILE: self._handle_write,
            GitHubRoute.CREATE_PR: lambda body: self.create_pr(
                require_str(body, "title"),
                require_str(body, "head"),
                optional_str(body, "body", ""),
                optional_str(body, "base", "main"),
            ),
            GitHubRoute.WEBHOOK: self.handle_webhook,
        }

    def _auth_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    def _repo_path(self, suffix: str = "") -> str:
        if not self.owner or not self.repo:
            raise ProviderUnavailable("GITHUB_OWNER and GITHUB_REPO must be set for repository operations")
        return f"/repos/{quote(self.owner)}/{quote(self.repo)}{suffix}"

    async def _handle_write(self, body: Dict[str, Any]) -> Dict[str, Any]:
        content = body.get("content")
        if not isinstance(content, str):
            raise InvalidArgument("'content' must be a string")
        return await self.write_file(
            require_str(body, "path"),
            content,
            require_str(body, "message"),
            optional_str(body, "branch", "main"),
        )

    # =========================================================================
    # Repository content
    # =========================================================================

    async def read_file(self, path: str, branch: str = "main") -> Dict[str, Any]:
        self.logger.info(f"Reading file: {path} from branch: {branch}")
        try:
            data = await self._request_json(
                "GET", self._repo_path(f"/contents/{quote(path)}"), params={"ref": branch}
            )
            if not isinstance(data, dict) or "content" not in data:
                raise NotFound(f"File content not available: {path}")

            content = base64.b64decode(data["content"]).decode("utf-8", errors="replace")
            return {
                "content": content,
                "sha": data.get("sha"),
                "path": data.get("path", path),
                "message": f"Successfully read {path}",
            }
        except Exception as exc:
            self.logger.error(f"Failed to read file {path}: {exc}")
            raise

    async def write_file(self, path: str, content: str, message: str, branch: str = "main") -> Dict[str, Any]:
        self.logger.info(f"Writing file: {path} to branch: {branch}")
        endpoint = self._repo_path(f"/contents/{quote(path)}")
        try:
            sha = None
            try:
                existing = await self._request_json("GET", endpoint, params={"ref": branch})
                if isinstance(existing, dict):
                    sha = existing.get("sha")
            except UpstreamError as exc:
                if exc.upstream_status != 404:
                    raise
                self.logger.info(f"File {path} doesn't exist, creating new file")

            payload: Dict[str, Any] = {
                "message": message,
                "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
                "branch": branch,
            }
            if sha:
                payload["sha"] = sha

            data = await self._request_json("PUT", endpoint, json=payload)
            return {
                "message": f"Successfully wrote {path}",
                "commit": data.get("commit"),
                "content": data.get("content"),
            }
        except Exception as exc:
            self.logger.error(f"Failed to write file {path}: {exc}")
            raise

    async def create_pr(self, title: str, head: str, body: str = "", base: str = "main") -> Dict[str, Any]:
        self.logger.info(f"Creating PR: {title} from {head} to {base}")
        try:
            data = await self._request_json(
                "POST",
                self._repo_path("/pulls"),
                json={"title": title, "body": body, "head": head, "base": base},
            )
            return {
                "message": f"Successfully created PR #{data.get('number')}",
                "pullRequest": {
                    "number": data.get("number"),
                    "url": data.get("html_url"),
                    "title": data.get("title"),
                    "state": data.get("state"),
                },
            }
        except Exception as exc:
            self.logger.error(f"Failed to create PR: {exc}")
            raise

    # =========================================================================
    # Listings
    # =========================================================================

    async def list_repos(self) -> Dict[str, Any]:
        try:
            data = await self._request_json(
                "GET", "/user/repos", params={"per_page": 50, "sort": "updated"}
            )
            return {
                "message": f"Found {len(data)} repositories",
                "repositories": [
                    {
                        "name": repo.get("name"),
                        "fullName": repo.get("full_name"),
                        "description": repo.get("description"),
                        "url": repo.get("html_url"),
                        "private": repo.get("private"),
                        "updatedAt": repo.get("updated_at"),
                    }
                    for repo in data
                ],
            }
        except Exception as exc:
            self.logger.error(f"Failed to list repositories: {exc}")
            raise

    async def list_branches(self) -> Dict[str, Any]:
        try:
            data = await self._request_json("GET", self._repo_path("/branches"))
            return {
                "message": f"Found {len(data)} branches",
                "branches": [
                    {
                        "name": branch.get("name"),
                        "commit": (branch.get("commit") or {}).get("sha"),
                        "protected": branch.get("protected"),
                    }
                    for branch in data
                ],
            }
        except Exception as exc:
            self.logger.error(f"Failed to list branches: {exc}")
            raise

    async def list_commits(self, branch: str = "main", limit: int = 10) -> Dict[str, Any]:
        try:
            data = await self._request_json(
                "GET", self._repo_path("/commits"), params={"sha": branch, "per_page": limit}
            )
            commits = []
            for item in data:
                commit = item.get("commit") or {}
                author = commit.get("author") or {}
                commits.append({
                    "sha": item.get("sha"),
                    "message": commit.get("message"),
                    "author": author.get("name"),
                    "date": author.get("date"),
                    "url": item.get("html_url"),
                })
            return {"message": f"Found {len(commits)} commits on {branch}", "commits": commits}
        except Exception as exc:
            self.logger.error(f"Failed to list commits: {exc}")
            raise

    # =========================================================================
    # Webhooks
    # =========================================================================

    async def handle_webhook(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        action = payload.get("action")
        self.logger.info(f"Processing GitHub webhook: {action}")

        if action in ("opened", "synchronize") and payload.get("pull_request"):
            return self._handle_pr_event(payload)
        if action == "pushed":
            return self._handle_push_event(payload)

        self.logger.info(f"Unhandled webhook action: {action}")
        return {"message": "Webhook processed"}

    def _handle_pr_event(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        pr = payload["pull_request"]
        self.logger.info(f"PR #{pr.get('number')} {payload.get('action')}: {pr.get('title')}")
        return {
            "message": f"Processed PR #{pr.get('number')}",
            "pr": {
                "number": pr.get("number"),
                "title": pr.get("title"),
                "author": (pr.get("user") or {}).get("login"),
                "action": payload.get("action"),
            },
        }

    def _handle_push_event(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        commits = payload.get("commits") or []
        ref = payload.get("ref")
        self.logger.info(f"Push to {ref} with {len(commits)} commits")
        return {
            "message": f"Processed push to {ref}",
            "commits": len(commits),
            "branch": ref,
        }
