"""Tests for the sandboxed filesystem provider."""

import os

import pytest

from toolhub.services.filesystem import FilesystemProvider, FilesystemRoute
from toolhub.services.sandbox import SandboxPolicy
from toolhub.utils.errors import AccessDenied, InvalidArgument, NotFound, PermissionDenied, RouteNotFound


def _write(root, rel, content="x"):
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def _node_paths(node):
    paths = [node["path"]]
    for child in node.get("children", []):
        paths.extend(_node_paths(child))
    return paths


class TestReadWrite:
    @pytest.mark.asyncio
    async def test_write_then_read_round_trip(self, fs_provider, project_root):
        content = "line one\r\nline two\nümlaut ✓\n"
        written = await fs_provider.write_file("docs/notes.md", content)
        assert written["path"] == "docs/notes.md"
        assert written["size"] == len(content.encode("utf-8"))

        result = await fs_provider.read_file("docs/notes.md")
        assert result["content"] == content
        assert result["size"] == written["size"]
        assert "modifiedAt" in result

    @pytest.mark.asyncio
    async def test_write_creates_parent_directories(self, fs_provider, project_root):
        await fs_provider.write_file("a/b/c/d.txt", "deep")
        assert (project_root / "a" / "b" / "c" / "d.txt").read_text() == "deep"

    @pytest.mark.asyncio
    async def test_write_overwrites_last_writer_wins(self, fs_provider):
        await fs_provider.write_file("same.txt", "first")
        await fs_provider.write_file("same.txt", "second")
        assert (await fs_provider.read_file("same.txt"))["content"] == "second"

    @pytest.mark.asyncio
    async def test_write_rejects_unencodable_content(self, fs_provider, project_root):
        with pytest.raises(InvalidArgument, match="not valid UTF-8"):
            await fs_provider.write_file("lone.txt", "half a pair \ud800")
        assert not (project_root / "lone.txt").exists()

    @pytest.mark.asyncio
    async def test_read_missing_file(self, fs_provider):
        with pytest.raises(NotFound):
            await fs_provider.read_file("missing.md")

    @pytest.mark.asyncio
    async def test_read_invalid_utf8_is_replaced(self, fs_provider, project_root):
        (project_root / "bin.txt").write_bytes(b"ok \xff\xfe end")
        result = await fs_provider.read_file("bin.txt")
        assert result["content"].startswith("ok ")
        assert "�" in result["content"]

    @pytest.mark.asyncio
    async def test_disallowed_extension(self, fs_provider, project_root):
        with pytest.raises(AccessDenied, match=r"\.exe files are not allowed"):
            await fs_provider.write_file("tool.exe", "MZ")
        assert not (project_root / "tool.exe").exists()

    @pytest.mark.asyncio
    async def test_traversal_on_read(self, fs_provider):
        with pytest.raises(AccessDenied):
            await fs_provider.read_file("../../etc/passwd")

    @pytest.mark.asyncio
    async def test_write_into_blocked_directory(self, fs_provider, project_root):
        with pytest.raises(AccessDenied):
            await fs_provider.write_file("node_modules/evil.js", "x")
        assert not (project_root / "node_modules").exists()


class TestListAndStats:
    @pytest.mark.asyncio
    async def test_list_hides_blocked_and_disallowed_entries(self, fs_provider, project_root):
        _write(project_root, "src/index.ts")
        _write(project_root, ".git/HEAD")
        _write(project_root, "node_modules/x/index.js")
        _write(project_root, "README.md")
        _write(project_root, "run.exe")

        result = await fs_provider.list_directory(".")

        assert [d["name"] for d in result["directories"]] == ["src"]
        assert [f["name"] for f in result["files"]] == ["README.md"]
        assert result["totalItems"] == 2
        assert result["directories"][0]["type"] == "directory"
        assert result["files"][0]["path"] == "README.md"

    @pytest.mark.asyncio
    async def test_list_subdirectory_paths(self, fs_provider, project_root):
        _write(project_root, "src/b.ts")
        _write(project_root, "src/a.ts")

        result = await fs_provider.list_directory("src")
        assert [f["path"] for f in result["files"]] == ["src/a.ts", "src/b.ts"]

    @pytest.mark.asyncio
    async def test_list_missing_directory(self, fs_provider):
        with pytest.raises(NotFound):
            await fs_provider.list_directory("nope")

    @pytest.mark.asyncio
    async def test_create_directory_is_idempotent(self, fs_provider, project_root):
        await fs_provider.create_directory("assets/icons")
        await fs_provider.create_directory("assets/icons")
        assert (project_root / "assets" / "icons").is_dir()

    @pytest.mark.asyncio
    async def test_stats_for_file_and_directory(self, fs_provider, project_root):
        _write(project_root, "src/app.ts", "console.log(1)")

        file_stats = await fs_provider.get_file_stats("src/app.ts")
        assert file_stats["isFile"] is True
        assert file_stats["isDirectory"] is False
        assert file_stats["size"] == len("console.log(1)")
        assert set(file_stats) >= {"created", "modified", "accessed", "permissions"}

        dir_stats = await fs_provider.get_file_stats("src")
        assert dir_stats["isDirectory"] is True

    @pytest.mark.asyncio
    async def test_stats_missing(self, fs_provider):
        with pytest.raises(NotFound):
            await fs_provider.get_file_stats("ghost.md")


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_file(self, fs_provider, project_root):
        _write(project_root, "old.txt")
        result = await fs_provider.delete_file("old.txt")
        assert result["path"] == "old.txt"
        assert not (project_root / "old.txt").exists()

    @pytest.mark.asyncio
    async def test_delete_directory_is_refused(self, fs_provider, project_root):
        _write(project_root, "src/keep.ts")
        with pytest.raises(PermissionDenied, match="Cannot delete directories"):
            await fs_provider.delete_file("src")
        assert (project_root / "src" / "keep.ts").exists()

    @pytest.mark.asyncio
    async def test_delete_missing(self, fs_provider):
        with pytest.raises(NotFound):
            await fs_provider.delete_file("missing.txt")


class TestSearch:
    @pytest.mark.asyncio
    async def test_result_cap_and_total(self, fs_provider, project_root):
        for i in range(120):
            _write(project_root, f"pages/match_{i:03d}.txt", "nothing here")

        result = await fs_provider.search_files("match")

        assert len(result["results"]) == 50
        assert result["totalFound"] == 120
        assert all(r["type"] == "filename" for r in result["results"])

    @pytest.mark.asyncio
    async def test_result_cap_counts_content_matches(self, fs_provider, project_root):
        for i in range(120):
            _write(project_root, f"parts/part_{i:03d}.txt", "bolt, washer, flange")

        result = await fs_provider.search_files("flange")

        assert len(result["results"]) == 50
        assert result["totalFound"] == 120
        assert all(r["type"] == "content" for r in result["results"])

    @pytest.mark.asyncio
    async def test_filename_and_content_matches(self, fs_provider, project_root):
        _write(project_root, "src/Button.tsx", "export const Button = () => null")
        _write(project_root, "src/form.ts", "import { Button } from './Button'")
        _write(project_root, "docs/guide.md", "no match")

        result = await fs_provider.search_files("button")
        found = {(r["path"], r["type"]) for r in result["results"]}

        assert found == {
            ("src/Button.tsx", "filename"),
            ("src/Button.tsx", "content"),
            ("src/form.ts", "content"),
        }
        assert result["totalFound"] == 3

    @pytest.mark.asyncio
    async def test_content_only_for_searchable_extensions(self, fs_provider, project_root):
        _write(project_root, "styles/main.css", ".needle { color: red }")
        result = await fs_provider.search_files("needle")
        assert result["totalFound"] == 0

    @pytest.mark.asyncio
    async def test_undecodable_files_are_skipped(self, fs_provider, project_root):
        (project_root / "broken.txt").write_bytes(b"needle \xff\xfe")
        _write(project_root, "ok.txt", "needle")

        result = await fs_provider.search_files("needle")
        assert [r["path"] for r in result["results"]] == ["ok.txt"]

    @pytest.mark.asyncio
    async def test_blocked_directories_are_not_searched(self, fs_provider, project_root):
        _write(project_root, "node_modules/needle.js", "needle")
        _write(project_root, ".git/needle.txt", "needle")
        result = await fs_provider.search_files("needle")
        assert result["totalFound"] == 0

    @pytest.mark.asyncio
    async def test_search_subdirectory(self, fs_provider, project_root):
        _write(project_root, "a/needle.md")
        _write(project_root, "b/needle.md")
        result = await fs_provider.search_files("needle", "b")
        assert [r["path"] for r in result["results"]] == ["b/needle.md"]

    @pytest.mark.asyncio
    async def test_empty_query(self, fs_provider):
        with pytest.raises(InvalidArgument):
            await fs_provider.search_files("")

    @pytest.mark.asyncio
    async def test_search_path_must_be_directory(self, fs_provider, project_root):
        _write(project_root, "file.md")
        with pytest.raises(NotFound, match="Directory not found"):
            await fs_provider.search_files("x", "file.md")

    @pytest.mark.asyncio
    async def test_custom_result_limit(self, project_root):
        provider = FilesystemProvider(SandboxPolicy(root=project_root, search_result_limit=3))
        for i in range(5):
            _write(project_root, f"hit{i}.md")
        result = await provider.search_files("hit")
        assert len(result["results"]) == 3
        assert result["totalFound"] == 5


class TestStructure:
    @pytest.mark.asyncio
    async def test_depth_limit(self, fs_provider, project_root):
        _write(project_root, "a/b/c/deep.md")

        result = await fs_provider.get_project_structure(2)
        paths = _node_paths(result["structure"])

        assert "a" in paths
        assert "a/b" in paths
        assert "a/b/c" not in paths
        assert "a/b/c/deep.md" not in paths

    @pytest.mark.asyncio
    async def test_monotone_in_depth(self, fs_provider, project_root):
        _write(project_root, "a/b/c/d/e.md")
        _write(project_root, "top.md")

        previous = set()
        for depth in range(0, 6):
            current = set(_node_paths((await fs_provider.get_project_structure(depth))["structure"]))
            assert previous <= current
            previous = current

    @pytest.mark.asyncio
    async def test_zero_depth_is_root_only(self, fs_provider, project_root):
        _write(project_root, "top.md")
        result = await fs_provider.get_project_structure(0)
        assert result["structure"]["children"] == []
        assert result["structure"]["path"] == "."

    @pytest.mark.asyncio
    async def test_default_depth_and_ordering(self, fs_provider, project_root):
        _write(project_root, "zeta.md")
        _write(project_root, "alpha/one.md")
        _write(project_root, "node_modules/pkg/index.js")
        _write(project_root, "run.exe")

        result = await fs_provider.get_project_structure()
        children = result["structure"]["children"]

        assert result["maxDepth"] == 3
        assert [c["name"] for c in children] == ["alpha", "zeta.md"]
        assert children[0]["children"][0]["path"] == "alpha/one.md"
        assert children[1]["size"] == 1

    @pytest.mark.asyncio
    async def test_negative_depth(self, fs_provider):
        with pytest.raises(InvalidArgument):
            await fs_provider.get_project_structure(-1)

    @pytest.mark.asyncio
    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks not supported")
    async def test_symlink_leaving_root_is_skipped(self, fs_provider, project_root, tmp_path):
        outside = tmp_path / "outside"
        outside.mkdir()
        (outside / "secret.md").write_text("secret")
        (project_root / "escape").symlink_to(outside, target_is_directory=True)
        _write(project_root, "inside.md")

        structure = await fs_provider.get_project_structure(3)
        listing = await fs_provider.list_directory(".")
        search = await fs_provider.search_files("secret")

        assert "escape" not in _node_paths(structure["structure"])
        assert [d["name"] for d in listing["directories"]] == []
        assert search["totalFound"] == 0

    @pytest.mark.asyncio
    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks not supported")
    async def test_symlink_to_blocked_target_is_skipped(self, fs_provider, project_root):
        (project_root / ".env").write_text("API_KEY=sk-secret-123")
        (project_root / "alias.txt").symlink_to(project_root / ".env")
        _write(project_root, "node_modules/pkg/readme.md", "sk-secret-123")
        (project_root / "vendor").symlink_to(project_root / "node_modules", target_is_directory=True)

        with pytest.raises(AccessDenied):
            await fs_provider.read_file("alias.txt")

        search = await fs_provider.search_files("sk-secret-1")
        listing = await fs_provider.list_directory(".")
        structure = await fs_provider.get_project_structure(3)

        assert search["totalFound"] == 0
        assert listing["files"] == []
        assert listing["directories"] == []
        assert _node_paths(structure["structure"]) == ["."]

    @pytest.mark.asyncio
    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks not supported")
    async def test_symlink_loop_is_a_typed_failure(self, fs_provider, project_root):
        (project_root / "loop_a").symlink_to(project_root / "loop_b")
        (project_root / "loop_b").symlink_to(project_root / "loop_a")
        _write(project_root, "ok.md", "loop")

        with pytest.raises((AccessDenied, NotFound)):
            await fs_provider.read_file("loop_a/x.md")

        search = await fs_provider.search_files("loop")
        assert [r["path"] for r in search["results"]] == ["ok.md"]


class TestRouting:
    @pytest.mark.asyncio
    async def test_handle_request_routes_by_method_and_path(self, fs_provider, project_root):
        _write(project_root, "hello.md", "hi")
        result = await fs_provider.handle_request("GET", "/read", {"path": "hello.md"})
        assert result["content"] == "hi"

    @pytest.mark.asyncio
    async def test_method_is_case_insensitive(self, fs_provider, project_root):
        _write(project_root, "hello.md", "hi")
        result = await fs_provider.handle_request("get", "/read", {"path": "hello.md"})
        assert result["content"] == "hi"

    @pytest.mark.asyncio
    async def test_unknown_route(self, fs_provider):
        with pytest.raises(RouteNotFound) as excinfo:
            await fs_provider.handle_request("PATCH", "/read", {})
        assert excinfo.value.provider == "Filesystem"
        assert excinfo.value.route == "PATCH:/read"
        assert str(excinfo.value) == "Filesystem route not found: PATCH:/read"

    @pytest.mark.asyncio
    async def test_missing_required_field(self, fs_provider):
        with pytest.raises(InvalidArgument, match="'path' is required"):
            await fs_provider.handle_request("GET", "/read", {})

    @pytest.mark.asyncio
    async def test_write_requires_string_content(self, fs_provider):
        with pytest.raises(InvalidArgument, match="'content' must be a string"):
            await fs_provider.handle_request("POST", "/write", {"path": "a.md", "content": 5})

    @pytest.mark.asyncio
    async def test_structure_max_depth_from_query_string(self, fs_provider, project_root):
        _write(project_root, "a/b/c.md")
        result = await fs_provider.handle_request("GET", "/structure", {"maxDepth": "1"})
        assert result["maxDepth"] == 1
        assert result["structure"]["children"][0]["children"] == []

    def test_route_table_covers_enum(self, fs_provider):
        assert sorted(fs_provider.routes()) == sorted(r.value for r in FilesystemRoute)
        assert fs_provider.is_healthy() is True
