"""Tests for package assembly and the generated dispatch module."""

import ctypes
import _ctypes
import importlib
import os
import shutil
import stat
import subprocess
import sys
import tomllib

import pytest
from semantic_version import Version

from assembler import BuildOutput, build_jll_package, generate_dispatch
from errors import BuildDependencyError, InvalidPackageNameError
from jllruntime import platforms
from jllruntime.artifacts import artifact_entries, load_artifacts_toml, unpack_platform
from jllruntime.platforms import AnyPlatform, Linux, MacOS, Windows
from products import ExecutableProduct, FileProduct, LibraryProduct, ProductInfo
from sources import ArchiveSource
from versioning.models import BuildDependency, Dependency

HELLO = ExecutableProduct("hello_world", "hello_world")
BIN_PATH = "https://example.org/releases/download/HelloWorldC-v1.0.0+0"


def _meta(*platform_list, products=None):
    products = products or {HELLO: ProductInfo("bin/hello_world")}
    return {
        p: BuildOutput(
            tarball_name=f"/tmp/products/HelloWorldC.v1.0.0.{p.triplet()}.tar.gz",
            tarball_hash=f"{i}" * 64,
            git_hash=f"{i}" * 40,
            products_info=products,
        )
        for i, p in enumerate(platform_list)
    }


def _build(code_dir, meta, name="HelloWorldC", dependencies=(), **kwargs):
    build_jll_package(
        name,
        Version("1.0.0+0"),
        [ArchiveSource("https://example.org/hello.tar.gz", "ab" * 32)],
        str(code_dir),
        meta,
        list(dependencies),
        BIN_PATH,
        **kwargs,
    )


def _snapshot(root):
    """Relative path to contents of every file below ``root``."""
    files = {}
    for dirpath, _, filenames in os.walk(root):
        for fname in filenames:
            path = os.path.join(dirpath, fname)
            with open(path, "rb") as fh:
                files[os.path.relpath(path, root)] = fh.read()
    return files


GENERATED_PACKAGES = {"HelloWorldC_jll", "Dep_jll", "Main_jll", "LibFoo_jll"}


@pytest.fixture
def code_dir(tmp_path):
    return tmp_path / "HelloWorldC_jll"


@pytest.fixture
def import_package(code_dir, monkeypatch):
    """Import generated packages fresh, cleaning sys.modules afterwards."""
    monkeypatch.syspath_prepend(str(code_dir / "src"))

    def _import(host, name="HelloWorldC_jll", extra_roots=()):
        for root in extra_roots:
            monkeypatch.syspath_prepend(str(root / "src"))
        monkeypatch.setattr(platforms, "host_platform", lambda: host)
        return importlib.import_module(name)

    yield _import
    for name in list(sys.modules):
        if name.split(".")[0] in GENERATED_PACKAGES:
            del sys.modules[name]


class TestBuildJllPackage:
    """Files written for a two-platform executable package."""

    def test_layout(self, code_dir):
        _build(code_dir, _meta(Linux("x86_64"), MacOS("aarch64")))
        assert (code_dir / "Project.toml").is_file()
        assert (code_dir / "Artifacts.toml").is_file()
        assert (code_dir / "README.md").is_file()
        assert (code_dir / "LICENSE").is_file()
        pkg = code_dir / "src" / "HelloWorldC_jll"
        assert (pkg / "__init__.py").is_file()
        assert sorted(os.listdir(pkg / "wrappers")) == ["aarch64-apple-darwin20.py", "x86_64-linux-gnu.py"]

    def test_manifest(self, code_dir):
        _build(code_dir, _meta(Linux("x86_64"), MacOS("aarch64")))
        with open(code_dir / "Project.toml", "rb") as fh:
            project = tomllib.load(fh)
        assert project["name"] == "HelloWorldC_jll"
        assert project["version"] == "1.0.0+0"
        assert set(project["deps"]) == {"Libdl", "Pkg"}

    def test_artifact_bindings(self, code_dir):
        _build(code_dir, _meta(Linux("x86_64"), MacOS("aarch64")), lazy_artifacts=True)
        entries = artifact_entries(load_artifacts_toml(str(code_dir / "Artifacts.toml")), "HelloWorldC")
        assert [unpack_platform(e) for e in entries] == [MacOS("aarch64"), Linux("x86_64")]
        linux = entries[1]
        assert linux["lazy"] is True
        assert linux["download"] == [{
            "sha256": "0" * 64,
            "url": f"{BIN_PATH}/HelloWorldC.v1.0.0.x86_64-linux-gnu.tar.gz",
        }]

    def test_any_platform_binding_is_unconditional(self, code_dir):
        _build(code_dir, _meta(AnyPlatform(), products={FileProduct("share/data.txt", "data"): ProductInfo(
            "share/data.txt")}))
        data = load_artifacts_toml(str(code_dir / "Artifacts.toml"))
        assert isinstance(data["HelloWorldC"], dict)
        assert "os" not in data["HelloWorldC"]
        assert (code_dir / "src" / "HelloWorldC_jll" / "wrappers" / "any.py").is_file()

    def test_readme(self, code_dir, monkeypatch):
        monkeypatch.delenv("YGGDRASIL", raising=False)
        _build(code_dir, _meta(Linux("x86_64"), MacOS("aarch64")))
        readme = (code_dir / "README.md").read_text()
        assert readme.startswith("# `HelloWorldC_jll` (v1.0.0+0)")
        assert "`x86_64-linux-gnu`" in readme
        assert "`aarch64-apple-darwin20`" in readme
        assert "* compressed archive: https://example.org/hello.tar.gz" in readme
        assert "* `ExecutableProduct`: `hello_world`" in readme
        assert "## Dependencies" not in readme

    def test_license_is_idempotent(self, code_dir):
        _build(code_dir, _meta(Linux("x86_64")))
        first = (code_dir / "LICENSE").read_text()
        _build(code_dir, _meta(Linux("x86_64")))
        second = (code_dir / "LICENSE").read_text()
        assert first == second
        assert second.count("The Python source code within this repository") == 1
        assert "MIT License" in second

    def test_existing_license_kept_and_legacy_removed(self, code_dir):
        code_dir.mkdir()
        (code_dir / "LICENSE").write_text("Custom license text\n")
        (code_dir / "LICENSE.md").write_text("old\n")
        _build(code_dir, _meta(Linux("x86_64")))
        text = (code_dir / "LICENSE").read_text()
        assert text.startswith("The Python source code within this repository")
        assert text.rstrip().endswith("Custom license text")
        assert not (code_dir / "LICENSE.md").exists()

    def test_from_scratch_removes_stale_outputs(self, code_dir):
        _build(code_dir, _meta(Linux("x86_64"), MacOS("aarch64")))
        _build(code_dir, _meta(Linux("x86_64")), from_scratch=True)
        wrappers = code_dir / "src" / "HelloWorldC_jll" / "wrappers"
        assert os.listdir(wrappers) == ["x86_64-linux-gnu.py"]
        entries = artifact_entries(load_artifacts_toml(str(code_dir / "Artifacts.toml")), "HelloWorldC")
        assert [unpack_platform(e) for e in entries] == [Linux("x86_64")]

    def test_from_scratch_replaces_product_set(self, code_dir):
        old_tool = ExecutableProduct("oldtool", "oldtool")
        new_tool = ExecutableProduct("newtool", "newtool")
        _build(code_dir, _meta(Linux("x86_64"), products={old_tool: ProductInfo("bin/oldtool")}))
        _build(code_dir, _meta(Linux("x86_64"), products={new_tool: ProductInfo("bin/newtool")}), from_scratch=True)

        wrapper = (code_dir / "src" / "HelloWorldC_jll" / "wrappers" / "x86_64-linux-gnu.py").read_text()
        assert '__all__ = ["newtool"]' in wrapper
        assert "* `ExecutableProduct`: `newtool`" in (code_dir / "README.md").read_text()
        for root, _, files in os.walk(code_dir):
            for fname in files:
                with open(os.path.join(root, fname), encoding="utf-8") as fh:
                    assert "oldtool" not in fh.read(), fname

    def test_build_dependency_rejected_before_writing(self, code_dir):
        _build(code_dir, _meta(Linux("x86_64")))
        before = _snapshot(code_dir)
        with pytest.raises(BuildDependencyError):
            _build(
                code_dir,
                _meta(Linux("x86_64"), products={ExecutableProduct("bar", "bar"): ProductInfo("bin/bar")}),
                dependencies=[BuildDependency("Xorg_util_macros_jll")],
                from_scratch=True,
            )
        assert _snapshot(code_dir) == before

    def test_build_dependency_rejected_on_fresh_tree(self, code_dir):
        with pytest.raises(BuildDependencyError):
            _build(code_dir, _meta(Linux("x86_64")), dependencies=[Dependency("Zlib_jll"), BuildDependency("CMake_jll")])
        assert not code_dir.exists()

    def test_without_from_scratch_outputs_accumulate(self, code_dir):
        _build(code_dir, _meta(MacOS("aarch64")))
        _build(code_dir, _meta(Linux("x86_64")))
        wrappers = code_dir / "src" / "HelloWorldC_jll" / "wrappers"
        assert len(os.listdir(wrappers)) == 2

    @pytest.mark.parametrize("name", ["Hello-World", "1Hello", "class", ""])
    def test_invalid_names_rejected(self, code_dir, name):
        with pytest.raises(InvalidPackageNameError):
            build_jll_package(name, Version("1.0.0"), [], str(code_dir), _meta(Linux()), [], BIN_PATH)
        with pytest.raises(ValueError):
            build_jll_package(name, Version("1.0.0"), [], str(code_dir), _meta(Linux()), [], BIN_PATH)
        assert not code_dir.exists()


class TestGenerateDispatch:
    """Dispatch module source."""

    def test_compiles(self):
        compile(generate_dispatch("HelloWorldC", Version("1.0.0+0"), [Linux()]), "__init__.py", "exec")
        compile(generate_dispatch("HelloWorldC", Version("1.0.0+0"), [AnyPlatform()]), "__init__.py", "exec")

    def test_any_only_loads_directly(self):
        source = generate_dispatch("HelloWorldC", Version("1.0.0+0"), [AnyPlatform()])
        assert '"any.py"' in source
        assert "select_platform" not in source

    def test_identity(self):
        source = generate_dispatch("Zlib", Version("1.2.11+0"), [Linux()])
        assert "__version__ = '1.2.11+0'" in source
        assert "UUID = '83775a58-1f1d-513f-b197-d71354ab007a'" in source


@pytest.mark.skipif(sys.platform == "win32", reason="uses a POSIX shell script")
class TestGeneratedPackageImport:
    """Loading a generated package with an override directory."""

    def _override_hello(self, code_dir, binname="hello_world"):
        script = code_dir / "override" / "bin" / binname
        script.parent.mkdir(parents=True, exist_ok=True)
        script.write_text('#!/bin/sh\necho "Hello, World!"\n')
        os.chmod(script, os.stat(script).st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return script

    def test_executable_runs(self, code_dir, import_package):
        _build(code_dir, _meta(Linux("x86_64"), MacOS("aarch64")))
        script = self._override_hello(code_dir)
        pkg = import_package(Linux("x86_64"))

        assert pkg.package.platform == Linux("x86_64")
        assert pkg.package.is_overridden()
        assert pkg.hello_world_path == os.path.normpath(str(script))
        assert os.path.dirname(str(script)) in pkg.PATH_list
        out = pkg.hello_world(lambda path: subprocess.run([path], capture_output=True, text=True, check=True).stdout)
        assert out == "Hello, World!\n"

    def test_executable_sees_adjusted_path(self, code_dir, import_package):
        _build(code_dir, _meta(Linux("x86_64")))
        script = self._override_hello(code_dir)
        pkg = import_package(Linux("x86_64"))
        seen = pkg.hello_world(lambda path: os.environ["PATH"].split(os.pathsep)[0])
        assert seen == os.path.dirname(str(script))
        assert os.environ["PATH"].split(os.pathsep)[0] != seen

    def test_unsupported_host_stays_inert(self, code_dir, import_package):
        _build(code_dir, _meta(Linux("x86_64"), MacOS("aarch64")))
        self._override_hello(code_dir)
        pkg = import_package(Windows("x86_64"))

        assert pkg.package.platform is None
        assert pkg.PATH_list == []
        assert pkg.LIBPATH_list == []
        assert not hasattr(pkg, "hello_world")

    def test_file_product_on_any_platform(self, code_dir, import_package):
        _build(code_dir, _meta(AnyPlatform(), products={FileProduct("share/data.txt", "data"): ProductInfo(
            "share/data.txt")}))
        data = code_dir / "override" / "share" / "data.txt"
        data.parent.mkdir(parents=True)
        data.write_text("payload")
        pkg = import_package(Windows("x86_64"))
        assert pkg.package.platform == AnyPlatform()
        assert pkg.data == os.path.normpath(str(data))

    def test_dependency_search_paths_are_merged(self, tmp_path, import_package):
        dep_dir = tmp_path / "Dep_jll"
        main_dir = tmp_path / "Main_jll"
        dep_tool = ExecutableProduct("dep_tool", "dep_tool")
        _build(dep_dir, _meta(Linux("x86_64"), products={dep_tool: ProductInfo("bin/dep_tool")}), name="Dep")
        _build(main_dir, _meta(Linux("x86_64")), name="Main", dependencies=[Dependency("Dep_jll")])
        dep_bin = os.path.dirname(str(self._override_hello(dep_dir, "dep_tool")))
        main_bin = os.path.dirname(str(self._override_hello(main_dir)))

        pkg = import_package(Linux("x86_64"), name="Main_jll", extra_roots=[dep_dir, main_dir])

        assert sys.modules["Dep_jll"].PATH_list == [dep_bin]
        assert pkg.PATH_list == [dep_bin, main_bin]
        seen = pkg.hello_world(lambda path: os.environ["PATH"].split(os.pathsep))
        assert seen[:2] == [dep_bin, main_bin]
        assert dep_bin not in os.environ.get("PATH", "").split(os.pathsep)

    @pytest.mark.skipif(not sys.platform.startswith("linux"), reason="copies an ELF shared object")
    def test_library_is_opened(self, tmp_path, import_package):
        shared_object = getattr(_ctypes, "__file__", None)
        if not shared_object:
            pytest.skip("_ctypes is built into the interpreter")
        lib_dir = tmp_path / "LibFoo_jll"
        libfoo = LibraryProduct(["libfoo"], "libfoo")
        _build(lib_dir, _meta(Linux("x86_64"), products={libfoo: ProductInfo("lib/libfoo.so", "libfoo.so.1")}),
               name="LibFoo")
        target = lib_dir / "override" / "lib" / "libfoo.so"
        target.parent.mkdir(parents=True)
        shutil.copyfile(shared_object, target)

        pkg = import_package(Linux("x86_64"), name="LibFoo_jll", extra_roots=[lib_dir])

        assert pkg.libfoo == "libfoo.so.1"
        assert pkg.libfoo_path == os.path.normpath(str(target))
        assert isinstance(pkg.libfoo_handle, ctypes.CDLL)
        assert pkg.package.handles[pkg.libfoo_path] is pkg.libfoo_handle
        assert os.path.dirname(pkg.libfoo_path) in pkg.LIBPATH_list
