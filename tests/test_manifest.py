"""Tests for manifest construction."""

import tomllib

import pytest
from semantic_version import Version

from errors import BuildDependencyError
from manifest import build_project_dict, write_project_toml
from versioning.models import BuildDependency, Dependency, VersionRange, VersionSpec


class TestBuildProjectDict:
    """Manifest contents for generated packages."""

    def test_golden_manifest(self):
        project = build_project_dict(
            "LibFoo",
            Version("1.3.5"),
            [Dependency("Zlib_jll"), Dependency("XZ_jll", Version("2.4.6"))],
        )
        assert project["name"] == "LibFoo_jll"
        assert project["uuid"] == "b250f842-3251-58d3-8ee4-9a24ab2bab3f"
        assert project["version"] == "1.3.5"
        assert project["compat"] == {"julia": "1.0", "XZ_jll": "=2.4.6"}
        assert project["deps"] == {
            "Zlib_jll": "83775a58-1f1d-513f-b197-d71354ab007a",
            "XZ_jll": "ffd25f8a-64ca-5728-b0f7-c24cf3aae800",
            "Libdl": "8f399da3-3557-5675-b5ff-fb832c97cbdb",
            "Pkg": "44cfe95a-1eb2-52ea-b672-e2afdf69b78f",
        }

    def test_no_dependencies_only_runtime_stdlibs(self):
        project = build_project_dict("HelloWorldC", Version("1.0.0+0"), [])
        assert set(project["deps"]) == {"Libdl", "Pkg"}
        assert project["compat"] == {"julia": "1.0"}
        assert project["version"] == "1.0.0+0"

    def test_build_dependency_rejected(self):
        with pytest.raises(BuildDependencyError):
            build_project_dict("LibFoo", Version("1.3.5"), [BuildDependency("Zlib_jll")])

    def test_build_dependency_error_is_type_error(self):
        with pytest.raises(TypeError):
            build_project_dict("LibFoo", Version("1.3.5"), [Dependency("Zlib_jll"), BuildDependency("CMake_jll")])

    def test_exact_version_drops_build_metadata(self):
        project = build_project_dict("LibFoo", Version("1.0.0"), [Dependency("Zlib_jll", Version("1.2.11+3"))])
        assert project["compat"]["Zlib_jll"] == "=1.2.11"

    def test_single_point_spec_becomes_equality(self):
        spec = VersionSpec((VersionRange((1, 2), (1, 2)),))
        project = build_project_dict("LibFoo", Version("1.0.0"), [Dependency("Zlib_jll", spec)])
        assert project["compat"]["Zlib_jll"] == "=1.2"

    def test_range_spec_kept_as_range(self):
        spec = VersionSpec((VersionRange((1, 2), (1, 4)),))
        project = build_project_dict("LibFoo", Version("1.0.0"), [Dependency("Zlib_jll", spec)])
        assert project["compat"]["Zlib_jll"] == "1.2-1.4"

    def test_unconstrained_dependency_has_no_compat_entry(self):
        project = build_project_dict(
            "LibFoo", Version("1.0.0"), [Dependency("Zlib_jll", VersionSpec()), Dependency("XZ_jll", "*")]
        )
        assert "Zlib_jll" not in project["compat"]
        assert "XZ_jll" not in project["compat"]
        assert "Zlib_jll" in project["deps"]


class TestWriteProjectToml:
    """Manifest serialization."""

    def test_round_trips_through_toml(self, tmp_path):
        project = build_project_dict("LibFoo", Version("1.3.5"), [Dependency("XZ_jll", Version("2.4.6"))])
        path = tmp_path / "Project.toml"
        write_project_toml(str(path), project)
        with open(path, "rb") as fh:
            assert tomllib.load(fh) == project
