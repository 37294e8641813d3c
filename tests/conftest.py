import argparse
import sys
import xml.etree.ElementTree as ET
from collections.abc import Callable
from pathlib import Path

import pytest

GENERATOR_DIR = Path(__file__).resolve().parent.parent
if str(GENERATOR_DIR) not in sys.path:
    sys.path.insert(0, str(GENERATOR_DIR))

import glgen  # noqa: E402

FIXTURES_DIR = Path(__file__).resolve().parent / "fixtures"


@pytest.fixture
def existing_paths(tmp_path: Path) -> dict[str, Path]:
    srcdir = tmp_path / "xml"
    srcdir.mkdir()
    for name in ("gl.xml", "glx.xml", "wgl.xml"):
        (srcdir / name).write_text("<registry />\n", encoding="utf-8")

    output_dir = tmp_path / "out"
    return {
        "srcdir": srcdir,
        "gl_xml": srcdir / "gl.xml",
        "output_dir": output_dir,
    }


@pytest.fixture
def missing_path(tmp_path: Path) -> Path:
    return tmp_path / "missing"


@pytest.fixture
def make_args(existing_paths: dict[str, Path]) -> Callable[..., argparse.Namespace]:
    def _make_args(**overrides: object) -> argparse.Namespace:
        base_args: dict[str, object] = {
            "api": "gl",
            "namespace": "glb",
            "srcdir": existing_paths["srcdir"],
            "xml": None,
            "output_dir": existing_paths["output_dir"],
            "version": None,
            "ext": None,
            "no_extensions": False,
            "compatibility": False,
            "hasher": "auto",
            "list_versions": False,
            "list_extensions": False,
            "info": None,
            "filter": None,
        }
        base_args.update(overrides)
        return argparse.Namespace(**base_args)

    return _make_args


@pytest.fixture
def make_registry_root() -> Callable[[str], ET.Element]:
    def _make_registry_root(inner_xml: str) -> ET.Element:
        return ET.fromstring(f"<registry>{inner_xml}</registry>")

    return _make_registry_root


@pytest.fixture
def gl_profile() -> glgen.ApiProfile:
    return glgen.API_PROFILES[glgen.ApiKind.GL]


@pytest.fixture
def glx_profile() -> glgen.ApiProfile:
    return glgen.API_PROFILES[glgen.ApiKind.GLX]


@pytest.fixture
def make_registry(
    make_registry_root: Callable[[str], ET.Element], gl_profile: glgen.ApiProfile
) -> Callable[..., glgen.Registry]:
    def _make_registry(
        inner_xml: str,
        profile: glgen.ApiProfile | None = None,
        core_only: bool = True,
    ) -> glgen.Registry:
        return glgen.build_registry(
            make_registry_root(inner_xml), profile or gl_profile, core_only
        )

    return _make_registry


@pytest.fixture
def gl_fixture_registry(gl_profile: glgen.ApiProfile) -> glgen.Registry:
    return glgen.load_registry(FIXTURES_DIR / "gl_minimal.xml", gl_profile)


@pytest.fixture
def glx_fixture_registry(glx_profile: glgen.ApiProfile) -> glgen.Registry:
    return glgen.load_registry(FIXTURES_DIR / "glx_minimal.xml", glx_profile)


@pytest.fixture
def fixtures_dir() -> Path:
    return FIXTURES_DIR
