import pytest

import glgen


@pytest.mark.parametrize(
    ("raw", "prefix", "expected"),
    [
        ("glDrawArrays", "gl", "DrawArrays"),
        ("GL_TRIANGLES", "GL_", "TRIANGLES"),
        ("glXSwapBuffers", "glX", "SwapBuffers"),
        ("WGL_DRAW_TO_WINDOW_ARB", "WGL_", "DRAW_TO_WINDOW_ARB"),
        ("EGL_SUCCESS", "GL_", None),
        ("xglFoo", "gl", None),
        ("gl", "gl", None),
        ("", "GL_", None),
    ],
)
def test_namespace_key_strips_prefix_or_rejects(
    raw: str, prefix: str, expected: str | None
) -> None:
    assert glgen.namespace_key(raw, prefix) == expected


@pytest.mark.parametrize("raw", ["glDrawArrays", "glGetStringi", "glX"])
def test_namespace_key_is_bijective_with_prefix(raw: str) -> None:
    key = glgen.namespace_key(raw, "gl")

    assert key is not None
    assert "gl" + key == raw


def test_api_profiles_cover_every_api_kind() -> None:
    assert set(glgen.API_PROFILES) == set(glgen.ApiKind)
    for kind, profile in glgen.API_PROFILES.items():
        assert profile.api_name == kind.value


@pytest.mark.parametrize(
    ("kind", "variant", "command_prefix", "enum_prefix", "min_version", "enumerable"),
    [
        (glgen.ApiKind.GL, "glcore", "gl", "GL_", 32, True),
        (glgen.ApiKind.GLX, "glx", "glX", "GLX_", 14, False),
        (glgen.ApiKind.WGL, "wgl", "wgl", "WGL_", 10, False),
    ],
)
def test_api_profile_table(
    kind: glgen.ApiKind,
    variant: str,
    command_prefix: str,
    enum_prefix: str,
    min_version: int,
    enumerable: bool,
) -> None:
    profile = glgen.API_PROFILES[kind]

    assert profile.api_name == kind.value
    assert profile.variant == variant
    assert profile.command_prefix == command_prefix
    assert profile.enum_prefix == enum_prefix
    assert profile.min_version == min_version
    assert profile.enumerable_extensions is enumerable


def test_profile_extension_key_strips_api_prefix_case_insensitively() -> None:
    gl = glgen.API_PROFILES[glgen.ApiKind.GL]
    glx = glgen.API_PROFILES[glgen.ApiKind.GLX]

    assert gl.extension_key("GL_ARB_sync") == "ARB_sync"
    assert gl.extension_key("gl_ARB_sync") == "ARB_sync"
    assert gl.extension_key("ARB_sync") == "ARB_sync"
    assert glx.extension_key("GLX_EXT_swap_control") == "EXT_swap_control"
    assert gl.extension_string("KHR_debug") == "GL_KHR_debug"
    assert glx.extension_string("EXT_swap_control") == "GLX_EXT_swap_control"


@pytest.mark.parametrize(
    ("name", "excluded"),
    [
        ("SGIX_video_source", True),
        ("SGI_make_current_read", True),
        ("SGI_swap_control", False),
        ("EXT_swap_control", False),
        ("ARB_create_context", False),
    ],
)
def test_glx_profile_excludes_sgi_extensions_except_swap_control(
    name: str, excluded: bool
) -> None:
    profile = glgen.API_PROFILES[glgen.ApiKind.GLX]

    assert profile.excludes_extension(name) is excluded


def test_gl_and_wgl_profiles_exclude_nothing() -> None:
    for kind in (glgen.ApiKind.GL, glgen.ApiKind.WGL):
        assert glgen.API_PROFILES[kind].excludes_extension("SGIX_anything") is False


def test_only_gl_has_shared_member_extensions() -> None:
    gl = glgen.API_PROFILES[glgen.ApiKind.GL]

    assert gl.shared_member_extensions == frozenset(
        {"EXT_direct_state_access", "ARB_direct_state_access"}
    )
    assert not glgen.API_PROFILES[glgen.ApiKind.GLX].shared_member_extensions
    assert not glgen.API_PROFILES[glgen.ApiKind.WGL].shared_member_extensions
