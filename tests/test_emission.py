import pytest

import glgen


@pytest.fixture
def gl_blocks(gl_fixture_registry: glgen.Registry) -> tuple[glgen.DeclarationBlock, ...]:
    blocks, _ = glgen.build_declaration_blocks(
        gl_fixture_registry, "glb", None, ["ARB_sync", "KHR_debug"]
    )
    return blocks


@pytest.fixture
def gl_header(
    gl_fixture_registry: glgen.Registry,
    gl_blocks: tuple[glgen.DeclarationBlock, ...],
) -> list[str]:
    return glgen.generate_header_lines(gl_fixture_registry, gl_blocks, "glb")


@pytest.fixture
def gl_source(gl_fixture_registry: glgen.Registry) -> list[str]:
    selected = ["ARB_sync", "KHR_debug"]
    contract = glgen.build_loader_contract(gl_fixture_registry, None, selected)
    lookup = glgen.render_extension_lookup(
        glgen.InlineMatcher(), glgen.extension_entries(contract, "glb")
    )
    return glgen.generate_source_lines(
        gl_fixture_registry, contract, "glb", "glb-glcore.h", lookup
    )


@pytest.mark.parametrize(
    ("enumerant", "expected"),
    [
        (glgen.Enumerant("A", 0x4), "0x4"),
        (glgen.Enumerant("B", 0xFFFFFFFFFFFFFFFF, suffix="ull"), "0xFFFFFFFFFFFFFFFFull"),
        (glgen.Enumerant("C", -1), "-1"),
        (glgen.Enumerant("D", "GL_OTHER"), "GL_OTHER"),
    ],
)
def test_format_enum_value(enumerant: glgen.Enumerant, expected: str) -> None:
    assert glgen.format_enum_value(enumerant) == expected


def test_format_function_pointer_uses_raw_parameter_text(
    gl_fixture_registry: glgen.Registry,
) -> None:
    command = gl_fixture_registry.commands["GetIntegerv"]

    assert glgen.format_function_pointer(command, "glGetIntegerv") == (
        "void (*glGetIntegerv)(GLenum, GLint *)"
    )


def test_format_function_pointer_without_parameters_uses_void() -> None:
    command = glgen.Command(key="Finish", return_type="", return_declaration_text="void")

    assert glgen.format_function_pointer(command, "glFinish") == "void (*glFinish)(void)"


def test_c_naming_helpers(gl_profile: glgen.ApiProfile) -> None:
    assert glgen.version_macro("glb", gl_profile) == "GLB_GL_VERSION"
    assert glgen.extension_flag("glb", gl_profile, "ARB_sync") == "GLB_GL_ARB_sync"
    assert glgen.enable_macro("glb", gl_profile, "ARB_sync") == "GLB_ENABLE_GL_ARB_sync"
    assert glgen.init_function_name("glb", gl_profile) == "glb_glcore_init"
    assert glgen.binding_filenames("glb", gl_profile) == ("glb-glcore.h", "glb-glcore.c")


def test_format_conjunction() -> None:
    assert glgen.format_conjunction([]) == "true"
    assert glgen.format_conjunction(["glB", "glA"]) == "glA && glB"


def test_declaration_blocks_layout(
    gl_blocks: tuple[glgen.DeclarationBlock, ...],
) -> None:
    base, gate_43, arb_sync, khr_debug = gl_blocks

    assert base.guard is None
    assert base.interface.command_keys == {
        "DrawArrays",
        "GetIntegerv",
        "GetStringi",
        "FenceSync",
    }
    assert base.interface.type_keys == {"GLsync"}
    assert gate_43.guard == "#if defined(GLB_GL_VERSION) && GLB_GL_VERSION >= 43"
    assert gate_43.interface.type_keys == {"GLDEBUGPROC"}
    assert arb_sync.guard == "#if defined(GLB_ENABLE_GL_ARB_sync)"
    assert arb_sync.flag == "GLB_GL_ARB_sync"
    assert khr_debug.flag == "GLB_GL_KHR_debug"


def test_declaration_blocks_report_unknown_types(glx_fixture_registry: glgen.Registry) -> None:
    _, unknown = glgen.build_declaration_blocks(glx_fixture_registry, "glb", None, [])

    assert unknown == frozenset({"Display"})


def test_missing_enumerants_lists_required_but_undefined_keys() -> None:
    registry = glgen.Registry(profile=glgen.API_PROFILES[glgen.ApiKind.GL])
    block = glgen.DeclarationBlock(
        interface=glgen.ResolvedInterface(enum_keys={"GHOST"})
    )

    assert glgen.missing_enumerants([block], registry) == frozenset({"GHOST"})


def test_header_structure(gl_header: list[str]) -> None:
    assert gl_header[:5] == [
        "#ifndef GLB_GLCORE_H",
        "#define GLB_GLCORE_H",
        "#ifdef __cplusplus",
        'extern "C" {',
        "#endif",
    ]
    assert "#include <stdbool.h>" in gl_header
    assert "typedef ptrdiff_t GLsizeiptr;" in gl_header
    default_version = gl_header.index("#ifndef GLB_GL_VERSION")
    assert gl_header[default_version + 1] == "#define GLB_GL_VERSION 32"
    assert "bool glb_glcore_init(int maj, int min);" in gl_header
    assert gl_header[-1] == "#endif"


def test_header_declares_enumerants_and_commands(gl_header: list[str]) -> None:
    assert "#define GL_TRIANGLES 0x4" in gl_header
    assert "#define GL_TIMEOUT_IGNORED 0xFFFFFFFFFFFFFFFFull" in gl_header
    assert "#define glDrawArrays _glb_glDrawArrays" in gl_header
    assert "extern void (*glDrawArrays)(GLenum, GLint, GLsizei);" in gl_header
    assert "extern const GLubyte * (*glGetStringi)(GLenum, GLuint);" in gl_header
    assert "#define GL_OLD_THING 0xB00" not in gl_header


def test_header_guards_types(gl_header: list[str]) -> None:
    guard = gl_header.index("#ifndef GLB_TYPE_GLsync")

    assert gl_header[guard + 1] == "#define GLB_TYPE_GLsync"
    assert gl_header[guard + 2] == "typedef struct __GLsync *GLsync;"
    assert gl_header[guard + 3] == "#endif"


def test_header_extension_block_declares_flag(gl_header: list[str]) -> None:
    start = gl_header.index("#if defined(GLB_ENABLE_GL_KHR_debug)")

    assert gl_header[start + 1] == "extern bool GLB_GL_KHR_debug;"


def test_header_emits_undef_for_removed_names(
    gl_fixture_registry: glgen.Registry,
) -> None:
    feature = gl_fixture_registry.features[32]
    block = glgen.DeclarationBlock(
        interface=glgen.overlay_interface(feature),
        removed_enum_keys=frozenset(feature.removed_enum_keys),
        removed_command_keys=frozenset(feature.removed_command_keys),
    )

    lines = glgen.generate_declaration_lines(block, gl_fixture_registry, "glb")

    assert "#undef GL_OLD_THING" in lines
    assert "#undef glBegin" in lines
    assert lines.index("#undef GL_OLD_THING") < lines.index(
        "#define GL_TIMEOUT_IGNORED 0xFFFFFFFFFFFFFFFFull"
    )


def test_source_starts_with_load_proc_shim(gl_source: list[str]) -> None:
    assert gl_source[0] == "#ifndef _WIN32"
    assert any("glXGetProcAddress" in line for line in gl_source[:5])
    assert any("OpenGL32.dll" in line for line in gl_source)


def test_source_defines_version_and_enable_macros_before_include(
    gl_source: list[str],
) -> None:
    include = gl_source.index('#include "glb-glcore.h"')

    assert gl_source.index("#define GLB_GL_VERSION 43") < include
    assert gl_source.index("#define GLB_ENABLE_GL_ARB_sync") < include
    assert gl_source.index("#define GLB_ENABLE_GL_KHR_debug") < include


def test_source_defines_pointers_and_flags(gl_source: list[str]) -> None:
    assert "void (*glDrawArrays)(GLenum, GLint, GLsizei) = NULL;" in gl_source
    assert "bool GLB_GL_ARB_sync = false;" in gl_source
    assert not any("glBegin" in line for line in gl_source)


def test_source_init_function_implements_contract(gl_source: list[str]) -> None:
    body = "\n".join(gl_source[gl_source.index("bool glb_glcore_init(int maj, int min)") :])

    assert "if (req_version < 32) return false;" in body
    assert "if (req_version > 43) return false;" in body
    assert (
        'glFenceSync = (GLsync (*)(GLenum, GLbitfield)) LoadProcAddress("glFenceSync");'
        in body
    )
    assert "if (!glGetIntegerv || !glGetStringi) return false;" in body
    assert "if (actual_version < req_version) return false;" in body
    assert 'if (!strcmp(extname, "GL_ARB_sync")) {' in body
    assert "GLB_GL_ARB_sync = GLB_GL_ARB_sync && glFenceSync;" in body
    assert "return glDrawArrays && glFenceSync && glGetIntegerv && glGetStringi" in body
    assert "((req_version < 43) || (glDebugMessageCallback));" in body


def test_init_requires_lookup_for_enumerable_api(gl_fixture_registry: glgen.Registry) -> None:
    contract = glgen.build_loader_contract(gl_fixture_registry, None, [])

    with pytest.raises(ValueError, match="extension lookup"):
        glgen.generate_init_lines(gl_fixture_registry, contract, "glb", None)


def test_glx_source_initializes_flags_true_and_skips_query(
    glx_fixture_registry: glgen.Registry,
) -> None:
    selected = sorted(glx_fixture_registry.extensions)
    contract = glgen.build_loader_contract(glx_fixture_registry, None, selected)

    lines = glgen.generate_source_lines(
        glx_fixture_registry, contract, "glb", "glb-glx.h", None
    )
    body = "\n".join(lines)

    assert "bool GLB_GLX_EXT_swap_control = true;" in lines
    assert "glGetStringi" not in body
    assert "GLB_GLX_SGI_swap_control = GLB_GLX_SGI_swap_control && glXSwapIntervalSGI;" in body
    assert "bool glb_glx_init(int maj, int min)" in lines


def test_glx_header_includes_x11(glx_fixture_registry: glgen.Registry) -> None:
    blocks, _ = glgen.build_declaration_blocks(glx_fixture_registry, "glb", None, [])

    lines = glgen.generate_header_lines(glx_fixture_registry, blocks, "glb")

    assert lines.index("#include <X11/Xlib.h>") < lines.index("#include <stdint.h>")
    assert "#define GLB_GLX_VERSION 14" in lines
    assert "#define glXSwapBuffers _glb_glXSwapBuffers" in lines
