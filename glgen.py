"""OpenGL C bindings generator.

Generates a C header and a loader source file from the Khronos gl.xml,
glx.xml or wgl.xml registry.

Usage:
    python glgen.py --api gl --namespace glb --srcdir /path/to/OpenGL-Registry/xml
"""

import argparse
import re
import shutil
import subprocess
import sys
import xml.etree.ElementTree as ET
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import NamedTuple, Protocol

DEFAULT_SRCDIR = Path(".")
DEFAULT_OUTPUT_DIR = Path(".")
DEFAULT_NAMESPACE = "glb"
TOOL_NAME = "gl-bindings-gen"


# ===--- API strategy table ---=== #


class ApiKind(Enum):
    GL = "gl"
    GLX = "glx"
    WGL = "wgl"


class ApiVersion(NamedTuple):
    major: int
    minor: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}"

    @property
    def rank(self) -> int:
        return self.major * 10 + self.minor

    @classmethod
    def from_rank(cls, rank: int) -> "ApiVersion":
        return cls(rank // 10, rank % 10)


def namespace_key(raw_name: str, prefix: str) -> str | None:
    """Return raw_name without prefix, or None when it belongs elsewhere."""
    if raw_name.startswith(prefix) and len(raw_name) > len(prefix):
        return raw_name[len(prefix) :]
    return None


def _glx_unsupported_extension(name: str) -> bool:
    # SGI extensions reference types missing from the X11 headers.
    return name.startswith("SGI") and "swap_control" not in name


def _no_unsupported_extensions(name: str) -> bool:
    return False


@dataclass(frozen=True)
class ApiProfile:
    """Per-API naming and loader conventions.

    Attributes:
        api_name: Value of feature api= and enum/type api= attributes.
        variant: Token matched against extension supported= lists.
        command_prefix: Prefix of raw command names, e.g. "gl".
        enum_prefix: Prefix of raw enumerant and extension names, e.g. "GL_".
        min_version: Documented minimum version rank (major*10+minor).
        enumerable_extensions: True when the runtime exposes an indexed
            extension string list (glGetStringi).
        includes: Extra system headers the generated header needs.
        shared_member_extensions: Extensions allowed to list commands owned
            by another overlay.
        excludes_extension: Predicate over bare extension names that the
            target cannot compile.
        compatibility_variant: supported= token that also qualifies an
            extension when core-only filtering is off.
    """

    api_name: str
    variant: str
    command_prefix: str
    enum_prefix: str
    min_version: int
    enumerable_extensions: bool
    includes: tuple[str, ...]
    shared_member_extensions: frozenset[str]
    excludes_extension: Callable[[str], bool]
    compatibility_variant: str | None = None

    def accepts_extension(self, supported: frozenset[str], core_only: bool) -> bool:
        if self.variant in supported:
            return True
        if core_only or self.compatibility_variant is None:
            return False
        return self.compatibility_variant in supported

    def command_key(self, raw_name: str) -> str | None:
        return namespace_key(raw_name, self.command_prefix)

    def enum_key(self, raw_name: str) -> str | None:
        return namespace_key(raw_name, self.enum_prefix)

    def extension_key(self, declared_name: str) -> str:
        head = self.api_name + "_"
        if declared_name.lower().startswith(head):
            return declared_name[len(head) :]
        return declared_name

    def extension_string(self, key: str) -> str:
        return self.enum_prefix + key


API_PROFILES: dict[ApiKind, ApiProfile] = {
    ApiKind.GL: ApiProfile(
        api_name="gl",
        variant="glcore",
        command_prefix="gl",
        enum_prefix="GL_",
        min_version=32,
        enumerable_extensions=True,
        includes=(),
        shared_member_extensions=frozenset(
            {"EXT_direct_state_access", "ARB_direct_state_access"}
        ),
        excludes_extension=_no_unsupported_extensions,
        compatibility_variant="gl",
    ),
    ApiKind.GLX: ApiProfile(
        api_name="glx",
        variant="glx",
        command_prefix="glX",
        enum_prefix="GLX_",
        min_version=14,
        enumerable_extensions=False,
        includes=("X11/Xlib.h", "X11/Xutil.h"),
        shared_member_extensions=frozenset(),
        excludes_extension=_glx_unsupported_extension,
    ),
    ApiKind.WGL: ApiProfile(
        api_name="wgl",
        variant="wgl",
        command_prefix="wgl",
        enum_prefix="WGL_",
        min_version=10,
        enumerable_extensions=False,
        includes=("windows.h",),
        shared_member_extensions=frozenset(),
        excludes_extension=_no_unsupported_extensions,
    ),
}


# ===--- CLI config contracts ---=== #


@dataclass(frozen=True)
class GenerateConfig:
    api: ApiKind
    namespace: str
    version: ApiVersion | None
    extensions: frozenset[str]
    no_extensions: bool
    core_only: bool
    hasher: str
    registry_xml: Path
    output_dir: Path

    @property
    def profile(self) -> ApiProfile:
        return API_PROFILES[self.api]


@dataclass(frozen=True)
class DiscoveryConfig:
    command: str
    api: ApiKind
    filter_text: str | None
    info_extension: str | None
    core_only: bool
    registry_xml: Path

    @property
    def profile(self) -> ApiProfile:
        return API_PROFILES[self.api]


VALID_ERROR_CODES = {
    "INVALID_API",
    "INVALID_VERSION",
    "VERSION_BELOW_MINIMUM",
    "INVALID_NAMESPACE",
    "INVALID_EXTENSION_NAME",
    "INVALID_HASHER",
    "CONFLICT_EXT_FLAGS",
    "CONFLICT_GENERATE_DISCOVERY",
    "FILTER_WITHOUT_LIST",
    "PATH_NOT_FOUND",
}
VALID_HASHERS = ("auto", "gperf", "inline")
_VERSION_RE = re.compile(r"^(\d+)\.(\d)$")
_NAMESPACE_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_EXT_NAME_RE = re.compile(r"^[A-Z]+_[A-Z0-9]+_[A-Za-z0-9_]+$")


class ConfigError(Exception):
    def __init__(self, code: str, message: str, suggestion: str | None = None):
        if code not in VALID_ERROR_CODES:
            raise ValueError(f"Unknown config error code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion


class SchemaError(Exception):
    """The registry XML parsed but does not have the expected shape."""


def parse_api(raw: str) -> ApiKind:
    try:
        return ApiKind(raw)
    except ValueError as err:
        raise ConfigError(
            "INVALID_API",
            f"Unsupported API: {raw}",
            "Use one of: gl, glx, wgl.",
        ) from err


def parse_version(raw: str, profile: ApiProfile) -> ApiVersion:
    match = _VERSION_RE.match(raw)
    if match is None:
        raise ConfigError(
            "INVALID_VERSION",
            f"Invalid version: {raw}",
            "Pass a MAJOR.MINOR version such as 3.3 or 4.6.",
        )
    version = ApiVersion(int(match.group(1)), int(match.group(2)))
    if version.rank < profile.min_version:
        minimum = ApiVersion.from_rank(profile.min_version)
        raise ConfigError(
            "VERSION_BELOW_MINIMUM",
            f"{profile.api_name} {version} is below the supported minimum {minimum}",
            f"Pass --version {minimum} or higher.",
        )
    return version


def validate_namespace(name: str) -> str:
    if _NAMESPACE_RE.match(name):
        return name
    raise ConfigError(
        "INVALID_NAMESPACE",
        f"Invalid namespace: {name}",
        "The namespace prefixes C identifiers; use letters, digits and '_' only.",
    )


def validate_extension_name(name: str, profile: ApiProfile) -> str:
    if _EXT_NAME_RE.match(name) and name.startswith(profile.enum_prefix):
        return name
    raise ConfigError(
        "INVALID_EXTENSION_NAME",
        f"Invalid {profile.api_name} extension name: {name}",
        f"Extension names must match {profile.enum_prefix}<VENDOR>_<name> "
        f"(for example {profile.enum_prefix}ARB_sync).",
    )


def parse_hasher(raw: str) -> str:
    if raw in VALID_HASHERS:
        return raw
    raise ConfigError(
        "INVALID_HASHER",
        f"Unknown extension lookup mode: {raw}",
        "Use one of: auto, gperf, inline.",
    )


def validate_path_exists(
    path: Path | None, flag: str, suggestion: str | None = None
) -> Path:
    if path is None:
        raise ConfigError(
            "PATH_NOT_FOUND",
            f"{flag} is required: no path provided.",
            suggestion or f"Pass the path explicitly: {flag} /path/to/resource",
        )
    if path.exists():
        return path
    raise ConfigError(
        "PATH_NOT_FOUND",
        f"Path for {flag} does not exist: {path}",
        suggestion or "Provide an existing path for this flag.",
    )


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate C bindings and a loader for OpenGL, GLX or WGL"
    )

    parser.add_argument("--api", type=str, default=ApiKind.GL.value)
    parser.add_argument("--namespace", type=str, default=DEFAULT_NAMESPACE)
    parser.add_argument("--srcdir", type=Path, default=DEFAULT_SRCDIR)
    parser.add_argument("--xml", type=Path, default=None)
    parser.add_argument("--output-dir", type=Path, default=DEFAULT_OUTPUT_DIR)
    parser.add_argument("--version", type=str, default=None)

    ext_group = parser.add_mutually_exclusive_group()
    ext_group.add_argument("--ext", action="append", nargs="+", default=None)
    ext_group.add_argument("--no-extensions", action="store_true", default=False)

    parser.add_argument("--compatibility", action="store_true", default=False)
    parser.add_argument("--hasher", type=str, default="auto")

    discovery_group = parser.add_mutually_exclusive_group()
    discovery_group.add_argument("--list-versions", action="store_true", default=False)
    discovery_group.add_argument(
        "--list-extensions", action="store_true", default=False
    )
    discovery_group.add_argument("--info", type=str, default=None)

    parser.add_argument("--filter", type=str, default=None)

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = build_argument_parser()
    return parser.parse_args(argv)


def normalize_extensions(raw_extensions: object) -> tuple[str, ...]:
    if raw_extensions is None:
        return tuple()
    if not isinstance(raw_extensions, list):
        raise ConfigError(
            "INVALID_EXTENSION_NAME",
            f"Invalid --ext value type: {type(raw_extensions).__name__}",
            "Pass extension names as --ext GL_VENDOR_name.",
        )

    normalized: list[str] = []
    for entry in raw_extensions:
        if isinstance(entry, str):
            normalized.append(entry)
            continue
        if isinstance(entry, list):
            for name in entry:
                if not isinstance(name, str):
                    raise ConfigError(
                        "INVALID_EXTENSION_NAME",
                        f"Invalid extension name type: {type(name).__name__}",
                        "Pass extension names as --ext GL_VENDOR_name.",
                    )
                normalized.append(name)
            continue
        raise ConfigError(
            "INVALID_EXTENSION_NAME",
            f"Invalid --ext entry type: {type(entry).__name__}",
            "Pass extension names as --ext GL_VENDOR_name.",
        )

    return tuple(normalized)


def registry_path(xml: Path | None, srcdir: Path, profile: ApiProfile) -> Path:
    """Return the explicit --xml path, or <srcdir>/<api>.xml."""
    if xml is not None:
        return xml
    return srcdir / f"{profile.api_name}.xml"


def validate_config(args: argparse.Namespace) -> GenerateConfig | DiscoveryConfig:
    api = parse_api(args.api)
    profile = API_PROFILES[api]
    raw_extensions = normalize_extensions(args.ext)
    has_generate_input = bool(args.version or raw_extensions or args.no_extensions)
    has_discovery_command = bool(
        args.list_versions or args.list_extensions or args.info
    )

    if args.filter and not args.list_extensions:
        raise ConfigError(
            "FILTER_WITHOUT_LIST",
            "--filter requires --list-extensions.",
            "Add --list-extensions or remove --filter.",
        )

    if has_generate_input and has_discovery_command:
        raise ConfigError(
            "CONFLICT_GENERATE_DISCOVERY",
            "Generate flags cannot be combined with discovery flags.",
            "Choose either generate mode or one discovery command.",
        )

    if raw_extensions and args.no_extensions:
        raise ConfigError(
            "CONFLICT_EXT_FLAGS",
            "Cannot combine --ext with --no-extensions.",
            "Use --ext with one or more names, or --no-extensions.",
        )

    registry_xml = validate_path_exists(
        registry_path(args.xml, args.srcdir, profile),
        "--xml",
        "Clone the OpenGL registry:\n"
        "  git clone https://github.com/KhronosGroup/OpenGL-Registry.git\n"
        f"Then pass --srcdir OpenGL-Registry/xml or --xml /path/to/{profile.api_name}.xml",
    )
    core_only = not args.compatibility

    if has_discovery_command:
        if args.list_versions:
            command = "list-versions"
        elif args.list_extensions:
            command = "list-extensions"
        else:
            command = "info"

        info_extension = (
            validate_extension_name(args.info, profile)
            if args.info is not None
            else None
        )
        return DiscoveryConfig(
            command=command,
            api=api,
            filter_text=args.filter,
            info_extension=info_extension,
            core_only=core_only,
            registry_xml=registry_xml,
        )

    namespace = validate_namespace(args.namespace)
    version = parse_version(args.version, profile) if args.version else None
    extensions = frozenset(
        validate_extension_name(name, profile) for name in raw_extensions
    )

    return GenerateConfig(
        api=api,
        namespace=namespace,
        version=version,
        extensions=extensions,
        no_extensions=bool(args.no_extensions),
        core_only=core_only,
        hasher=parse_hasher(args.hasher),
        registry_xml=registry_xml,
        output_dir=args.output_dir,
    )


def build_config(argv: list[str] | None = None) -> GenerateConfig | DiscoveryConfig:
    return validate_config(parse_args(argv))


# ===--- Constants ---=== #

COMMON_GL_TYPEDEFS: tuple[tuple[str, str], ...] = (
    ("GLenum", "typedef unsigned int GLenum;"),
    ("GLboolean", "typedef unsigned char GLboolean;"),
    ("GLbitfield", "typedef unsigned int GLbitfield;"),
    ("GLbyte", "typedef signed char GLbyte;"),
    ("GLshort", "typedef short GLshort;"),
    ("GLint", "typedef int GLint;"),
    ("GLubyte", "typedef unsigned char GLubyte;"),
    ("GLushort", "typedef unsigned short GLushort;"),
    ("GLuint", "typedef unsigned int GLuint;"),
    ("GLsizei", "typedef int GLsizei;"),
    ("GLfloat", "typedef float GLfloat;"),
    ("GLdouble", "typedef double GLdouble;"),
    ("GLintptr", "typedef ptrdiff_t GLintptr;"),
    ("GLsizeiptr", "typedef ptrdiff_t GLsizeiptr;"),
)

# Always emitted by the header, even for glx and wgl, so never re-declared.
BUILTIN_TYPES: frozenset[str] = frozenset(name for name, _ in COMMON_GL_TYPEDEFS)

STANDARD_INCLUDES = ("stdint.h", "stddef.h", "string.h", "stdbool.h")


# ===--- Data classes ---=== #


@dataclass
class Enumerant:
    key: str
    value: int | str
    suffix: str = ""

    @property
    def is_symbolic(self) -> bool:
        return isinstance(self.value, str)


@dataclass
class Parameter:
    declared_type: str = ""
    name: str = ""
    raw_declaration_text: str = ""


@dataclass
class Command:
    key: str
    return_type: str
    return_declaration_text: str
    parameters: list[Parameter] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.return_declaration_text = self.return_declaration_text.rstrip()

    def referenced_types(self) -> list[str]:
        return [self.return_type] + [p.declared_type for p in self.parameters]


@dataclass
class OpaqueType:
    key: str
    declaration_text: str
    api: str | None = None


@dataclass
class Overlay:
    added_enum_keys: set[str] = field(default_factory=set)
    added_command_keys: set[str] = field(default_factory=set)
    removed_enum_keys: set[str] = field(default_factory=set)
    removed_command_keys: set[str] = field(default_factory=set)


@dataclass
class FeatureOverlay(Overlay):
    rank: int = 0
    name: str = ""


@dataclass
class ExtensionOverlay(Overlay):
    name: str = ""
    supported: frozenset[str] = frozenset()


@dataclass
class Registry:
    """Every table read from one registry document for one API.

    Populated by a single build_registry pass and treated as read-only
    afterwards. Keys never carry their namespace prefix.
    """

    profile: ApiProfile
    enumerants: dict[str, Enumerant] = field(default_factory=dict)
    commands: dict[str, Command] = field(default_factory=dict)
    types: dict[str, OpaqueType] = field(default_factory=dict)
    features: dict[int, FeatureOverlay] = field(default_factory=dict)
    extensions: dict[str, ExtensionOverlay] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def ordered_features(self) -> list[FeatureOverlay]:
        return [self.features[rank] for rank in sorted(self.features)]


@dataclass
class ResolvedInterface:
    enum_keys: set[str] = field(default_factory=set)
    command_keys: set[str] = field(default_factory=set)
    type_keys: set[str] = field(default_factory=set)


# ===--- Schema walker ---=== #


class SchemaVisitor(Protocol):
    def enter_root(self, node: ET.Element) -> bool: ...

    def exit_root(self, node: ET.Element) -> None: ...

    def enter(self, node: ET.Element, parent: ET.Element) -> bool: ...

    def exit(self, node: ET.Element, parent: ET.Element) -> None: ...

    def text(self, value: str, owner: ET.Element) -> None: ...


def walk(root: ET.Element, visitor: SchemaVisitor) -> None:
    """Depth-first traversal of root, reporting events to visitor.

    A False return from enter_root/enter skips that node's text and children;
    the matching exit hook still runs. Text runs are reported against the
    element that directly contains them: an element's own text and the tails
    of its children.
    """
    if visitor.enter_root(root):
        _walk_children(root, visitor)
    visitor.exit_root(root)


def _walk_children(node: ET.Element, visitor: SchemaVisitor) -> None:
    if node.text:
        visitor.text(node.text, node)
    for child in node:
        if isinstance(child.tag, str):
            if visitor.enter(child, node):
                _walk_children(child, visitor)
            visitor.exit(child, node)
        if child.tail:
            visitor.text(child.tail, node)


# ===--- Registry builder ---=== #

_HEX_RE = re.compile(r"^0[xX][0-9a-fA-F]+$")
_DEC_RE = re.compile(r"^[+-]?\d+$")


def parse_enum_value(raw: str) -> int | None:
    text = raw.strip()
    if _HEX_RE.match(text):
        return int(text, 16)
    if _DEC_RE.match(text):
        return int(text, 10)
    return None


def _api_applies(node: ET.Element, profile: ApiProfile) -> bool:
    api = node.get("api")
    return not api or api == profile.api_name


class EnumsHandler:
    """Reads one <enums> block into the enumerant table."""

    def __init__(self, registry: Registry):
        self.registry = registry

    def enter_root(self, node: ET.Element) -> bool:
        return True

    def exit_root(self, node: ET.Element) -> None:
        pass

    def enter(self, node: ET.Element, parent: ET.Element) -> bool:
        if node.tag == "enum":
            self._ingest(node)
        return False

    def exit(self, node: ET.Element, parent: ET.Element) -> None:
        pass

    def text(self, value: str, owner: ET.Element) -> None:
        pass

    def _ingest(self, node: ET.Element) -> None:
        profile = self.registry.profile
        if not _api_applies(node, profile):
            return
        raw_name = node.get("name", "")
        key = profile.enum_key(raw_name)
        if key is None:
            return
        raw_value = node.get("value")
        if raw_value is None:
            self.registry.warn(f"enum {raw_name} has no value; skipped")
            return
        value: int | str | None = parse_enum_value(raw_value)
        if value is None:
            self.registry.warn(
                f'can\'t parse value of enum {raw_name}: "{raw_value}"; kept as written'
            )
            value = raw_value
        self.registry.enumerants[key] = Enumerant(
            key=key,
            value=value,
            suffix=node.get("type", ""),
        )


class CommandHandler:
    """Assembles one <command> from its proto and param text runs."""

    def __init__(self, profile: ApiProfile):
        self.profile = profile
        self.command: Command | None = None
        self.discarded = False
        self._section: str | None = None
        self._key: str | None = None
        self._return_type = ""
        self._return_decl: list[str] = []
        self._params: list[Parameter] = []

    def enter_root(self, node: ET.Element) -> bool:
        self.discarded = not _api_applies(node, self.profile)
        return not self.discarded

    def exit_root(self, node: ET.Element) -> None:
        if self.discarded or self._key is None:
            return
        self.command = Command(
            key=self._key,
            return_type=self._return_type,
            return_declaration_text="".join(self._return_decl),
            parameters=self._params,
        )

    def enter(self, node: ET.Element, parent: ET.Element) -> bool:
        if self.discarded:
            return False
        match (parent.tag, node.tag):
            case ("command", "proto"):
                self._section = "proto"
                return True
            case ("command", "param"):
                if not _api_applies(node, self.profile):
                    return False
                self._section = "param"
                self._params.append(Parameter())
                return True
            case ("proto" | "param", "ptype" | "name"):
                return True
            case _:
                return False

    def exit(self, node: ET.Element, parent: ET.Element) -> None:
        if parent.tag == "command" and node.tag in ("proto", "param"):
            self._section = None

    def text(self, value: str, owner: ET.Element) -> None:
        if self.discarded:
            return
        match (self._section, owner.tag):
            case ("proto", "proto"):
                self._return_decl.append(value)
            case ("proto", "ptype"):
                self._return_type = value
                self._return_decl.append(value)
            case ("proto", "name"):
                self._key = self.profile.command_key(value)
                if self._key is None:
                    self.discarded = True
            case ("param", "param"):
                self._params[-1].raw_declaration_text += value
            case ("param", "ptype"):
                self._params[-1].declared_type = value
                self._params[-1].raw_declaration_text += value
            case ("param", "name"):
                self._params[-1].name = value


class TypeHandler:
    """Concatenates one <type> declaration."""

    def __init__(self, profile: ApiProfile):
        self.profile = profile
        self.opaque_type: OpaqueType | None = None
        self._applicable = False
        self._name: str | None = None
        self._parts: list[str] = []

    def enter_root(self, node: ET.Element) -> bool:
        self._applicable = _api_applies(node, self.profile)
        return self._applicable

    def exit_root(self, node: ET.Element) -> None:
        if not self._applicable:
            return
        name = self._name or node.get("name")
        if name:
            self.opaque_type = OpaqueType(
                key=name, declaration_text="".join(self._parts), api=node.get("api")
            )

    def enter(self, node: ET.Element, parent: ET.Element) -> bool:
        return node.tag == "name"

    def exit(self, node: ET.Element, parent: ET.Element) -> None:
        pass

    def text(self, value: str, owner: ET.Element) -> None:
        self._parts.append(value)
        if owner.tag == "name":
            self._name = value


class OverlayHandler:
    """Fills a feature or extension overlay from its require/remove groups."""

    def __init__(self, registry: Registry, overlay: Overlay, core_only: bool):
        self.registry = registry
        self.overlay = overlay
        self.core_only = core_only
        self._root: ET.Element | None = None
        self._mode: str | None = None

    def enter_root(self, node: ET.Element) -> bool:
        self._root = node
        return True

    def exit_root(self, node: ET.Element) -> None:
        pass

    def enter(self, node: ET.Element, parent: ET.Element) -> bool:
        match node.tag:
            case "require" | "remove" if parent is self._root:
                if not self._group_applies(node, node.tag):
                    return False
                self._mode = node.tag
                return True
            case "enum" | "command" if self._mode is not None:
                self._record(node)
                return False
            case _:
                return False

    def exit(self, node: ET.Element, parent: ET.Element) -> None:
        if parent is self._root and node.tag in ("require", "remove"):
            self._mode = None

    def text(self, value: str, owner: ET.Element) -> None:
        pass

    def _group_applies(self, node: ET.Element, mode: str) -> bool:
        if not _api_applies(node, self.registry.profile):
            return False
        profile = node.get("profile")
        if not profile:
            return True
        if self.core_only:
            return profile == "core"
        # Compatibility keeps every requirement but only its own removals.
        return mode == "require" or profile == "compatibility"

    def _record(self, node: ET.Element) -> None:
        profile = self.registry.profile
        name = node.get("name", "")
        overlay = self.overlay
        match (self._mode, node.tag):
            case ("require", "enum"):
                key = profile.enum_key(name)
                if key is not None:
                    overlay.added_enum_keys.add(key)
            case ("remove", "enum"):
                key = profile.enum_key(name)
                if key is not None:
                    overlay.removed_enum_keys.add(key)
            case ("require", "command"):
                key = profile.command_key(name)
                if key is None:
                    return
                if key not in self.registry.commands:
                    self.registry.warn(f"{name} is required but never declared; skipped")
                    return
                overlay.added_command_keys.add(key)
            case ("remove", "command"):
                key = profile.command_key(name)
                if key is not None:
                    overlay.removed_command_keys.add(key)


class RegistryHandler:
    """Top-level dispatch over the children of <registry>."""

    def __init__(self, registry: Registry, core_only: bool):
        self.registry = registry
        self.core_only = core_only

    def enter_root(self, node: ET.Element) -> bool:
        if node.tag != "registry":
            raise SchemaError(f"expected a <registry> root element, found <{node.tag}>")
        return True

    def exit_root(self, node: ET.Element) -> None:
        pass

    def enter(self, node: ET.Element, parent: ET.Element) -> bool:
        match (parent.tag, node.tag):
            case ("registry", "commands" | "types" | "extensions"):
                return True
            case ("registry", "enums"):
                walk(node, EnumsHandler(self.registry))
            case ("registry", "feature"):
                self._ingest_feature(node)
            case ("extensions", "extension"):
                self._ingest_extension(node)
            case ("commands", "command"):
                self._ingest_command(node)
            case ("types", "type"):
                self._ingest_type(node)
        return False

    def exit(self, node: ET.Element, parent: ET.Element) -> None:
        pass

    def text(self, value: str, owner: ET.Element) -> None:
        pass

    def _ingest_command(self, node: ET.Element) -> None:
        handler = CommandHandler(self.registry.profile)
        walk(node, handler)
        if handler.command is not None:
            self.registry.commands[handler.command.key] = handler.command

    def _ingest_type(self, node: ET.Element) -> None:
        handler = TypeHandler(self.registry.profile)
        walk(node, handler)
        opaque_type = handler.opaque_type
        if opaque_type is not None and opaque_type.key not in self.registry.types:
            self.registry.types[opaque_type.key] = opaque_type

    def _ingest_feature(self, node: ET.Element) -> None:
        profile = self.registry.profile
        if node.get("api", "") != profile.api_name:
            return
        name = node.get("name", "")
        number = node.get("number", "")
        try:
            rank = round(float(number) * 10)
        except ValueError as err:
            raise SchemaError(
                f"feature {name or '<unnamed>'} has an invalid number {number!r}"
            ) from err
        existing = self.registry.features.get(rank)
        if existing is not None:
            raise SchemaError(
                f"features {existing.name} and {name} share version "
                f"{ApiVersion.from_rank(rank)}"
            )
        overlay = FeatureOverlay(rank=rank, name=name)
        walk(node, OverlayHandler(self.registry, overlay, self.core_only))
        self.registry.features[rank] = overlay

    def _ingest_extension(self, node: ET.Element) -> None:
        profile = self.registry.profile
        supported = frozenset(
            token for token in node.get("supported", "").split("|") if token
        )
        declared = node.get("name", "")
        if not declared or not profile.accepts_extension(supported, self.core_only):
            return
        name = profile.extension_key(declared)
        if profile.excludes_extension(name):
            return
        overlay = ExtensionOverlay(name=name, supported=supported)
        walk(node, OverlayHandler(self.registry, overlay, self.core_only))
        self.registry.extensions[name] = overlay


def build_registry(
    root: ET.Element, profile: ApiProfile, core_only: bool = True
) -> Registry:
    """Populate a Registry for profile from a parsed registry document.

    Args:
        root: Parsed <registry> root element.
        profile: Target API profile; decides namespace filtering and which
            feature/extension blocks apply.
        core_only: When True, require/remove groups for non-core profiles are
            skipped. When False, every require group applies, only
            compatibility removals apply, and extensions supported for the
            compatibility variant are kept as well.

    Returns:
        The populated Registry. Recoverable problems are listed in
        Registry.warnings.

    Raises:
        SchemaError: If the root is not <registry>, a feature number is not
            numeric, or two features share a version.
    """
    registry = Registry(profile=profile)
    walk(root, RegistryHandler(registry, core_only))
    return registry


def load_registry(path: Path, profile: ApiProfile, core_only: bool = True) -> Registry:
    """Parse path and build its Registry.

    Raises:
        OSError: If the file cannot be read.
        SchemaError: If the file is not well-formed XML or not a registry.
    """
    try:
        root = ET.parse(path).getroot()
    except ET.ParseError as err:
        raise SchemaError(f"{path}: malformed XML: {err}") from err
    try:
        return build_registry(root, profile, core_only)
    except SchemaError as err:
        raise SchemaError(f"{path}: {err}") from err


# ===--- Interface composition ---=== #


def compose(
    registry: Registry,
    version_ceiling: int | None,
    extension_names: Iterable[str],
) -> ResolvedInterface:
    """Fold feature overlays up to version_ceiling, then add extensions.

    Features are applied in ascending rank. Each feature's removals are
    subtracted after its own additions, so a block may drop names it inherited
    or names it just added. Extensions only ever add.

    Args:
        registry: Built registry.
        version_ceiling: Highest feature rank to include, or None for all.
        extension_names: Bare extension keys; unknown names contribute nothing.

    Returns:
        A fresh ResolvedInterface with empty type_keys.
    """
    interface = ResolvedInterface()
    for feature in registry.ordered_features():
        if version_ceiling is not None and feature.rank > version_ceiling:
            break
        interface.enum_keys |= feature.added_enum_keys
        interface.command_keys |= feature.added_command_keys
        interface.enum_keys -= feature.removed_enum_keys
        interface.command_keys -= feature.removed_command_keys

    for name in extension_names:
        overlay = registry.extensions.get(name)
        if overlay is None:
            continue
        interface.enum_keys |= overlay.added_enum_keys
        interface.command_keys |= overlay.added_command_keys

    return interface


def overlay_interface(overlay: Overlay) -> ResolvedInterface:
    """Return the interface formed by a single overlay's additions."""
    return ResolvedInterface(
        enum_keys=set(overlay.added_enum_keys),
        command_keys=set(overlay.added_command_keys),
    )


# ===--- Type closure ---=== #


def resolve_types(interface: ResolvedInterface, registry: Registry) -> frozenset[str]:
    """Add the types referenced by interface commands to interface.type_keys.

    Looks at the return type and every parameter type of each command. Empty
    names and BUILTIN_TYPES are skipped. Type declarations are opaque: their
    text is not searched for further references. Running it again on the same
    command set leaves type_keys unchanged.

    Args:
        interface: Interface whose type_keys is extended in place.
        registry: Registry providing commands and type declarations.

    Returns:
        Referenced type names the registry does not declare. These are not
        inserted into type_keys.
    """
    unknown: set[str] = set()
    for key in sorted(interface.command_keys):
        command = registry.commands.get(key)
        if command is None:
            continue
        for type_name in command.referenced_types():
            if (
                not type_name
                or type_name in BUILTIN_TYPES
                or type_name in interface.type_keys
            ):
                continue
            if type_name in registry.types:
                interface.type_keys.add(type_name)
            else:
                unknown.add(type_name)
    return frozenset(unknown)


# ===--- Loader contract ---=== #


@dataclass(frozen=True)
class VersionGate:
    """Commands a version above the minimum needs, checked only if requested."""

    rank: int
    commands: frozenset[str]


@dataclass(frozen=True)
class ExtensionCheck:
    """Resolution requirement behind one extension support flag.

    Attributes:
        name: Bare extension key, e.g. "ARB_sync".
        extension_string: Name reported by the runtime, e.g. "GL_ARB_sync".
        required_commands: Member commands that must resolve for the flag.
        exempt_commands: Members owned by another overlay; not checked here.
    """

    name: str
    extension_string: str
    required_commands: frozenset[str]
    exempt_commands: frozenset[str]


@dataclass(frozen=True)
class LoaderContract:
    """The predicate an emitted init(major, minor) evaluates.

    Attributes:
        profile: API profile the loader targets.
        min_version: Lowest accepted request rank.
        max_version: Highest accepted request rank.
        load_commands: Every command the loader tries to resolve.
        base_commands: Commands that must always resolve.
        version_gates: Per-version requirements above min_version, ascending.
        extension_checks: One per selected extension, sorted by name.
    """

    profile: ApiProfile
    min_version: int
    max_version: int
    load_commands: frozenset[str]
    base_commands: frozenset[str]
    version_gates: tuple[VersionGate, ...]
    extension_checks: tuple[ExtensionCheck, ...]

    @property
    def enumerable_extensions(self) -> bool:
        return self.profile.enumerable_extensions


def _shared_members(registry: Registry, extension: ExtensionOverlay) -> frozenset[str]:
    shared: set[str] = set()
    for feature in registry.features.values():
        shared |= extension.added_command_keys & feature.added_command_keys
    for other in registry.extensions.values():
        if other is not extension:
            shared |= extension.added_command_keys & other.added_command_keys
    return frozenset(shared)


def build_loader_contract(
    registry: Registry,
    version_ceiling: int | None,
    extension_names: Iterable[str],
) -> LoaderContract:
    """Derive the loader predicate for one generated target.

    The loader resolves the full interface: every feature within
    version_ceiling plus the selected extensions. Base and gate command sets
    are limited to that loaded set, so a command removed by a later version
    never makes a request unsatisfiable.

    Members of extensions listed in profile.shared_member_extensions that are
    also added by any other overlay are exempt from that extension's check.

    Args:
        registry: Built registry.
        version_ceiling: Highest feature rank generated, or None for all.
        extension_names: Bare extension keys; names absent from the registry
            are ignored.

    Returns:
        The LoaderContract for this target.
    """
    profile = registry.profile
    features = [
        feature
        for feature in registry.ordered_features()
        if version_ceiling is None or feature.rank <= version_ceiling
    ]
    selected = sorted(
        {name for name in extension_names if name in registry.extensions}
    )

    full = compose(registry, version_ceiling, selected)
    loaded = frozenset(full.command_keys)
    base = compose(registry, profile.min_version, ())

    gates: list[VersionGate] = []
    for feature in features:
        if feature.rank <= profile.min_version:
            continue
        commands = frozenset(feature.added_command_keys) & loaded
        if commands:
            gates.append(VersionGate(rank=feature.rank, commands=commands))

    checks: list[ExtensionCheck] = []
    for name in selected:
        overlay = registry.extensions[name]
        members = frozenset(overlay.added_command_keys)
        exempt = (
            _shared_members(registry, overlay)
            if name in profile.shared_member_extensions
            else frozenset()
        )
        checks.append(
            ExtensionCheck(
                name=name,
                extension_string=profile.extension_string(name),
                required_commands=members - exempt,
                exempt_commands=exempt,
            )
        )

    return LoaderContract(
        profile=profile,
        min_version=profile.min_version,
        max_version=max([profile.min_version] + [f.rank for f in features]),
        load_commands=loaded,
        base_commands=frozenset(base.command_keys) & loaded,
        version_gates=tuple(gates),
        extension_checks=tuple(checks),
    )


class ExtensionQuery(Protocol):
    """Runtime extension-string facility of the primary API."""

    def count(self) -> int: ...

    def name_at(self, index: int) -> str: ...

    def version(self) -> int: ...


@dataclass(frozen=True)
class LoaderResult:
    ok: bool
    extension_flags: dict[str, bool] = field(default_factory=dict)


def evaluate_loader_contract(
    contract: LoaderContract,
    major: int,
    minor: int,
    resolve: Callable[[str], object],
    query: ExtensionQuery | None = None,
) -> LoaderResult:
    """Evaluate contract the way the generated init(major, minor) does.

    Args:
        contract: Contract from build_loader_contract.
        major: Requested major version.
        minor: Requested minor version.
        resolve: Symbol lookup; a falsy return means unresolved. Called with
            prefixed names, e.g. "glDrawArrays".
        query: Extension string facility. Required for APIs with
            enumerable_extensions; ignored otherwise.

    Returns:
        LoaderResult with the overall verdict and one flag per extension.
        Out-of-range requests return without calling resolve.
    """
    requested = major * 10 + minor
    flags = {check.name: False for check in contract.extension_checks}
    if requested < contract.min_version or requested > contract.max_version:
        return LoaderResult(ok=False, extension_flags=flags)

    prefix = contract.profile.command_prefix
    resolved = {
        key for key in sorted(contract.load_commands) if resolve(prefix + key)
    }

    if contract.enumerable_extensions:
        if query is None or query.version() < requested:
            return LoaderResult(ok=False, extension_flags=flags)
        available = {query.name_at(index) for index in range(query.count())}
        for check in contract.extension_checks:
            flags[check.name] = check.extension_string in available
    else:
        for check in contract.extension_checks:
            flags[check.name] = True

    for check in contract.extension_checks:
        flags[check.name] = flags[check.name] and check.required_commands <= resolved

    ok = contract.base_commands <= resolved and all(
        requested < gate.rank or gate.commands <= resolved
        for gate in contract.version_gates
    )
    return LoaderResult(ok=ok, extension_flags=flags)


# ===--- Extension lookup ---=== #

GPERF_ARGS: tuple[str, ...] = ("-D", "-t", "-F", ",NULL")
GPERF_STRUCT = "struct extension_match { const char *name; bool *support_flag; };"


class ExtensionMatcher(Protocol):
    """Emits the C code that maps an extension string to its support flag.

    entries are (extension_string, flag_symbol) pairs.
    """

    name: str

    def preamble_lines(self, entries: Sequence[tuple[str, str]]) -> list[str]: ...

    def loop_lines(self, entries: Sequence[tuple[str, str]]) -> list[str]: ...


class InlineMatcher:
    name = "inline"

    def preamble_lines(self, entries: Sequence[tuple[str, str]]) -> list[str]:
        return []

    def loop_lines(self, entries: Sequence[tuple[str, str]]) -> list[str]:
        lines = []
        for extension_string, flag in entries:
            lines.append(f'\t\tif (!strcmp(extname, "{extension_string}")) {{')
            lines.append(f"\t\t\t{flag} = true;")
            lines.append("\t\t\tcontinue;")
            lines.append("\t\t}")
        return lines


class GperfMatcher:
    name = "gperf"

    def __init__(self, executable: str = "gperf"):
        self.executable = executable

    def gperf_input(self, entries: Sequence[tuple[str, str]]) -> str:
        records = "".join(f"{ext}, &{flag}\n" for ext, flag in entries)
        return f"{GPERF_STRUCT}\n%%\n{records}"

    def preamble_lines(self, entries: Sequence[tuple[str, str]]) -> list[str]:
        result = subprocess.run(
            [self.executable, *GPERF_ARGS],
            input=self.gperf_input(entries),
            check=True,
            capture_output=True,
            text=True,
        )
        return result.stdout.splitlines()

    def loop_lines(self, entries: Sequence[tuple[str, str]]) -> list[str]:
        return [
            "\t\tstruct extension_match *match = in_word_set(extname, strlen(extname));",
            "\t\tif (match)",
            "\t\t\t*match->support_flag = true;",
        ]


def select_extension_matcher(mode: str) -> ExtensionMatcher:
    """Pick the matcher for a --hasher mode.

    "auto" uses gperf when it is on PATH and the inline chain otherwise.
    """
    if mode == "inline":
        return InlineMatcher()
    if mode == "gperf":
        return GperfMatcher()
    executable = shutil.which("gperf")
    if executable is None:
        return InlineMatcher()
    return GperfMatcher(executable)


@dataclass(frozen=True)
class ExtensionLookup:
    matcher: str
    preamble_lines: tuple[str, ...]
    loop_lines: tuple[str, ...]


def render_extension_lookup(
    matcher: ExtensionMatcher,
    entries: Sequence[tuple[str, str]],
) -> ExtensionLookup:
    """Render the extension lookup, falling back to the inline chain.

    A missing or failing gperf prints a warning and degrades to InlineMatcher;
    it is never fatal. An empty entry list always uses the inline chain.
    """
    if not entries:
        matcher = InlineMatcher()
    try:
        preamble = matcher.preamble_lines(entries)
    except (OSError, subprocess.CalledProcessError) as err:
        print(
            f"warning: {matcher.name} failed ({err}); using inline extension lookup",
            file=sys.stderr,
        )
        matcher = InlineMatcher()
        preamble = matcher.preamble_lines(entries)
    return ExtensionLookup(
        matcher=matcher.name,
        preamble_lines=tuple(preamble),
        loop_lines=tuple(matcher.loop_lines(entries)),
    )


# ===--- C naming ---=== #


def version_macro(namespace: str, profile: ApiProfile) -> str:
    return f"{namespace.upper()}_{profile.enum_prefix}VERSION"


def extension_flag(namespace: str, profile: ApiProfile, key: str) -> str:
    return f"{namespace.upper()}_{profile.enum_prefix}{key}"


def enable_macro(namespace: str, profile: ApiProfile, key: str) -> str:
    return f"{namespace.upper()}_ENABLE_{profile.enum_prefix}{key}"


def init_function_name(namespace: str, profile: ApiProfile) -> str:
    return f"{namespace}_{profile.variant}_init"


def binding_filenames(namespace: str, profile: ApiProfile) -> tuple[str, str]:
    stem = f"{namespace}-{profile.variant}"
    return f"{stem}.h", f"{stem}.c"


def format_enum_value(enumerant: Enumerant) -> str:
    if enumerant.is_symbolic:
        return str(enumerant.value)
    if enumerant.value < 0:
        return str(enumerant.value)
    return f"0x{enumerant.value:X}{enumerant.suffix}"


def format_function_pointer(command: Command, symbol: str) -> str:
    params = ", ".join(
        p.raw_declaration_text.strip() for p in command.parameters
    )
    return f"{command.return_declaration_text} (*{symbol})({params or 'void'})"


def format_conjunction(symbols: Iterable[str]) -> str:
    ordered = sorted(symbols)
    if not ordered:
        return "true"
    return " && ".join(ordered)


# ===--- Declaration blocks ---=== #


@dataclass(frozen=True)
class DeclarationBlock:
    """One guarded section of the generated header.

    Attributes:
        interface: Names declared in this section, types already resolved.
        removed_enum_keys: Enumerants #undef'd before the section's defines.
        removed_command_keys: Command macros #undef'd before its commands.
        guard: Opening preprocessor condition, or None for the base block.
        flag: Extension support flag declared in the section, if any.
    """

    interface: ResolvedInterface
    removed_enum_keys: frozenset[str] = frozenset()
    removed_command_keys: frozenset[str] = frozenset()
    guard: str | None = None
    flag: str | None = None


def build_declaration_blocks(
    registry: Registry,
    namespace: str,
    version_ceiling: int | None,
    extension_names: Sequence[str],
) -> tuple[tuple[DeclarationBlock, ...], frozenset[str]]:
    """Compose the header sections for one target.

    The base block is the interface at the profile minimum. Each later
    feature within version_ceiling becomes a block guarded by the version
    macro, and each selected extension a block guarded by its ENABLE macro.

    Args:
        registry: Built registry.
        namespace: Generated symbol namespace, e.g. "glb".
        version_ceiling: Highest feature rank to emit, or None for all.
        extension_names: Bare extension keys, already filtered to the registry.

    Returns:
        Tuple of (blocks in emission order, referenced types the registry
        does not declare).
    """
    profile = registry.profile
    unknown: set[str] = set()

    base = compose(registry, profile.min_version, ())
    unknown |= resolve_types(base, registry)
    blocks = [DeclarationBlock(interface=base)]

    macro = version_macro(namespace, profile)
    for feature in registry.ordered_features():
        if feature.rank <= profile.min_version:
            continue
        if version_ceiling is not None and feature.rank > version_ceiling:
            break
        interface = overlay_interface(feature)
        unknown |= resolve_types(interface, registry)
        blocks.append(
            DeclarationBlock(
                interface=interface,
                removed_enum_keys=frozenset(feature.removed_enum_keys),
                removed_command_keys=frozenset(feature.removed_command_keys),
                guard=f"#if defined({macro}) && {macro} >= {feature.rank}",
            )
        )

    for name in sorted(extension_names):
        overlay = registry.extensions.get(name)
        if overlay is None:
            continue
        interface = overlay_interface(overlay)
        unknown |= resolve_types(interface, registry)
        blocks.append(
            DeclarationBlock(
                interface=interface,
                guard=f"#if defined({enable_macro(namespace, profile, name)})",
                flag=extension_flag(namespace, profile, name),
            )
        )

    return tuple(blocks), frozenset(unknown)


def missing_enumerants(
    blocks: Sequence[DeclarationBlock], registry: Registry
) -> frozenset[str]:
    """Enumerant keys required by some block but absent from the registry."""
    missing: set[str] = set()
    for block in blocks:
        missing |= block.interface.enum_keys - registry.enumerants.keys()
    return frozenset(missing)


# ===--- Header emission ---=== #


def generate_declaration_lines(
    block: DeclarationBlock, registry: Registry, namespace: str
) -> list[str]:
    profile = registry.profile
    macro_ns = namespace.upper()
    lines: list[str] = []

    for key in sorted(block.interface.type_keys):
        guard = f"{macro_ns}_TYPE_{key.replace(' ', '_')}"
        lines.append(f"#ifndef {guard}")
        lines.append(f"#define {guard}")
        lines.append(registry.types[key].declaration_text)
        lines.append("#endif")

    lines.append("")
    for key in sorted(block.removed_enum_keys):
        lines.append(f"#undef {profile.enum_prefix}{key}")
    for key in sorted(block.interface.enum_keys):
        enumerant = registry.enumerants.get(key)
        if enumerant is None:
            continue
        lines.append(
            f"#define {profile.enum_prefix}{key} {format_enum_value(enumerant)}"
        )

    lines.append("")
    for key in sorted(block.removed_command_keys):
        lines.append(f"#undef {profile.command_prefix}{key}")
    for key in sorted(block.interface.command_keys):
        symbol = profile.command_prefix + key
        lines.append(f"#define {symbol} _{namespace}_{symbol}")
        lines.append(
            f"extern {format_function_pointer(registry.commands[key], symbol)};"
        )

    return lines


def generate_header_lines(
    registry: Registry,
    blocks: Sequence[DeclarationBlock],
    namespace: str,
) -> list[str]:
    profile = registry.profile
    include_guard = f"{namespace.upper()}_{profile.variant.upper()}_H"
    macro = version_macro(namespace, profile)

    lines = [
        f"#ifndef {include_guard}",
        f"#define {include_guard}",
        "#ifdef __cplusplus",
        'extern "C" {',
        "#endif",
    ]
    lines.extend(f"#include <{name}>" for name in profile.includes)
    lines.extend(f"#include <{name}>" for name in STANDARD_INCLUDES)

    # glx and wgl reference these without defining them.
    lines.append("#ifndef GL_BINDINGS_COMMON_TYPEDEFS")
    lines.append("#define GL_BINDINGS_COMMON_TYPEDEFS")
    lines.extend(decl for _, decl in COMMON_GL_TYPEDEFS)
    lines.append("#endif")

    lines.append(f"#ifndef {macro}")
    lines.append(f"#define {macro} {profile.min_version}")
    lines.append("#endif")

    for block in blocks:
        lines.append("")
        if block.guard:
            lines.append(block.guard)
        if block.flag:
            lines.append(f"extern bool {block.flag};")
        lines.extend(generate_declaration_lines(block, registry, namespace))
        if block.guard:
            lines.append("#endif")

    lines.append("")
    lines.append(f"bool {init_function_name(namespace, profile)}(int maj, int min);")
    lines.append("")
    lines.append("#ifdef __cplusplus")
    lines.append("}")
    lines.append("#endif")
    lines.append("#endif")
    return lines


# ===--- Source emission ---=== #

LOAD_PROC_SHIM: tuple[str, ...] = (
    "#ifndef _WIN32",
    "extern void (*glXGetProcAddress(const unsigned char *))(void);",
    "static inline void *LoadProcAddress(const char *name) "
    "{ return glXGetProcAddress((const unsigned char *)name); }",
    "#else",
    "#include <windows.h>",
    "#include <wingdi.h>",
    "static PROC LoadProcAddress(const char *name) {",
    "\tPROC addr = wglGetProcAddress((LPCSTR)name);",
    "\tif (addr) return addr;",
    '\telse return (PROC)GetProcAddress(GetModuleHandleA("OpenGL32.dll"), (LPCSTR)name);',
    "}",
    "#endif",
)


def extension_entries(
    contract: LoaderContract, namespace: str
) -> tuple[tuple[str, str], ...]:
    """(extension_string, flag_symbol) pairs fed to the extension matcher."""
    return tuple(
        (check.extension_string, extension_flag(namespace, contract.profile, check.name))
        for check in contract.extension_checks
    )


def generate_init_lines(
    registry: Registry,
    contract: LoaderContract,
    namespace: str,
    lookup: ExtensionLookup | None,
) -> list[str]:
    """Emit the C init(maj, min) implementing contract.

    Args:
        registry: Registry providing command signatures.
        contract: Loader contract to implement.
        namespace: Generated symbol namespace.
        lookup: Rendered extension lookup; required when the profile has
            enumerable extensions.

    Returns:
        Source lines of the init function.

    Raises:
        ValueError: If lookup is None for an API with enumerable extensions.
    """
    profile = contract.profile
    prefix = profile.command_prefix
    enumerable = contract.enumerable_extensions
    if enumerable and lookup is None:
        raise ValueError(f"{profile.api_name} loader needs an extension lookup")

    def symbols(keys: Iterable[str]) -> list[str]:
        return [prefix + key for key in keys]

    lines = [
        f"bool {init_function_name(namespace, profile)}(int maj, int min)",
        "{",
        "\tint req_version = maj * 10 + min;",
    ]
    if enumerable:
        lines.append("\tint actual_maj, actual_min, actual_version, i;")
        lines.append("\tint num_extensions;")
    lines.append(f"\tif (req_version < {contract.min_version}) return false;")
    lines.append(f"\tif (req_version > {contract.max_version}) return false;")

    for key in sorted(contract.load_commands):
        command = registry.commands[key]
        symbol = prefix + key
        cast = format_function_pointer(command, "")
        lines.append(f'\t{symbol} = ({cast}) LoadProcAddress("{symbol}");')

    if enumerable:
        lines.append("")
        lines.append(f"\tif (!{prefix}GetIntegerv || !{prefix}GetStringi) return false;")
        lines.append(f"\t{prefix}GetIntegerv(GL_NUM_EXTENSIONS, &num_extensions);")
        lines.append(f"\t{prefix}GetIntegerv(GL_MAJOR_VERSION, &actual_maj);")
        lines.append(f"\t{prefix}GetIntegerv(GL_MINOR_VERSION, &actual_min);")
        lines.append("\tactual_version = actual_maj * 10 + actual_min;")
        lines.append("\tif (actual_version < req_version) return false;")
        lines.append("\tfor (i = 0; i < num_extensions; i++) {")
        lines.append(
            f"\t\tconst char *extname = (const char *){prefix}GetStringi(GL_EXTENSIONS, i);"
        )
        lines.extend(lookup.loop_lines)
        lines.append("\t}")

    for check in contract.extension_checks:
        if not check.required_commands:
            continue
        flag = extension_flag(namespace, profile, check.name)
        members = format_conjunction(symbols(check.required_commands))
        lines.append("")
        lines.append(f"\t{flag} = {flag} && {members};")

    lines.append("")
    clauses = [format_conjunction(symbols(contract.base_commands))]
    for gate in contract.version_gates:
        gate_check = format_conjunction(symbols(gate.commands))
        clauses.append(f"((req_version < {gate.rank}) || ({gate_check}))")
    lines.append("\treturn " + "\n\t\t&& ".join(clauses) + ";")
    lines.append("}")
    return lines


def generate_source_lines(
    registry: Registry,
    contract: LoaderContract,
    namespace: str,
    header_name: str,
    lookup: ExtensionLookup | None,
) -> list[str]:
    profile = contract.profile
    lines = list(LOAD_PROC_SHIM)
    lines.append(f"#define {version_macro(namespace, profile)} {contract.max_version}")
    for check in contract.extension_checks:
        lines.append(f"#define {enable_macro(namespace, profile, check.name)}")
    lines.append(f'#include "{header_name}"')

    lines.append("")
    for key in sorted(contract.load_commands):
        symbol = profile.command_prefix + key
        lines.append(f"{format_function_pointer(registry.commands[key], symbol)} = NULL;")

    lines.append("")
    initial = "false" if contract.enumerable_extensions else "true"
    for check in contract.extension_checks:
        lines.append(f"bool {extension_flag(namespace, profile, check.name)} = {initial};")

    if contract.enumerable_extensions and lookup is not None:
        lines.extend(lookup.preamble_lines)

    lines.append("")
    lines.extend(generate_init_lines(registry, contract, namespace, lookup))
    return lines


# ===--- File writer ---=== #


@dataclass(frozen=True)
class WriteConfig:
    """Shared generation metadata embedded in every file preamble.

    Attributes:
        registry_label: Registry file name, e.g. "gl.xml".
        profile: Target API profile.
        namespace: Generated symbol namespace.
        target_version: Version ceiling, or None when every version is
            generated.
        extensions: Extension strings selected with --ext. Empty when
            all_extensions or no extensions.
        all_extensions: True when every supported extension was selected.
    """

    registry_label: str
    profile: ApiProfile
    namespace: str
    target_version: ApiVersion | None
    extensions: frozenset[str]
    all_extensions: bool = False


@dataclass(frozen=True)
class FileWriteResult:
    """Result of writing a single generated file.

    Attributes:
        filename: Filename written, e.g. "glb-glcore.h".
        path: Absolute path of the written file.
        line_count: Number of newline characters in the written content.
        byte_count: Number of bytes written (UTF-8 encoded).
    """

    filename: str
    path: Path
    line_count: int
    byte_count: int


@dataclass(frozen=True)
class PackageWriteResult:
    """Result of writing the header and source pair.

    Attributes:
        output_dir: Directory both files were written to.
        files: Header result first, then source.
    """

    output_dir: Path
    files: tuple[FileWriteResult, ...]


_HEADER_BORDER: str = " * x-------------------------------------------x"


def target_description(config: WriteConfig) -> str:
    version = (
        str(config.target_version) if config.target_version else "all versions"
    )
    return f"{config.profile.variant} {version}"


def format_file_header(config: WriteConfig) -> list[str]:
    """Return the comment block placed at the top of each generated file.

    Output format:
        /*
         * x-------------------------------------------x
         * | glcore bindings for C
         * | Generated by gl-bindings-gen
         * | Source: gl.xml
         * | Target: glcore 4.6
         * | Extensions: GL_ARB_sync, GL_KHR_debug
         * x-------------------------------------------x
         */

    The Extensions line reads "all" when all_extensions is set and is
    omitted when no extension was selected.

    Raises:
        ValueError: If config.registry_label is empty.
    """
    if not config.registry_label:
        raise ValueError("registry_label must not be empty")

    lines = [
        "/*",
        _HEADER_BORDER,
        f" * | {config.profile.variant} bindings for C",
        f" * | Generated by {TOOL_NAME}",
        f" * | Source: {config.registry_label}",
        f" * | Target: {target_description(config)}",
    ]
    if config.all_extensions:
        lines.append(" * | Extensions: all")
    elif config.extensions:
        lines.append(f" * | Extensions: {', '.join(sorted(config.extensions))}")
    lines.append(_HEADER_BORDER)
    lines.append(" */")
    return lines


def assemble_file_source(
    config: WriteConfig, filename: str, content_lines: Sequence[str]
) -> str:
    """Join the header comment and content_lines into one C source string.

    Raises:
        ValueError: If filename does not end with ".h" or ".c".
    """
    if not filename.endswith((".h", ".c")):
        raise ValueError(f"filename must end with '.h' or '.c', got {filename!r}")
    parts = format_file_header(config)
    if content_lines:
        parts.append("")
        parts.extend(content_lines)
    return "\n".join(parts) + "\n"


def write_file(
    output_dir: Path,
    config: WriteConfig,
    filename: str,
    content_lines: Sequence[str],
) -> FileWriteResult:
    """Write one generated file, creating output_dir if needed.

    Raises:
        ValueError: Propagated from assemble_file_source.
        OSError: Propagated directly if the filesystem write fails.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    content = assemble_file_source(config, filename, content_lines)
    file_path = output_dir / filename
    file_path.write_text(content, encoding="utf-8")
    resolved = file_path.resolve()
    return FileWriteResult(
        filename=filename,
        path=resolved,
        line_count=content.count("\n"),
        byte_count=len(resolved.read_bytes()),
    )


def write_bindings(
    output_dir: Path,
    config: WriteConfig,
    header_lines: Sequence[str],
    source_lines: Sequence[str],
) -> PackageWriteResult:
    """Write the header then the source file. No rollback on failure."""
    header_name, source_name = binding_filenames(config.namespace, config.profile)
    files = (
        write_file(output_dir, config, header_name, header_lines),
        write_file(output_dir, config, source_name, source_lines),
    )
    return PackageWriteResult(output_dir=Path(output_dir), files=files)


# ===--- Discovery commands ---=== #


@dataclass(frozen=True)
class VersionSummary:
    """One row of the --list-versions table.

    Attributes:
        version: Feature version.
        delta_enum_count: Enumerants the feature adds.
        delta_command_count: Commands the feature adds.
        removed_count: Enumerants plus commands the feature removes.
        cumulative_command_count: Commands visible at this version.
        is_minimum: True for the profile's minimum supported version.
    """

    version: ApiVersion
    delta_enum_count: int
    delta_command_count: int
    removed_count: int
    cumulative_command_count: int
    is_minimum: bool


@dataclass(frozen=True)
class ExtensionSummary:
    name: str
    extension_string: str
    enum_count: int
    command_count: int


@dataclass(frozen=True)
class ExtensionDetail:
    summary: ExtensionSummary
    supported: tuple[str, ...]
    enums: tuple[str, ...]
    commands: tuple[str, ...]


def gather_version_summaries(registry: Registry) -> list[VersionSummary]:
    summaries: list[VersionSummary] = []
    for feature in registry.ordered_features():
        cumulative = compose(registry, feature.rank, ())
        summaries.append(
            VersionSummary(
                version=ApiVersion.from_rank(feature.rank),
                delta_enum_count=len(feature.added_enum_keys),
                delta_command_count=len(feature.added_command_keys),
                removed_count=len(feature.removed_enum_keys)
                + len(feature.removed_command_keys),
                cumulative_command_count=len(cumulative.command_keys),
                is_minimum=feature.rank == registry.profile.min_version,
            )
        )
    return summaries


def _summarize_extension(registry: Registry, overlay: ExtensionOverlay) -> ExtensionSummary:
    return ExtensionSummary(
        name=overlay.name,
        extension_string=registry.profile.extension_string(overlay.name),
        enum_count=len(overlay.added_enum_keys),
        command_count=len(overlay.added_command_keys),
    )


def gather_extension_summaries(registry: Registry) -> list[ExtensionSummary]:
    """Return one summary per extension in the registry, sorted by name."""
    return [
        _summarize_extension(registry, registry.extensions[name])
        for name in sorted(registry.extensions)
    ]


def filter_extensions_by_text(
    summaries: list[ExtensionSummary],
    filter_text: str,
) -> list[ExtensionSummary]:
    """Return summaries whose extension string contains filter_text.

    Case-insensitive. Preserves input order. Empty filter_text keeps all.
    """
    if not filter_text:
        return list(summaries)
    needle = filter_text.lower()
    return [s for s in summaries if needle in s.extension_string.lower()]


def gather_extension_detail(registry: Registry, name: str) -> ExtensionDetail | None:
    """Return detail for bare extension key name, or None if not present."""
    overlay = registry.extensions.get(name)
    if overlay is None:
        return None
    profile = registry.profile
    return ExtensionDetail(
        summary=_summarize_extension(registry, overlay),
        supported=tuple(sorted(overlay.supported)),
        enums=tuple(profile.enum_prefix + key for key in sorted(overlay.added_enum_keys)),
        commands=tuple(
            profile.command_prefix + key for key in sorted(overlay.added_command_keys)
        ),
    )


def format_versions_table(summaries: list[VersionSummary], source_label: str) -> str:
    """Return the complete --list-versions output.

    Output format:

        Versions in gl.xml:

          1.0    +0 enums     +306 commands  -0 removed    (306 commands total)
          3.2    +18 enums    +19 commands   -411 removed  (316 commands total) [minimum]
    """
    lines = [f"Versions in {source_label}:", ""]
    for row in summaries:
        enum_col = f"+{row.delta_enum_count} enums"
        cmd_col = f"+{row.delta_command_count} commands"
        removed_col = f"-{row.removed_count} removed"
        line = (
            f"  {row.version}    {enum_col:<12} {cmd_col:<14} {removed_col:<13}"
            f"({row.cumulative_command_count} commands total)"
        )
        if row.is_minimum:
            line += " [minimum]"
        lines.append(line)
    lines.append("")
    return "\n".join(lines)


def format_extensions_table(
    summaries: list[ExtensionSummary], variant: str, source_label: str
) -> str:
    lines = [f"{len(summaries)} {variant} extensions in {source_label}:", ""]
    if not summaries:
        lines.append("")
        return "\n".join(lines)

    name_width = max(len(s.extension_string) for s in summaries)
    for s in summaries:
        enum_col = f"{s.enum_count} enums"
        lines.append(
            f"  {s.extension_string.ljust(name_width)}  {enum_col:<10} {s.command_count} cmds"
        )
    lines.append("")
    return "\n".join(lines)


def format_extension_detail(detail: ExtensionDetail) -> str:
    lines = [detail.summary.extension_string]
    lines.append(f"  Supported: {', '.join(detail.supported)}")
    lines.append("")
    lines.append(f"  Enums ({len(detail.enums)}):")
    lines.extend(f"    {name}" for name in detail.enums)
    lines.append("")
    lines.append(f"  Commands ({len(detail.commands)}):")
    lines.extend(f"    {name}" for name in detail.commands)
    lines.append("")
    return "\n".join(lines)


def run_discovery(config: DiscoveryConfig) -> None:
    """Execute the discovery command in config and print to stdout.

    Raises:
        SystemExit(1): When --info names an extension the registry lacks for
            this API variant.
        OSError, SchemaError: Propagated from load_registry.
    """
    profile = config.profile
    registry = load_registry(config.registry_xml, profile, config.core_only)
    source_label = config.registry_xml.name

    if config.command == "list-versions":
        output = format_versions_table(gather_version_summaries(registry), source_label)
        print(output, end="")

    elif config.command == "list-extensions":
        summaries = gather_extension_summaries(registry)
        if config.filter_text is not None:
            summaries = filter_extensions_by_text(summaries, config.filter_text)
        print(format_extensions_table(summaries, profile.variant, source_label), end="")

    elif config.command == "info":
        assert config.info_extension is not None
        detail = gather_extension_detail(
            registry, profile.extension_key(config.info_extension)
        )
        if detail is None:
            print(
                f"Error: extension '{config.info_extension}' not found for "
                f"{profile.variant} in {source_label}",
                file=sys.stderr,
            )
            raise SystemExit(1)
        print(format_extension_detail(detail), end="")


# ===--- Summary report ---=== #


@dataclass(frozen=True)
class GenerationCounts:
    enums: int
    commands: int
    types: int
    extensions: int
    version_gates: int


@dataclass(frozen=True)
class GenerationSummary:
    """Data for the post-generation console report.

    Attributes:
        target_label: Human-readable target from build_target_label.
        source_label: Registry file name.
        output_dir: Output directory as a string.
        counts: Declared item counts.
        matcher: Extension lookup used ("gperf", "inline" or "none").
        files: Write results, header first.
    """

    target_label: str
    source_label: str
    output_dir: str
    counts: GenerationCounts
    matcher: str
    files: tuple[FileWriteResult, ...]


def build_target_label(config: WriteConfig) -> str:
    """Three cases, in priority order: all extensions, listed, none."""
    label = target_description(config)
    if config.all_extensions:
        return f"{label} + all extensions"
    if config.extensions:
        return f"{label} + {', '.join(sorted(config.extensions))}"
    return label


def build_generation_counts(
    blocks: Sequence[DeclarationBlock], contract: LoaderContract
) -> GenerationCounts:
    enums: set[str] = set()
    types: set[str] = set()
    for block in blocks:
        enums |= block.interface.enum_keys
        types |= block.interface.type_keys
    return GenerationCounts(
        enums=len(enums),
        commands=len(contract.load_commands),
        types=len(types),
        extensions=len(contract.extension_checks),
        version_gates=len(contract.version_gates),
    )


def build_generation_summary(
    write_config: WriteConfig,
    counts: GenerationCounts,
    matcher: str,
    write_result: PackageWriteResult,
) -> GenerationSummary:
    return GenerationSummary(
        target_label=build_target_label(write_config),
        source_label=write_config.registry_label,
        output_dir=str(write_result.output_dir),
        counts=counts,
        matcher=matcher,
        files=write_result.files,
    )


def format_generation_summary(summary: GenerationSummary) -> str:
    """Render a GenerationSummary with exactly one trailing newline."""
    lines: list[str] = []
    lines.append(f"{summary.target_label.split()[0]} bindings generated:")
    lines.append("")
    lines.append(f"  Target:     {summary.target_label}")
    lines.append(f"  Source:     {summary.source_label}")
    lines.append(f"  Output:     {summary.output_dir}")
    lines.append("")
    lines.append("  Declared:")
    lines.append(f"    {'Enums:':<16}{summary.counts.enums:>6}")
    lines.append(f"    {'Commands:':<16}{summary.counts.commands:>6}")
    lines.append(f"    {'Types:':<16}{summary.counts.types:>6}")
    lines.append(f"    {'Extensions:':<16}{summary.counts.extensions:>6}")
    lines.append(f"    {'Version gates:':<16}{summary.counts.version_gates:>6}")
    lines.append("")
    lines.append(f"  Extension lookup: {summary.matcher}")
    lines.append("")
    lines.append("  Files written:")
    for file_result in summary.files:
        line_str = f"{file_result.line_count:>6,} lines"
        lines.append(f"    {file_result.filename:<28} {line_str}")
    total_lines = sum(f.line_count for f in summary.files)
    lines.append("")
    lines.append(f"  Total: {total_lines:,} lines across {len(summary.files)} files")
    lines.append("")
    return "\n".join(lines)


def print_generation_summary(summary: GenerationSummary) -> None:
    print(format_generation_summary(summary), end="")


# ===--- Generate pipeline ---=== #


def select_extensions(registry: Registry, config: GenerateConfig) -> tuple[str, ...]:
    """Map the configured extension selection to bare registry keys.

    No --ext means every extension the registry holds for this variant.
    Requested names the registry lacks are reported and skipped.
    """
    if config.no_extensions:
        return ()
    if not config.extensions:
        return tuple(sorted(registry.extensions))

    selected: list[str] = []
    for full_name in sorted(config.extensions):
        key = registry.profile.extension_key(full_name)
        if key in registry.extensions:
            selected.append(key)
        else:
            print(
                f"warning: {full_name} is not available for "
                f"{registry.profile.variant}; ignored",
                file=sys.stderr,
            )
    return tuple(selected)


def check_version_ceiling(registry: Registry, version: ApiVersion | None) -> None:
    """Warn when the requested ceiling is above every feature the registry has."""
    if version is None or not registry.features:
        return
    highest = max(registry.features)
    if version.rank > highest:
        print(
            f"warning: {registry.profile.api_name} {version} is above the newest "
            f"version in the registry; generating {ApiVersion.from_rank(highest)}",
            file=sys.stderr,
        )


def build_write_config(config: GenerateConfig, selected: Sequence[str]) -> WriteConfig:
    profile = config.profile
    all_extensions = not config.no_extensions and not config.extensions
    return WriteConfig(
        registry_label=config.registry_xml.name,
        profile=profile,
        namespace=config.namespace,
        target_version=config.version,
        extensions=(
            frozenset()
            if all_extensions
            else frozenset(profile.extension_string(name) for name in selected)
        ),
        all_extensions=all_extensions,
    )


def run_generate(config: GenerateConfig) -> PackageWriteResult:
    """Execute the generation pipeline for a GenerateConfig.

    parse -> build registry -> select extensions -> declaration blocks ->
    loader contract -> extension lookup -> emit -> write -> summary.

    Returns:
        PackageWriteResult describing both files written.

    Raises:
        OSError: Registry not readable or filesystem write failure.
        SchemaError: Malformed registry.
    """
    profile = config.profile
    print(
        f"Generating bindings for {profile.api_name} "
        f"with namespace '{config.namespace}'"
    )
    print(f"Parsing: {config.registry_xml}")
    registry = load_registry(config.registry_xml, profile, config.core_only)
    for message in registry.warnings:
        print(f"warning: {message}", file=sys.stderr)
    print(
        f"  Registry: {len(registry.enumerants)} enums, "
        f"{len(registry.commands)} commands, {len(registry.types)} types, "
        f"{len(registry.features)} versions, {len(registry.extensions)} extensions"
    )

    check_version_ceiling(registry, config.version)
    selected = select_extensions(registry, config)
    ceiling = config.version.rank if config.version else None

    blocks, unknown_types = build_declaration_blocks(
        registry, config.namespace, ceiling, selected
    )
    for name in sorted(unknown_types):
        print(f"warning: type {name} is referenced but never declared", file=sys.stderr)
    for key in sorted(missing_enumerants(blocks, registry)):
        print(
            f"warning: {profile.enum_prefix}{key} is required but never defined",
            file=sys.stderr,
        )

    contract = build_loader_contract(registry, ceiling, selected)
    print(
        f"  Loader: {len(contract.load_commands)} commands, "
        f"{len(contract.version_gates)} version gates, "
        f"{len(contract.extension_checks)} extension checks"
    )

    lookup = None
    if contract.enumerable_extensions:
        lookup = render_extension_lookup(
            select_extension_matcher(config.hasher),
            extension_entries(contract, config.namespace),
        )

    header_name, _ = binding_filenames(config.namespace, profile)
    header_lines = generate_header_lines(registry, blocks, config.namespace)
    source_lines = generate_source_lines(
        registry, contract, config.namespace, header_name, lookup
    )

    write_config = build_write_config(config, selected)
    result = write_bindings(config.output_dir, write_config, header_lines, source_lines)
    print(f"  Written: {len(result.files)} files to {result.output_dir}")

    summary = build_generation_summary(
        write_config,
        build_generation_counts(blocks, contract),
        lookup.matcher if lookup is not None else "none",
        result,
    )
    print_generation_summary(summary)
    return result


# ===--- Main ---=== #


def main(argv: list[str] | None = None) -> None:
    try:
        config = build_config(argv)
    except ConfigError as err:
        print(f"Config error [{err.code}]: {err.message}", file=sys.stderr)
        if err.suggestion:
            print(f"Hint: {err.suggestion}", file=sys.stderr)
        raise SystemExit(1) from err

    try:
        if isinstance(config, DiscoveryConfig):
            run_discovery(config)
        else:
            run_generate(config)
    except SchemaError as err:
        print(f"Error: {err}", file=sys.stderr)
        raise SystemExit(1) from err
    except OSError as err:
        print(f"Error: {err}", file=sys.stderr)
        raise SystemExit(1) from err
    except (RuntimeError, ValueError) as err:
        print(f"Internal error: {err}", file=sys.stderr)
        raise SystemExit(1) from err


if __name__ == "__main__":
    main()
