import pytest

import glgen


def test_api_version_rank_and_str() -> None:
    version = glgen.ApiVersion(4, 6)

    assert version.rank == 46
    assert str(version) == "4.6"


@pytest.mark.parametrize("rank", [10, 14, 32, 46])
def test_api_version_from_rank_inverts_rank(rank: int) -> None:
    assert glgen.ApiVersion.from_rank(rank).rank == rank


def test_api_version_ordering_follows_rank() -> None:
    assert glgen.ApiVersion(3, 3) < glgen.ApiVersion(4, 0)
    assert glgen.ApiVersion(1, 4) > glgen.ApiVersion(1, 3)


@pytest.mark.parametrize(
    ("api", "raw", "expected"),
    [
        (glgen.ApiKind.GL, "3.2", glgen.ApiVersion(3, 2)),
        (glgen.ApiKind.GL, "4.6", glgen.ApiVersion(4, 6)),
        (glgen.ApiKind.GLX, "1.4", glgen.ApiVersion(1, 4)),
        (glgen.ApiKind.WGL, "1.0", glgen.ApiVersion(1, 0)),
    ],
)
def test_parse_version_accepts_versions_at_or_above_minimum(
    api: glgen.ApiKind, raw: str, expected: glgen.ApiVersion
) -> None:
    assert glgen.parse_version(raw, glgen.API_PROFILES[api]) == expected


@pytest.mark.parametrize(
    ("api", "raw"),
    [
        (glgen.ApiKind.GL, "3.1"),
        (glgen.ApiKind.GL, "1.0"),
        (glgen.ApiKind.GLX, "1.3"),
    ],
)
def test_parse_version_rejects_versions_below_minimum(
    api: glgen.ApiKind, raw: str
) -> None:
    with pytest.raises(glgen.ConfigError) as exc_info:
        glgen.parse_version(raw, glgen.API_PROFILES[api])

    assert exc_info.value.code == "VERSION_BELOW_MINIMUM"
    assert exc_info.value.suggestion is not None
    assert "--version" in exc_info.value.suggestion


@pytest.mark.parametrize("raw", ["", "4", "4.", ".6", "v4.6", "4.6.1", "4.10"])
def test_parse_version_rejects_malformed_text(raw: str) -> None:
    with pytest.raises(glgen.ConfigError) as exc_info:
        glgen.parse_version(raw, glgen.API_PROFILES[glgen.ApiKind.GL])

    assert exc_info.value.code == "INVALID_VERSION"
