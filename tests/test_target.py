from pathlib import Path

import pytest

from binary_embedder.errors import ResolutionError
from binary_embedder.target import BuildConfig, Dialect, resolve_target, target_os
from conftest import make_metadata


def test_resolves_single_bin_and_derives_release_path(tmp_path: Path) -> None:
    metadata = make_metadata(tmp_path, units=(("app", ("bin",)), ("applib", ("lib",))))

    target = resolve_target(BuildConfig(), metadata)

    assert target.bin_name == "app"
    assert target.compile_dir == tmp_path
    assert target.src_path == tmp_path / "src" / "bin" / "app.rs"
    assert target.binary_path == (
        tmp_path / "target" / "x86_64-unknown-linux-gnu" / "release" / "app"
    )


def test_binary_path_follows_configured_triple(tmp_path: Path) -> None:
    metadata = make_metadata(tmp_path)

    target = resolve_target(BuildConfig(target="x86_64-pc-windows-gnu"), metadata)

    assert target.binary_path == tmp_path / "target" / "x86_64-pc-windows-gnu" / "release" / "app"


def test_named_bin_is_selected_among_several(tmp_path: Path) -> None:
    metadata = make_metadata(tmp_path, units=(("a", ("bin",)), ("b", ("bin",))))

    target = resolve_target(BuildConfig(bin_name="b"), metadata)

    assert target.bin_name == "b"


def test_multiple_bins_without_selection_is_an_error(tmp_path: Path) -> None:
    metadata = make_metadata(tmp_path, units=(("a", ("bin",)), ("b", ("bin",))))

    with pytest.raises(ResolutionError) as excinfo:
        resolve_target(BuildConfig(), metadata)

    assert "a, b" in str(excinfo.value)
    assert "--bin" in str(excinfo.value)


def test_no_bin_targets_is_an_error(tmp_path: Path) -> None:
    metadata = make_metadata(tmp_path, units=(("applib", ("lib",)), ("bench", ("bench",))))

    with pytest.raises(ResolutionError, match="Failed to find bin target"):
        resolve_target(BuildConfig(), metadata)


def test_unknown_bin_name_is_an_error(tmp_path: Path) -> None:
    metadata = make_metadata(tmp_path)

    with pytest.raises(ResolutionError, match="'other'"):
        resolve_target(BuildConfig(bin_name="other"), metadata)


def test_missing_root_package_is_an_error(tmp_path: Path) -> None:
    metadata = make_metadata(tmp_path, root_package=False)

    with pytest.raises(ResolutionError, match="Failed to find root package"):
        resolve_target(BuildConfig(), metadata)


@pytest.mark.parametrize(
    ("triple", "expected"),
    [
        ("x86_64-unknown-linux-gnu", "linux"),
        ("x86_64-pc-windows-msvc", "windows"),
        ("aarch64-apple-darwin", "darwin"),
        ("wasm32-wasi", None),
        ("native", None),
    ],
)
def test_target_os_reads_third_component(triple: str, expected: str | None) -> None:
    assert target_os(triple) == expected


@pytest.mark.parametrize("value", ["Rust", "rust", "RUST", "Python", "pYtHoN"])
def test_dialect_parse_is_case_insensitive(value: str) -> None:
    assert Dialect.parse(value).value.lower() == value.lower()


def test_dialect_parse_rejects_unknown_names() -> None:
    with pytest.raises(ValueError, match="Could not parse language"):
        Dialect.parse("go")


def test_build_config_defaults() -> None:
    config = BuildConfig()

    assert config.output_path == Path("main.rs")
    assert config.target == "x86_64-unknown-linux-gnu"
    assert config.dialect is Dialect.RUST
    assert config.no_upx is False
