"""Build configuration and bin target resolution.

- :class:`BuildConfig` holds every user-facing knob of a run.
- :func:`resolve_target` picks the single bin target to build from workspace
  metadata and derives where cargo will put the release binary.
"""

from dataclasses import dataclass
import enum
import pathlib

from binary_embedder.errors import ResolutionError
from binary_embedder.metadata import Package, Unit, WorkspaceMetadata


DEFAULT_TRIPLE: str = "x86_64-unknown-linux-gnu"
DEFAULT_OUTPUT: str = "main.rs"


class Dialect(enum.Enum):
    """Language of the generated file."""

    RUST = "Rust"
    PYTHON = "Python"

    @classmethod
    def parse(cls, value: str) -> "Dialect":
        """Parse a dialect name case-insensitively.

        :param value: ``rust`` or ``python`` in any case.
        :returns: Matching dialect.
        :raises ValueError: If the name is unknown.
        """

        lowered: str = value.lower()
        for dialect in cls:
            if dialect.value.lower() == lowered:
                return dialect
        raise ValueError(f"Could not parse language {value!r}; expected Rust or Python.")


@dataclass(frozen=True, slots=True)
class BuildConfig:
    """Options for a single run.

    :ivar manifest_path: Optional path to ``Cargo.toml``.
    :ivar output_path: Where the generated source file is written.
    :ivar bin_name: Name of the bin target to compile.
    :ivar target: Compilation target triple.
    :ivar use_cross: Build with ``cross`` instead of ``cargo``.
    :ivar panic_unwind: Keep unwinding panics (otherwise ``panic=abort``).
    :ivar no_opt_size: Do not add ``opt-level="s"``.
    :ivar no_upx: Skip compressing the binary with ``upx``.
    :ivar dialect: Language of the generated file.
    """

    manifest_path: pathlib.Path | None = None
    output_path: pathlib.Path = pathlib.Path(DEFAULT_OUTPUT)
    bin_name: str | None = None
    target: str = DEFAULT_TRIPLE
    use_cross: bool = False
    panic_unwind: bool = False
    no_opt_size: bool = False
    no_upx: bool = False
    dialect: Dialect = Dialect.RUST


@dataclass(frozen=True, slots=True)
class ResolvedTarget:
    """The bin target selected for this run.

    :ivar bin_name: Bin target name.
    :ivar compile_dir: Directory cargo is invoked from (the package's manifest dir).
    :ivar src_path: Root source file of the bin target.
    :ivar binary_path: Expected release binary path for the configured triple.
    """

    bin_name: str
    compile_dir: pathlib.Path
    src_path: pathlib.Path
    binary_path: pathlib.Path


def target_os(triple: str) -> str | None:
    """Return the OS component of a target triple.

    The triple is split on ``-``; the third component names the OS
    (``x86_64-pc-windows-msvc`` -> ``windows``).

    :param triple: Target triple.
    :returns: OS component, or ``None`` for triples with fewer than three parts.
    """

    parts: list[str] = triple.split("-")
    if len(parts) < 3:
        return None
    return parts[2]


def resolve_target(config: BuildConfig, metadata: WorkspaceMetadata) -> ResolvedTarget:
    """Select the bin target to build.

    :param config: Run configuration.
    :param metadata: Workspace metadata snapshot.
    :returns: Resolved target.
    :raises ResolutionError: If there is no root package, no matching bin target,
        or more than one candidate.
    """

    package: Package | None = metadata.root_package()
    if package is None:
        raise ResolutionError(
            "Failed to find root package",
            hint="Point --manifest-path at a package's Cargo.toml, not a virtual workspace.",
            context={"workspace_root": str(metadata.workspace_root)},
        )

    candidates: list[Unit] = []
    for unit in package.targets:
        if unit.is_bin is False:
            continue
        if config.bin_name is not None and unit.name != config.bin_name:
            continue
        candidates.append(unit)

    if len(candidates) == 0:
        wanted: str = "bin target" if config.bin_name is None else f"bin target {config.bin_name!r}"
        raise ResolutionError(
            f"Failed to find {wanted} in package {package.name!r}",
            context={"manifest_path": str(package.manifest_path)},
        )
    if len(candidates) > 1:
        names: str = ", ".join(unit.name for unit in candidates)
        raise ResolutionError(
            f"Package {package.name!r} has multiple bin targets: {names}",
            hint="Select one with --bin.",
        )

    chosen: Unit = candidates[0]
    return ResolvedTarget(
        bin_name=chosen.name,
        compile_dir=package.manifest_path.parent,
        src_path=chosen.src_path,
        binary_path=metadata.target_directory / config.target / "release" / chosen.name,
    )
