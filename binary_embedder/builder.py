"""Bundle builder.

This module drives the whole pipeline:

- It asks cargo for workspace metadata and resolves the bin target.
- It builds a size-optimized release binary with ``cargo`` (or ``cross``).
- It optionally compresses the binary in place with ``upx``.
- It embeds the binary into a Rust or Python source file and writes it out.
"""

from collections.abc import Callable, Sequence
import logging
import pathlib
import subprocess
import time
from typing import Protocol

from binary_embedder.embed import embed_binary
from binary_embedder.errors import ArtifactIOError, BuildError, CompressionError, MetadataError
from binary_embedder.metadata import WorkspaceMetadata, load_workspace_metadata
from binary_embedder.target import BuildConfig, ResolvedTarget, resolve_target


# Applied to every build.
_FIXED_PROFILE_FLAGS: tuple[str, ...] = (
    "--config=profile.release.codegen-units=1",
    "--config=profile.release.lto=true",
    "--config=profile.release.strip=true",
)

_PANIC_ABORT_FLAGS: tuple[str, ...] = (
    "-Zbuild-std=std,panic_abort",
    "-Zbuild-std-features=panic_immediate_abort",
    '--config=profile.release.panic="abort"',
)

_OPT_SIZE_FLAG: str = '--config=profile.release.opt-level="s"'

_UPX_FLAGS: tuple[str, ...] = ("--best", "--lzma", "-qq")

_SIZE_UNITS: tuple[str, ...] = ("KiB", "MiB", "GiB", "TiB")


class CommandRunner(Protocol):
    def __call__(self, cmd: Sequence[str], *, cwd: pathlib.Path | None = None) -> int:
        """Run a command to completion and return its exit status.

        :raises OSError: If the command cannot be started.
        """


class SubprocessRunner:
    """Run commands with :func:`subprocess.run`, output going straight to the terminal."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger

    def __call__(self, cmd: Sequence[str], *, cwd: pathlib.Path | None = None) -> int:
        if self._logger is not None and self._logger.isEnabledFor(logging.DEBUG) is True:
            self._logger.debug(f"binary-embedder: running: {' '.join(cmd)} (cwd={cwd})")
        proc = subprocess.run(list(cmd), cwd=cwd, check=False)
        return proc.returncode


def format_size(num_bytes: int) -> str:
    """Render a byte count with a binary unit (``512 B``, ``1.5 KiB``).

    :param num_bytes: Size in bytes.
    :returns: Human-readable size.
    """

    if num_bytes < 1024:
        return f"{num_bytes} B"
    value: float = float(num_bytes)
    unit: str = _SIZE_UNITS[0]
    for unit in _SIZE_UNITS:
        value /= 1024
        if value < 1024:
            break
    return f"{value:.1f} {unit}"


def file_size(path: pathlib.Path) -> int:
    """Return a file's size.

    :param path: File path.
    :returns: Size in bytes.
    :raises ArtifactIOError: If the file cannot be stat'ed.
    """

    try:
        return path.stat().st_size
    except OSError as e:
        raise ArtifactIOError(f"Failed to stat {path}: {e}") from e


def compile_command(config: BuildConfig, target: ResolvedTarget) -> list[str]:
    """Build the cargo/cross command line for a release build.

    :param config: Run configuration.
    :param target: Resolved bin target.
    :returns: Command argv.
    """

    cmd: list[str] = [
        "cross" if config.use_cross is True else "cargo",
        "+nightly",
        "build",
        f"--target={config.target}",
    ]
    if config.panic_unwind is False:
        # The prebuilt std assumes unwinding, so abort needs std rebuilt.
        cmd.extend(_PANIC_ABORT_FLAGS)
    if config.no_opt_size is False:
        cmd.append(_OPT_SIZE_FLAG)
    cmd.extend(_FIXED_PROFILE_FLAGS)
    cmd.extend(["--release", "--bin", target.bin_name])
    return cmd


def compile_target(config: BuildConfig, target: ResolvedTarget, *, runner: CommandRunner) -> None:
    """Build the resolved bin target.

    :param config: Run configuration.
    :param target: Resolved bin target.
    :param runner: Command runner.
    :raises BuildError: If the build tool cannot start or exits non-zero.
    """

    cmd: list[str] = compile_command(config, target)
    try:
        status: int = runner(cmd, cwd=target.compile_dir)
    except OSError as e:
        raise BuildError(
            f"Failed to start {cmd[0]}: {e}",
            hint=f"Is {cmd[0]} installed and on PATH?",
        ) from e
    if status != 0:
        raise BuildError(f"Build failed (exit={status}): {' '.join(cmd)}")


def compress_artifact(target: ResolvedTarget, *, runner: CommandRunner) -> None:
    """Compress the built binary in place with ``upx``.

    :param target: Resolved bin target.
    :param runner: Command runner.
    :raises CompressionError: If upx cannot start or exits non-zero.
    """

    cmd: list[str] = ["upx", *_UPX_FLAGS, str(target.binary_path)]
    try:
        status: int = runner(cmd, cwd=None)
    except OSError as e:
        raise CompressionError(
            f"Failed to start upx: {e}",
            hint="Install upx or pass --no-upx.",
        ) from e
    if status != 0:
        raise CompressionError(f"upx failed (exit={status}): {' '.join(cmd)}")


def write_output(output_path: pathlib.Path, code: str) -> None:
    """Write the generated source, replacing any existing file.

    :param output_path: Destination path.
    :param code: Generated source text.
    :raises ArtifactIOError: If the file cannot be written.
    """

    try:
        output_path.write_bytes(code.encode("utf-8"))
    except OSError as e:
        raise ArtifactIOError(f"Failed to write {output_path}: {e}") from e


def build_single_file(
    config: BuildConfig,
    *,
    runner: CommandRunner | None = None,
    load_metadata: Callable[[BuildConfig], WorkspaceMetadata] | None = None,
    logger: logging.Logger | None = None,
) -> str:
    """Build the bin target and write the self-extracting source file.

    :param config: Run configuration.
    :param runner: Command runner for cargo/cross/upx (defaults to subprocess).
    :param load_metadata: Metadata loader (defaults to ``cargo metadata`` in the CWD).
    :param logger: Optional logger for progress output.
    :returns: The generated source text.
    :raises BinaryEmbedderError: If any stage fails.
    """

    if logger is None:
        logger = logging.getLogger("binary_embedder")
    if runner is None:
        runner = SubprocessRunner(logger)
    if load_metadata is None:
        load_metadata = _default_metadata_loader(logger)

    t_total0: float = time.perf_counter()
    logger.info(f"binary-embedder: target={config.target} language={config.dialect.value}")

    metadata: WorkspaceMetadata = load_metadata(config)
    target: ResolvedTarget = resolve_target(config, metadata)
    logger.info(f"binary-embedder: bin={target.bin_name} compile_dir={target.compile_dir}")
    if logger.isEnabledFor(logging.DEBUG) is True:
        logger.debug(f"binary-embedder: binary_path={target.binary_path}")

    compile_target(config, target, runner=runner)
    logger.info(f"binary-embedder: built binary size: {format_size(file_size(target.binary_path))}")

    if config.no_upx is False:
        compress_artifact(target, runner=runner)
        logger.info(
            f"binary-embedder: compressed binary size: {format_size(file_size(target.binary_path))}"
        )

    code: str = embed_binary(config, target)
    logger.info(f"binary-embedder: bundled code size: {format_size(len(code.encode('utf-8')))}")

    write_output(config.output_path, code)
    t_total1: float = time.perf_counter()
    logger.info(f"binary-embedder: wrote code to {config.output_path} in {t_total1 - t_total0:.2f}s")
    return code


def _default_metadata_loader(logger: logging.Logger) -> Callable[[BuildConfig], WorkspaceMetadata]:
    def load(config: BuildConfig) -> WorkspaceMetadata:
        try:
            cwd: pathlib.Path = pathlib.Path.cwd()
        except OSError as e:
            raise MetadataError(f"Failed to get CWD: {e}") from e
        return load_workspace_metadata(config.manifest_path, cwd, logger=logger)

    return load
