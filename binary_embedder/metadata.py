"""Workspace metadata.

Thin wrapper around ``cargo metadata --format-version 1``. Only the handful of
fields the pipeline needs are kept: packages, their targets, the root package and
the workspace ``target`` directory.
"""

from dataclasses import dataclass
import json
import logging
import pathlib
import subprocess
from typing import Any

from binary_embedder.errors import MetadataError


@dataclass(frozen=True, slots=True)
class Unit:
    """A buildable target inside a package.

    :ivar name: Target name (``--bin`` value for bin targets).
    :ivar kind: Target kinds reported by cargo (e.g. ``("bin",)``).
    :ivar src_path: Path to the target's root source file.
    """

    name: str
    kind: tuple[str, ...]
    src_path: pathlib.Path

    @property
    def is_bin(self) -> bool:
        return "bin" in self.kind


@dataclass(frozen=True, slots=True)
class Package:
    id: str
    name: str
    manifest_path: pathlib.Path
    targets: tuple[Unit, ...]


@dataclass(frozen=True, slots=True)
class WorkspaceMetadata:
    """Snapshot of the workspace as reported by cargo.

    :ivar packages: Workspace packages.
    :ivar target_directory: Cargo's build output directory.
    :ivar workspace_root: Directory holding the workspace's root ``Cargo.toml``.
    :ivar resolve_root: Root package id from the resolve graph, if one was reported.
    """

    packages: tuple[Package, ...]
    target_directory: pathlib.Path
    workspace_root: pathlib.Path
    resolve_root: str | None = None

    def root_package(self) -> Package | None:
        """Return the package the workspace is rooted at.

        With a resolve graph this is the package named by ``resolve.root``.
        Without one it is the package whose manifest sits at the
        workspace root. Virtual workspaces have neither.

        :returns: The root package, or ``None``.
        """

        if self.resolve_root is not None:
            for pkg in self.packages:
                if pkg.id == self.resolve_root:
                    return pkg
            return None

        root_manifest: pathlib.Path = self.workspace_root / "Cargo.toml"
        for pkg in self.packages:
            if pkg.manifest_path == root_manifest:
                return pkg
        return None


def parse_metadata(payload: dict[str, Any]) -> WorkspaceMetadata:
    """Build a :class:`WorkspaceMetadata` from decoded ``cargo metadata`` JSON.

    :param payload: Decoded JSON object.
    :returns: Metadata snapshot.
    :raises MetadataError: If required keys are missing or malformed.
    """

    try:
        packages: list[Package] = []
        for raw_pkg in payload["packages"]:
            units: tuple[Unit, ...] = tuple(
                Unit(
                    name=raw_target["name"],
                    kind=tuple(raw_target["kind"]),
                    src_path=pathlib.Path(raw_target["src_path"]),
                )
                for raw_target in raw_pkg["targets"]
            )
            packages.append(
                Package(
                    id=raw_pkg["id"],
                    name=raw_pkg["name"],
                    manifest_path=pathlib.Path(raw_pkg["manifest_path"]),
                    targets=units,
                )
            )

        resolve: dict[str, Any] | None = payload.get("resolve")
        resolve_root: str | None = None
        if resolve is not None:
            resolve_root = resolve.get("root")

        return WorkspaceMetadata(
            packages=tuple(packages),
            target_directory=pathlib.Path(payload["target_directory"]),
            workspace_root=pathlib.Path(payload["workspace_root"]),
            resolve_root=resolve_root,
        )
    except (AttributeError, KeyError, TypeError) as e:
        raise MetadataError(f"Malformed cargo metadata: missing or invalid field {e}") from e


def load_workspace_metadata(
    manifest_path: pathlib.Path | None,
    cwd: pathlib.Path,
    *,
    logger: logging.Logger | None = None,
) -> WorkspaceMetadata:
    """Run ``cargo metadata`` and parse its output.

    :param manifest_path: Optional ``Cargo.toml`` path; cargo searches from ``cwd`` otherwise.
    :param cwd: Working directory for cargo.
    :param logger: Optional logger for debug output.
    :returns: Metadata snapshot.
    :raises MetadataError: If cargo cannot run, fails, or prints invalid JSON.
    """

    # resolve.root (absent under --no-deps) names the package of the manifest in effect.
    cmd: list[str] = ["cargo", "metadata", "--format-version", "1"]
    if manifest_path is not None:
        cmd.extend(["--manifest-path", str(manifest_path)])
    if logger is not None and logger.isEnabledFor(logging.DEBUG) is True:
        logger.debug(f"binary-embedder: running: {' '.join(cmd)} (cwd={cwd})")

    try:
        proc = subprocess.run(cmd, cwd=cwd, capture_output=True, text=True, check=False)
    except OSError as e:
        raise MetadataError(
            f"Failed to run cargo metadata: {e}",
            hint="Is cargo installed and on PATH?",
        ) from e

    if proc.returncode != 0:
        raise MetadataError(
            f"cargo metadata failed (exit={proc.returncode})",
            context={"stderr": proc.stderr.strip()},
        )

    try:
        payload: Any = json.loads(proc.stdout)
    except json.JSONDecodeError as e:
        raise MetadataError(f"cargo metadata printed invalid JSON: {e}") from e
    if isinstance(payload, dict) is False:
        raise MetadataError("cargo metadata printed a non-object JSON document")

    return parse_metadata(payload)
