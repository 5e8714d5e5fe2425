"""Shared test fixtures."""

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from binary_embedder.metadata import Package, Unit, WorkspaceMetadata


@dataclass
class FakeRunner:
    """Records commands instead of running them.

    ``statuses`` maps an executable name to the exit status it returns.
    ``on_run`` lets a test emulate side effects such as cargo writing the binary.
    """

    statuses: dict[str, int] = field(default_factory=dict)
    missing: set[str] = field(default_factory=set)
    on_run: Callable[[list[str]], None] | None = None
    calls: list[tuple[list[str], Path | None]] = field(default_factory=list)

    def __call__(self, cmd: Sequence[str], *, cwd: Path | None = None) -> int:
        argv = list(cmd)
        self.calls.append((argv, cwd))
        if argv[0] in self.missing:
            raise FileNotFoundError(2, "No such file or directory", argv[0])
        if self.on_run is not None:
            self.on_run(argv)
        return self.statuses.get(argv[0], 0)


def make_metadata(
    root: Path,
    units: Sequence[tuple[str, tuple[str, ...]]] = (("app", ("bin",)),),
    *,
    root_package: bool = True,
) -> WorkspaceMetadata:
    targets = tuple(
        Unit(name=name, kind=kind, src_path=root / "src" / "bin" / f"{name}.rs")
        for name, kind in units
    )
    manifest = root / "Cargo.toml" if root_package else root / "member" / "Cargo.toml"
    package = Package(
        id="path+file:///ws#app@0.1.0",
        name="app",
        manifest_path=manifest,
        targets=targets,
    )
    return WorkspaceMetadata(
        packages=(package,),
        target_directory=root / "target",
        workspace_root=root,
    )


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()
