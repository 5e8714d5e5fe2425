"""Embed a compiled binary into a self-extracting source file.

The binary is base64-encoded and substituted into a dialect template together
with a content-addressed file name and the original source text. Running the
generated file writes the binary to the temp directory (once per content id)
and executes it with the caller's arguments.
"""

from collections.abc import Callable
from dataclasses import dataclass
import base64
import hashlib
import pathlib
import textwrap

from binary_embedder.errors import ArtifactIOError
from binary_embedder.target import BuildConfig, Dialect, ResolvedTarget, target_os


BINARY_MARKER: str = "{{BINARY}}"
NAME_MARKER: str = "{{NAME}}"
SOURCE_MARKER: str = "{{SOURCE_CODE}}"

SOURCE_NOT_FOUND: str = "SOURCE CODE NOT FOUND"

CONTENT_ID_LENGTH: int = 8


@dataclass(frozen=True, slots=True)
class DialectProfile:
    """Everything that differs between output dialects.

    :ivar template: Template text with one occurrence of each marker.
    :ivar encode: Payload encoder (raw bytes -> base64 text).
    :ivar comment_prefix: Line comment token the source text is wrapped in.
    """

    template: str
    encode: Callable[[bytes], str]
    comment_prefix: str


def content_id(data: bytes) -> str:
    """Short content identifier: first 8 upper-case hex digits of SHA-256.

    :param data: Raw artifact bytes.
    :returns: Identifier string.
    """

    return hashlib.sha256(data).hexdigest().upper()[0:CONTENT_ID_LENGTH]


def runtime_name(identifier: str, triple: str) -> str:
    """File name the generated launcher extracts the binary to.

    :param identifier: Content identifier.
    :param triple: Compilation target triple.
    :returns: ``bin<identifier>``, with ``.exe`` for Windows triples.
    """

    ext: str = ".exe" if target_os(triple) == "windows" else ""
    return f"bin{identifier}{ext}"


def encode_padded(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def encode_unpadded(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii").rstrip("=")


def read_source_text(path: pathlib.Path) -> str:
    """Read the bin target's source for provenance.

    Falls back to :data:`SOURCE_NOT_FOUND` when the file cannot be read; this is
    the only step of the pipeline allowed to degrade instead of failing.

    :param path: Source file path.
    :returns: Source text with trailing whitespace removed.
    """

    try:
        text: str = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return SOURCE_NOT_FOUND
    return text.rstrip()


def comment_out(text: str, prefix: str) -> str:
    """Turn every line of ``text`` into a line comment.

    A line comment ends at the newline, so nothing inside the text (``*/``,
    triple quotes, string literals) can close it early.

    :param text: Source text.
    :param prefix: Line comment token (``//`` or ``#``).
    :returns: Commented text.
    """

    lines: list[str] = []
    for line in text.splitlines():
        lines.append(f"{prefix} {line}" if line else prefix)
    return "\n".join(lines)


def render_template(template: str, *, payload: str, name: str, source: str) -> str:
    """Substitute the three markers, each exactly once.

    Order is payload, name, source. The source goes last so marker look-alikes
    inside it are left untouched.

    :param template: Dialect template.
    :param payload: Encoded binary.
    :param name: Runtime file name.
    :param source: Original source text.
    :returns: Rendered source file.
    """

    code: str = template
    code = code.replace(BINARY_MARKER, payload, 1)
    code = code.replace(NAME_MARKER, name, 1)
    code = code.replace(SOURCE_MARKER, source, 1)
    return code


def embed_binary(config: BuildConfig, target: ResolvedTarget) -> str:
    """Generate the self-extracting source file for a built target.

    :param config: Run configuration (dialect and triple are used).
    :param target: Resolved target whose binary has been built.
    :returns: Generated source text.
    :raises ArtifactIOError: If the binary cannot be read.
    """

    try:
        data: bytes = target.binary_path.read_bytes()
    except OSError as e:
        raise ArtifactIOError(f"Failed to read binary {target.binary_path}: {e}") from e

    profile: DialectProfile = dialect_profile(config.dialect)
    return render_template(
        profile.template,
        payload=profile.encode(data),
        name=runtime_name(content_id(data), config.target),
        source=comment_out(read_source_text(target.src_path), profile.comment_prefix),
    )


_RUST_TEMPLATE: str = textwrap.dedent(
    r'''
    // This file was generated by binary-embedder. It embeds a compiled binary as
    // base64 text. At runtime the binary is extracted to the temp directory and
    // executed with this program's arguments. The original source is at the bottom.

    use std::env;
    use std::fs;
    use std::io::Write;
    use std::process::{self, Command};

    const BINARY: &[u8] = b"{{BINARY}}";
    const NAME: &str = "{{NAME}}";

    fn decode(src: &[u8]) -> Vec<u8> {
        let mut table = [0xffu8; 256];
        for (i, &c) in b"ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
            .iter()
            .enumerate()
        {
            table[c as usize] = i as u8;
        }
        let mut out = Vec::with_capacity(src.len() / 4 * 3 + 3);
        let mut acc: u32 = 0;
        let mut bits: u32 = 0;
        for &c in src {
            let v = table[c as usize];
            if v == 0xff {
                continue;
            }
            acc = ((acc << 6) | v as u32) & 0xffff;
            bits += 6;
            if bits >= 8 {
                bits -= 8;
                out.push((acc >> bits) as u8);
            }
        }
        out
    }

    fn extract() -> std::path::PathBuf {
        let path = env::temp_dir().join(NAME);
        if path.is_file() {
            return path;
        }
        let tmp = env::temp_dir().join(format!("{}.{}.tmp", NAME, process::id()));
        {
            let mut file = fs::File::create(&tmp).expect("failed to create binary");
            file.write_all(&decode(BINARY)).expect("failed to write binary");
        }
        #[cfg(unix)]
        {
            use std::os::unix::fs::PermissionsExt;
            fs::set_permissions(&tmp, fs::Permissions::from_mode(0o755))
                .expect("failed to mark binary executable");
        }
        fs::rename(&tmp, &path).expect("failed to move binary into place");
        path
    }

    fn main() {
        let path = extract();
        let status = Command::new(&path)
            .args(env::args_os().skip(1))
            .status()
            .expect("failed to run binary");
        process::exit(status.code().unwrap_or(1));
    }

    // Original source:
    {{SOURCE_CODE}}
    '''
).lstrip()


_PYTHON_TEMPLATE: str = textwrap.dedent(
    r'''
    #!/usr/bin/env python3
    # This file was generated by binary-embedder. It embeds a compiled binary as
    # base64 text. At runtime the binary is extracted to the temp directory and
    # executed with this script's arguments. The original source is at the bottom.

    import base64
    import os
    import pathlib
    import stat
    import subprocess
    import sys
    import tempfile


    _NAME: str = "{{NAME}}"
    _BINARY: str = "{{BINARY}}"


    def _extract() -> pathlib.Path:
        """Write the binary to the temp directory unless it is already there.

        :returns: Path to the executable.
        """

        path: pathlib.Path = pathlib.Path(tempfile.gettempdir()) / _NAME
        if path.is_file() is True:
            return path

        tmp: pathlib.Path = path.with_name(f"{_NAME}.{os.getpid()}.tmp")
        tmp.write_bytes(base64.b64decode(_BINARY))
        tmp.chmod(tmp.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        os.replace(tmp, path)
        return path


    def main() -> None:
        """Program entrypoint."""

        path: pathlib.Path = _extract()
        proc = subprocess.run([str(path), *sys.argv[1:]], check=False)
        raise SystemExit(proc.returncode)


    if __name__ == "__main__":
        main()


    # Original source:
    {{SOURCE_CODE}}
    '''
).lstrip()


_PROFILES: dict[Dialect, DialectProfile] = {
    Dialect.RUST: DialectProfile(template=_RUST_TEMPLATE, encode=encode_unpadded, comment_prefix="//"),
    Dialect.PYTHON: DialectProfile(template=_PYTHON_TEMPLATE, encode=encode_padded, comment_prefix="#"),
}


def dialect_profile(dialect: Dialect) -> DialectProfile:
    """Return the template and encoder for a dialect.

    :param dialect: Output dialect.
    :returns: Dialect profile.
    """

    return _PROFILES[dialect]
