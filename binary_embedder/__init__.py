"""binary-embedder.

A small build utility that compiles a Cargo bin target and embeds the binary into
a single, self-extracting Rust or Python source file.
"""

__all__: list[str] = ["__version__"]

__version__: str = "0.1.0"
