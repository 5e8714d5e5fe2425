"""Error types raised by the embedding pipeline.

Every failure aborts the pipeline; the CLI reports ``str(error)`` to the user.
"""

from collections.abc import Mapping


class BinaryEmbedderError(RuntimeError):
    """Base error carrying an optional hint and context.

    :ivar hint: Optional suggestion shown below the message.
    :ivar context: Extra ``key: value`` lines shown below the hint.
    """

    hint: str | None
    context: dict[str, str]

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.hint = hint
        self.context = dict(context or {})

    def __str__(self) -> str:
        parts: list[str] = [super().__str__()]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        for k, v in self.context.items():
            if v:
                parts.append(f"  {k}: {v}")
        return "\n".join(parts)


class MetadataError(BinaryEmbedderError):
    """Raised when workspace metadata cannot be obtained or parsed."""


class ResolutionError(BinaryEmbedderError):
    """Raised when no single bin target can be selected."""


class BuildError(BinaryEmbedderError):
    """Raised when the external build fails."""


class CompressionError(BinaryEmbedderError):
    """Raised when ``upx`` fails."""


class ArtifactIOError(BinaryEmbedderError):
    """Raised when the artifact cannot be read or the output cannot be written."""


__all__ = [
    "ArtifactIOError",
    "BinaryEmbedderError",
    "BuildError",
    "CompressionError",
    "MetadataError",
    "ResolutionError",
]
