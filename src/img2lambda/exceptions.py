"""Custom exceptions for img2lambda."""


class Img2LambdaError(Exception):
    """Base exception for all img2lambda errors."""

    pass


class ValidationError(Img2LambdaError):
    """Raised when an input (image reference, archive, option) is invalid."""

    pass


class ImageSourceError(Img2LambdaError):
    """Raised when unable to read an image or its layer blobs."""

    pass


class RepackError(Img2LambdaError):
    """Raised when a layer cannot be repackaged."""

    pass


class LayerDecodeError(RepackError):
    """Raised when a layer stream is neither a tar nor a gzip-compressed tar."""

    pass


class LayerStreamError(RepackError):
    """Raised when a layer stream fails after its archive header was accepted."""

    pass


class UnsupportedEntryTypeError(RepackError):
    """Raised when a matching tar entry has a type that cannot be repacked."""

    def __init__(self, path: str, typeflag: bytes) -> None:
        self.path = path
        self.typeflag = typeflag
        flag = typeflag.decode("latin-1") if isinstance(typeflag, bytes) else typeflag
        super().__init__(f"{path}: unknown type flag: {flag!r}")


class ArchiveCloseError(RepackError):
    """Raised when closing an output archive fails.

    Every close failure is kept in ``errors``. When the close happened while
    another error was already propagating, that error is kept in ``original``
    and is part of the message.
    """

    def __init__(
        self,
        path: str,
        errors: list[BaseException],
        original: BaseException | None = None,
    ) -> None:
        self.path = path
        self.errors = errors
        self.original = original
        details = "; ".join(str(error) for error in errors)
        message = f"closing {path}: {details}"
        if original is not None:
            message = f"{original} (close error: {details})"
        super().__init__(message)


class NothingExtractedError(Img2LambdaError):
    """Raised when an image yields no layer archive and no function file."""

    pass


class PublishError(Img2LambdaError):
    """Raised when listing, fetching or publishing Lambda layer versions fails."""

    pass


class ResultsWriteError(Img2LambdaError):
    """Raised when the published layer list cannot be written."""

    pass
