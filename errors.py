"""Exception types raised by the build pipeline and the store."""


class PostVaultError(Exception):
    """Base class for all postvault errors."""


class ContentIOError(PostVaultError):
    """A file or directory of the content tree could not be read or written."""


class DecodeError(PostVaultError):
    """An image or metadata file could not be parsed."""


class MetadataError(DecodeError):
    """A post sidecar holds invalid JSON or does not match the schema."""


class StoreError(PostVaultError):
    """The database rejected an operation or could not be reached."""


class ConstraintError(StoreError):
    """A write violated a uniqueness or foreign-key constraint."""


class NotFoundError(PostVaultError):
    """A lookup by id or key matched no row."""
