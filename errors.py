class VideoServiceError(Exception):
    """Base class for errors raised by the service."""


class FetchError(VideoServiceError):
    """The listing page could not be retrieved or parsed."""


class StorageUnavailable(VideoServiceError):
    """The database cannot be reached."""


class EntryPersistError(VideoServiceError):
    """Upserting a single entry failed."""

    def __init__(self, entry, cause):
        self.entry = entry
        self.cause = cause
        super().__init__(f"could not persist {entry.url!r}: {cause}")


class NotFound(VideoServiceError):
    """No video with the requested id."""

    def __init__(self, video_id):
        self.video_id = video_id
        super().__init__(f"video {video_id} not found")
