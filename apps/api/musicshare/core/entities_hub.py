# Import every entity module so relationships resolve and metadata is complete
from musicshare.features.tracks.entities import Track, TrackLike  # noqa: F401
from musicshare.features.users.entities import User  # noqa: F401
