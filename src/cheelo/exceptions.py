"""Exception types shared across Cheelo."""


class CheeloError(Exception):
    """Base class for all Cheelo errors."""


class PlayerNotFound(CheeloError):
    """The official profile for a player could not be fetched."""

    def __init__(self, player_id: str):
        self.player_id = player_id
        super().__init__(f"Player not found: {player_id}")


class DataSourceError(CheeloError):
    """
    An external fetch failed, timed out or returned an unusable response.

    Raised by the scraping transport only. The data source boundary
    converts it into an empty or missing value before it reaches the
    live rating services.
    """

    def __init__(self, message: str, url: str | None = None):
        self.url = url
        super().__init__(message if url is None else f"{message} ({url})")
