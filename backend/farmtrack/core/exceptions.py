class FarmTrackError(Exception):
    """Base exception for the tracking service."""

    pass


class CatalogConfigurationError(FarmTrackError):
    """Raised at startup when the stage catalog configuration is unusable."""

    pass


class StageNotFoundError(FarmTrackError, LookupError):
    """Raised when a stage id or ordinal is not in the catalog."""

    def __init__(self, key: str | int):
        self.key = key
        super().__init__(f"Unknown stage: {key!r}")
