class RankingError(Exception):
    """Base for ranking failures. `kind` is stable and safe to show to clients."""
    kind = "RankingError"
    status_code = 400
    default_message = "Ranking request rejected"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class DuplicateItem(RankingError):
    kind = "DuplicateItem"
    default_message = "Movie already ranked"


class NoActiveSession(RankingError):
    kind = "NoActiveSession"
    default_message = "No active comparison session"


class InvalidPreference(RankingError):
    kind = "InvalidPreference"
    default_message = "Preferred movie must be the new movie or the one it was compared with"


class RankedItemNotFound(RankingError):
    kind = "RankedItemNotFound"
    status_code = 404
    default_message = "Ranked movie not found"


class ComparisonTargetUnavailable(RankingError):
    # Store count and contents disagree, e.g. a concurrent delete mid-session
    kind = "ComparisonTargetUnavailable"
    status_code = 500
    default_message = "Comparison target unavailable. Please restart adding this movie"
