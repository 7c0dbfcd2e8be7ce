"""Small text helpers shared by the managers."""

STAR = "\u2B50"  # ⭐
EMPTY_STAR = "\u25AB"  # ▫
MAX_STARS = 5


def star_bar(stars: int) -> str:
    """Five-character rating: one filled star per point, padded with placeholders."""
    return STAR * stars + EMPTY_STAR * (MAX_STARS - stars)


def user_mention(user_id: int) -> str:
    return f"<@{user_id}>"


def channel_mention(channel_id: int) -> str:
    return f"<#{channel_id}>"


# Discord rejects embed field values longer than this
FIELD_VALUE_LIMIT = 1024
ELLIPSIS = "\u2026"


def truncate(text: str, limit: int = FIELD_VALUE_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - len(ELLIPSIS)] + ELLIPSIS
