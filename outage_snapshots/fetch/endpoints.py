"""Upstream pages that embed the schedule literals, keyed by region id."""
SOURCE_URLS: dict[str, str] = {
    "kyiv": "https://www.dtek-kem.com.ua/ua/shutdowns",
    "kyiv-region": "https://www.dtek-krem.com.ua/ua/shutdowns",
    "dnipro": "https://www.dtek-dnem.com.ua/ua/shutdowns",
    "odesa": "https://www.dtek-oem.com.ua/ua/shutdowns",
}


def get_source_url(region: str, override: str | None = None) -> str:
    """Get the upstream URL for a region; ``override`` wins when given."""
    if override:
        return override
    try:
        return SOURCE_URLS[region]
    except KeyError:
        raise KeyError(f"No upstream URL known for region {region!r}; pass --upstream") from None
