from __future__ import annotations

from typing import Dict, List, Optional

from models import SiteConfig


class InMemorySiteStore:
    """Fallback site store used when MongoDB is unavailable."""

    def __init__(self, sites: Optional[List[SiteConfig]] = None) -> None:
        self._sites: Dict[str, SiteConfig] = {site.id: site for site in sites or []}

    async def ensure_indexes(self) -> None:  # pragma: no cover - no-op
        return

    async def ping(self) -> bool:
        return False

    async def get_site(self, site_id: str) -> Optional[SiteConfig]:
        site = self._sites.get(site_id)
        return site.model_copy() if site else None

    async def list_sites(self) -> List[SiteConfig]:
        return [site.model_copy() for site in sorted(self._sites.values(), key=lambda s: s.name)]

    async def save_site(self, site: SiteConfig) -> SiteConfig:
        self._sites[site.id] = site.model_copy()
        return site

    async def delete_site(self, site_id: str) -> bool:
        return self._sites.pop(site_id, None) is not None
