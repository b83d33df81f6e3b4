from __future__ import annotations

import logging
from typing import List, Union

from domain import SiteNotFoundError
from models import SiteConfig
from repositories import InMemorySiteStore, SiteStore

from .credentials import redact
from .git_sync import RepositorySynchronizer


logger = logging.getLogger("site-engine.sites")


class SiteCatalog:
    """Site lookups for the HTTP layer; drops cached git handles when a site changes."""

    def __init__(
        self,
        store: Union[SiteStore, InMemorySiteStore],
        synchronizer: RepositorySynchronizer,
    ) -> None:
        self.store = store
        self.synchronizer = synchronizer

    async def get(self, site_id: str) -> SiteConfig:
        site = await self.store.get_site(site_id)
        if site is None:
            raise SiteNotFoundError(site_id)
        return site

    async def list_sites(self) -> List[SiteConfig]:
        return await self.store.list_sites()

    async def save(self, site: SiteConfig) -> SiteConfig:
        saved = await self.store.save_site(site)
        self.synchronizer.evict(site.id)
        logger.info(
            "Saved site=%s repository=%s",
            site.id,
            redact(site.github_repository_url, site.github_pat),
        )
        return saved

    async def delete(self, site_id: str) -> None:
        if not await self.store.delete_site(site_id):
            raise SiteNotFoundError(site_id)
        self.synchronizer.evict(site_id)
        logger.info("Deleted site=%s", site_id)
