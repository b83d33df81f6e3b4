from __future__ import annotations

from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ReturnDocument

from db.mongo import get_database
from models import SiteConfig


class SiteStore:
    """MongoDB repository handling the sites collection."""

    def __init__(self, database: Optional[AsyncIOMotorDatabase] = None):
        self._db = database if database is not None else get_database()
        self._sites: AsyncIOMotorCollection = self._db["sites"]

    async def ensure_indexes(self) -> None:
        await self._sites.create_index("name")

    async def ping(self) -> bool:
        try:
            await self._db.command("ping")
        except Exception:  # pylint: disable=broad-except
            return False
        return True

    async def get_site(self, site_id: str) -> Optional[SiteConfig]:
        document = await self._sites.find_one({"_id": site_id})
        if not document:
            return None
        return SiteConfig.from_document(document)

    async def list_sites(self) -> List[SiteConfig]:
        cursor = self._sites.find({}).sort("name", 1)
        return [SiteConfig.from_document(document) async for document in cursor]

    async def save_site(self, site: SiteConfig) -> SiteConfig:
        document = site.to_document()
        saved = await self._sites.find_one_and_replace(
            {"_id": site.id},
            document,
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return SiteConfig.from_document(saved or document)

    async def delete_site(self, site_id: str) -> bool:
        result = await self._sites.delete_one({"_id": site_id})
        return result.deleted_count > 0
