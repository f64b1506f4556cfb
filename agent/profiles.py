"""
Cross-region inference profile lookup.

Maps a Bedrock model id to a system-defined inference profile id
(``global.`` preferred over a regional prefix), caching the answer on disk
for an hour.
"""

import logging
import sqlite3
import time
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .memory import Memory
from .models import is_inference_profile_id


logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 60 * 60


class ProfileResolver:
    def __init__(self, region: str, cache_path: Optional[str] = None, client=None,
                 ttl: float = CACHE_TTL_SECONDS):
        """
        Args:
            region: AWS region the profiles are listed in
            cache_path: sqlite file for the lookup cache; None disables caching
            client: boto3 ``bedrock`` client (created on first use if omitted)
            ttl: cache lifetime of a resolved id, in seconds
        """
        self.region = region
        self.cache_path = cache_path
        self.ttl = ttl
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client("bedrock", region_name=self.region)
        return self._client

    def _cache_key(self, model_id: str) -> str:
        return f"{self.region}:{model_id}"

    def _from_cache(self, model_id: str) -> Optional[str]:
        if not self.cache_path:
            return None
        try:
            with Memory(self.cache_path) as memory:
                return memory.get(self._cache_key(model_id))
        except (sqlite3.Error, OSError) as e:
            logger.warning(f"profile cache read failed: {e}")
            return None

    def _to_cache(self, model_id: str, profile_id: str) -> None:
        if not self.cache_path:
            return
        try:
            with Memory(self.cache_path) as memory:
                memory.purge_expired()
                memory.set(self._cache_key(model_id), profile_id, self.ttl)
        except (sqlite3.Error, OSError) as e:
            logger.warning(f"profile cache update failed for {model_id}: {e}")

    def lookup(self, model_id: str) -> Optional[str]:
        """List system-defined profiles and pick the best match for model_id."""
        start = time.monotonic()
        regional = None

        paginator = self.client.get_paginator("list_inference_profiles")
        for page in paginator.paginate(typeEquals="SYSTEM_DEFINED", PaginationConfig={"PageSize": 1000}):
            for summary in page.get("inferenceProfileSummaries", []):
                profile_id = summary.get("inferenceProfileId", "")
                _, _, suffix = profile_id.partition(".")
                if suffix != model_id:
                    continue
                if profile_id.startswith("global."):
                    logger.debug(f"selected global inference profile {profile_id}")
                    return profile_id
                if regional is None:
                    regional = profile_id

        logger.debug(f"ListInferenceProfiles took {time.monotonic() - start:.3f} seconds")
        if regional:
            logger.debug(f"selected regional inference profile {regional}")
        return regional

    def resolve(self, model_id: str) -> str:
        """
        Return the inference profile id for model_id.

        Never fails: on any lookup problem the given model id is returned.
        """
        if is_inference_profile_id(model_id):
            return model_id

        cached = self._from_cache(model_id)
        if cached:
            logger.debug(f"profile cache hit {model_id} -> {cached}")
            return cached

        try:
            profile_id = self.lookup(model_id)
        except (BotoCoreError, ClientError) as e:
            logger.warning(f"could not list inference profiles in {self.region}: {e}")
            return model_id

        if not profile_id:
            logger.info(f"no cross-region inference profile for model_id={model_id}")
            return model_id

        self._to_cache(model_id, profile_id)
        return profile_id
