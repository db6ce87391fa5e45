"""
Image Refresh Gate

Decides whether a listing's gallery is refreshed from Zillow before
vibes are generated, and applies the refresh without ever discarding an
existing gallery.
"""
import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, List, Optional

from src.homematch.scrapers.zillow_images import ZillowImageClient, filter_gallery_urls
from src.homematch.utils.logger import get_logger

logger = get_logger(__name__)

STATUS_OK = "ok"
STATUS_EMPTY = "empty"
STATUS_FAILED = "failed"


@dataclass
class ImageRefreshOutcome:
    """
    Result of one gate decision.

    status is one of disabled, skipped, no_zpid, ok, unchanged, empty,
    failed. changed is True only when the stored gallery was replaced.
    """

    status: str
    changed: bool = False
    image_count: int = 0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def has_successful_marker(entity: Any) -> bool:
    return (
        getattr(entity, "zillow_images_refreshed_at", None) is not None
        and getattr(entity, "zillow_images_refresh_status", None) == STATUS_OK
    )


class ImageRefreshGate:
    """Gallery refresh policy for listings."""

    def __init__(
        self,
        store: Any,
        image_client: Optional[ZillowImageClient],
        enabled: bool = False,
        force_images: bool = False,
        min_images: int = 10,
        delay_seconds: float = 0.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        now: Callable[[], datetime] = _utcnow,
    ):
        """
        Initialize the gate.

        Args:
            store: Entity store used to write galleries and refresh markers
            image_client: Zillow image client; None disables refreshes
            enabled: Whether refreshes run at all
            force_images: Refresh even when the gallery looks complete
            min_images: Gallery size considered complete
            delay_seconds: Pause after each Zillow call
            sleep: Coroutine used for the pause
            now: Clock for refresh markers
        """
        self.store = store
        self.image_client = image_client
        self.enabled = enabled and image_client is not None
        self.force_images = force_images
        self.min_images = min_images
        self.delay_seconds = delay_seconds
        self.sleep = sleep
        self.now = now

    def needs_refresh(self, entity: Any) -> bool:
        """
        True when the gallery should be fetched.

        A gallery that meets min_images and carries a successful refresh
        marker is left alone unless force_images is set.
        """
        if self.force_images:
            return True
        image_count = len(getattr(entity, "images", None) or [])
        return image_count < self.min_images or not has_successful_marker(entity)

    async def maybe_refresh(self, entity: Any) -> ImageRefreshOutcome:
        """
        Refresh the gallery of a listing when the policy calls for it.

        The entity is updated in place after a successful write, so the
        caller's source hash sees the refreshed gallery.
        """
        current: List[str] = list(getattr(entity, "images", None) or [])

        if not self.enabled:
            return ImageRefreshOutcome(status="disabled", image_count=len(current))

        zpid = getattr(entity, "zpid", None)
        if not zpid:
            return ImageRefreshOutcome(status="no_zpid", image_count=len(current))

        if not self.needs_refresh(entity):
            logger.debug(
                "image_refresh_skipped",
                property_id=entity.id,
                zpid=zpid,
                image_count=len(current),
                marker_status=entity.zillow_images_refresh_status
            )
            return ImageRefreshOutcome(status="skipped", image_count=len(current))

        try:
            fetched = await self.image_client.fetch_image_urls(str(zpid))
        except Exception as e:
            logger.warning(
                "image_refresh_failed",
                property_id=entity.id,
                zpid=zpid,
                error=str(e),
                error_type=type(e).__name__
            )
            await self._write_marker(entity, STATUS_FAILED, len(current))
            return ImageRefreshOutcome(status=STATUS_FAILED, image_count=len(current))
        finally:
            if self.delay_seconds > 0:
                await self.sleep(self.delay_seconds)

        gallery = filter_gallery_urls(fetched)

        if not gallery:
            if not self._marker_matches(entity, STATUS_EMPTY, 0):
                await self._write_marker(entity, STATUS_EMPTY, 0)
            logger.info(
                "image_refresh_empty",
                property_id=entity.id,
                zpid=zpid,
                fetched=len(fetched),
                kept=len(current)
            )
            return ImageRefreshOutcome(status=STATUS_EMPTY, image_count=len(current))

        if gallery == current:
            if not self._marker_matches(entity, STATUS_OK, len(gallery)):
                await self._write_marker(entity, STATUS_OK, len(gallery))
            logger.info(
                "image_refresh_unchanged",
                property_id=entity.id,
                zpid=zpid,
                image_count=len(gallery)
            )
            return ImageRefreshOutcome(status="unchanged", image_count=len(gallery))

        written = await self._write_marker(entity, STATUS_OK, len(gallery), images=gallery)
        if not written:
            return ImageRefreshOutcome(status=STATUS_FAILED, image_count=len(current))

        logger.info(
            "image_refresh_updated",
            property_id=entity.id,
            zpid=zpid,
            previous_count=len(current),
            image_count=len(gallery)
        )
        return ImageRefreshOutcome(status=STATUS_OK, changed=True, image_count=len(gallery))

    @staticmethod
    def _marker_matches(entity: Any, status: str, count: int) -> bool:
        return (
            getattr(entity, "zillow_images_refreshed_at", None) is not None
            and entity.zillow_images_refresh_status == status
            and entity.zillow_images_refreshed_count == count
        )

    async def _write_marker(
        self,
        entity: Any,
        status: str,
        count: int,
        images: Optional[List[str]] = None,
    ) -> bool:
        """Persist the marker (and gallery), then mirror it onto the entity."""
        refreshed_at = self.now()
        try:
            await self.store.update_property_images(
                entity.id,
                refreshed_at=refreshed_at,
                refreshed_count=count,
                status=status,
                images=images,
            )
        except Exception as e:
            logger.warning(
                "image_marker_write_failed",
                property_id=entity.id,
                status=status,
                error=str(e)
            )
            return False

        if images is not None:
            entity.images = images
        entity.zillow_images_refreshed_at = refreshed_at
        entity.zillow_images_refreshed_count = count
        entity.zillow_images_refresh_status = status
        return True
