"""Group management use cases addressed by listing number.

The bot and the HTTP API both speak in terms of "group 3" from the
numbered listing; this service resolves numbers to groups, enforces the
admin requirement and runs bulk setting changes with a pause between
consecutive groups.
"""

import logging
from typing import List, Optional

import httpx

from wabridge.core.services.whatsapp_service import WhatsAppService
from wabridge.domain.exceptions import (
    GroupNotFoundError,
    ImageDownloadError,
    InvalidRequestError,
    InvalidSettingError,
    NoAdminGroupsError,
    NotGroupAdminError,
)
from wabridge.domain.models.common import GroupNumber, PhoneNumber
from wabridge.domain.models.group import GroupInfo, GroupSetting, GroupSummary, SettingResult
from wabridge.infrastructure.resilience.bulk_delay import BulkDelay

logger = logging.getLogger(__name__)

ALL_GROUPS = "all"
VALID_ACTIONS = ("on", "off")
IMAGE_DOWNLOAD_TIMEOUT_SECONDS = 30.0


class GroupService:
    """Number-addressed group operations on top of ``WhatsAppService``."""

    def __init__(
        self,
        whatsapp: WhatsAppService,
        bulk_delay: BulkDelay,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.whatsapp = whatsapp
        self.bulk_delay = bulk_delay
        self._http_client = http_client

    async def find_group(self, number: int) -> GroupSummary:
        groups = await self.whatsapp.get_groups()
        for group in groups:
            if group.number == number:
                return group
        raise GroupNotFoundError(number)

    async def find_admin_group(self, number: int) -> GroupSummary:
        group = await self.find_group(number)
        if not group.is_admin:
            raise NotGroupAdminError(number)
        return group

    async def _resolve_targets(self, target: str) -> List[GroupSummary]:
        groups = await self.whatsapp.get_groups()
        if str(target).strip().lower() == ALL_GROUPS:
            return [g for g in groups if g.is_admin]
        try:
            number = int(target)
        except (TypeError, ValueError):
            return []
        return [g for g in groups if g.number == number and g.is_admin]

    async def apply_setting(self, setting: str, action: str, target: str) -> List[SettingResult]:
        """Toggles ``setting`` on one admin group or on all of them.

        Returns one result per targeted group; a failure on one group does
        not stop the others.
        """
        if setting not in {s.value for s in GroupSetting}:
            raise InvalidSettingError(setting)
        if action not in VALID_ACTIONS:
            raise InvalidRequestError(f"Action must be one of {', '.join(VALID_ACTIONS)}")

        targets = await self._resolve_targets(target)
        if not targets:
            raise NoAdminGroupsError()

        results: List[SettingResult] = []
        for index, group in enumerate(targets):
            if index > 0:
                await self.bulk_delay.wait()
            try:
                await self.whatsapp.update_group_setting(group.id, setting, action)
                results.append(SettingResult(group.number, group.name, success=True))
            except Exception as e:
                results.append(SettingResult(group.number, group.name, success=False, error=str(e)))

        logger.info(
            f"Setting '{setting}' -> {action} applied to {sum(r.success for r in results)}/{len(results)} groups"
        )
        return results

    async def rename(self, number: int, new_name: str) -> GroupSummary:
        """Renames the group. Returns the listing row as it was before the rename."""
        group = await self.find_admin_group(number)
        await self.whatsapp.rename_group(group.id, new_name)
        return group

    async def set_description(self, number: int, description: str) -> GroupSummary:
        group = await self.find_admin_group(number)
        await self.whatsapp.update_group_description(group.id, description)
        return group

    async def set_picture(
        self, number: int, image: Optional[bytes] = None, file_url: Optional[str] = None
    ) -> GroupSummary:
        group = await self.find_admin_group(number)
        if image is None:
            if not file_url:
                raise InvalidRequestError("Image file or URL is required")
            image = await self.download_image(file_url)
        await self.whatsapp.update_group_picture(group.id, image)
        return group

    async def remove_picture(self, number: int) -> GroupSummary:
        group = await self.find_admin_group(number)
        await self.whatsapp.remove_group_picture(group.id)
        return group

    async def invite(self, number: int, phone: str) -> GroupSummary:
        group = await self.find_admin_group(number)
        await self.whatsapp.invite_to_group(group.id, PhoneNumber(phone))
        return group

    async def group_info(self, number: int) -> GroupInfo:
        group = await self.find_group(number)
        return await self.whatsapp.get_group_info(group.id, GroupNumber(group.number))

    async def download_image(self, url: str) -> bytes:
        """Fetches an image (e.g. a file the owner uploaded to the bot)."""
        try:
            if self._http_client is not None:
                response = await self._http_client.get(url)
            else:
                async with httpx.AsyncClient(timeout=IMAGE_DOWNLOAD_TIMEOUT_SECONDS) as client:
                    response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            # Bot file URLs embed the bot token, so the URL itself is never logged
            logger.error(f"Image download failed with HTTP {e.response.status_code}")
            raise ImageDownloadError(url, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error(f"Image download failed: {type(e).__name__}")
            raise ImageDownloadError(url, type(e).__name__) from e
        return response.content
