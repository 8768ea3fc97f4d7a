"""Bot Command Handler: turns owner chat commands into group operations.

Receives ``IncomingMessage`` objects from the chat transport, checks that
they come from the configured owner, parses the command text and calls
``WhatsAppService`` / ``GroupService`` directly. Every reply goes back
through the transport; a failing command produces an error reply rather
than an exception.
"""

import base64
import logging
import re
from typing import Awaitable, Callable, Dict, List, Optional, Pattern, Tuple

from wabridge.core.services.group_service import GroupService
from wabridge.core.services.whatsapp_service import WhatsAppService
from wabridge.domain.interfaces.chat_transport import ChatTransport, IncomingMessage
from wabridge.domain.models.common import ChatId
from wabridge.domain.models.group import GroupSetting, GroupSummary, SettingResult

logger = logging.getLogger(__name__)

SETTING_LABELS = {
    GroupSetting.INFO: "Info",
    GroupSetting.MESSAGING: "Pesan",
    GroupSetting.MEDIA: "Media",
    GroupSetting.APPROVAL: "Approval",
}

HELP_MESSAGE = """
🤖 WhatsApp Bot Commands:

📱 **Connection:**
/login <nomor> - Login WhatsApp
/status - Check connection status

📋 **Groups:**
/list_groups - List all groups
/group_info <no> - Get group info

⚙️ **Group Settings:**
/set_info on|off <no/all> - Toggle group info edit
/set_msg on|off <no/all> - Toggle messaging
/set_media on|off <no/all> - Toggle media sharing
/set_approve on|off <no/all> - Toggle member approval

✏️ **Group Management:**
/rename <no> <nama_baru> - Rename group
/bio <no> <bio_baru> - Update group description
/setpp <no> - Set group profile picture
/delpp <no> - Delete group profile picture
/invite <no> <nomor> - Invite member to group

Example: /rename 1 Grup Baru
"""


def _command(name: str, args: str = "") -> Pattern[str]:
    """Anchored pattern for '/name args', tolerating a '@botname' suffix on the command."""
    tail = rf"\s+{args}" if args else ""
    return re.compile(rf"^/{name}(?:@\w+)?{tail}\s*$", re.DOTALL)


def format_group_listing(groups: List[GroupSummary]) -> str:
    if not groups:
        return "📋 Tidak ada grup ditemukan"
    lines = ["📋 Daftar Grup:", ""]
    for group in groups:
        lines.append(f"{group.number}. {group.name}")
        lines.append(f"   👥 Anggota: {group.participants}")
        lines.append(f"   ⏳ Pending: {group.pending}")
        lines.append(f"   🔗 Link: {group.invite_code or '-'}")
        lines.append(f"   👑 Status: {'Admin' if group.is_admin else 'Anggota'}")
        lines.append("")
    return "\n".join(lines)


def format_setting_results(results: List[SettingResult], label: str, action: str) -> str:
    action_text = "dinyalakan" if action == "on" else "dimatikan"
    lines = []
    for result in results:
        if result.success:
            lines.append(f"✅ Grup {result.group_number}: {label} {action_text}")
        else:
            lines.append(f"❌ Grup {result.group_number}: {result.error}")
    return "\n".join(lines) or f"✅ {label} {action_text}"


Handler = Callable[[ChatId, "re.Match[str]"], Awaitable[None]]


class BotCommandHandler:
    """Handles owner commands arriving from the chat transport."""

    def __init__(
        self,
        whatsapp: WhatsAppService,
        groups: GroupService,
        transport: ChatTransport,
        owner_id: Optional[str],
    ):
        self.whatsapp = whatsapp
        self.groups = groups
        self.transport = transport
        self.owner_id = str(owner_id) if owner_id is not None else None
        # chat id -> group number awaiting a photo after /setpp
        self.waiting_for_photo: Dict[ChatId, int] = {}
        if self.owner_id is None:
            logger.warning("No bot owner configured; every command will be refused.")

        self._routes: List[Tuple[Pattern[str], Handler]] = [
            (_command("login", r"(.+)"), self._login),
            (_command("status"), self._status),
            (_command("list_groups"), self._list_groups),
            (_command("group_info", r"(\d+)"), self._group_info),
            (_command("set_(info|msg|media|approve)", r"(on|off)\s+(\S+)"), self._set_setting),
            (_command("rename", r"(\d+)\s+(.+)"), self._rename),
            (_command("bio", r"(\d+)\s+(.+)"), self._bio),
            (_command("setpp", r"(\d+)"), self._setpp),
            (_command("delpp", r"(\d+)"), self._delpp),
            (_command("invite", r"(\d+)\s+(\d+)"), self._invite),
            (_command("help"), self._help),
        ]
        logger.info("Bot commands initialized")

    def is_owner(self, message: IncomingMessage) -> bool:
        return self.owner_id is not None and str(message.user_id) == self.owner_id

    async def handle_message(self, message: IncomingMessage) -> None:
        """Entry point for every message the transport receives."""
        if not self.is_owner(message):
            logger.warning(f"Rejected message from non-owner user {message.user_id}")
            await self._reply(message.chat_id, "❌ Unauthorized access")
            return

        if message.photo_file_id and message.chat_id in self.waiting_for_photo:
            await self._receive_photo(message)
            return

        text = (message.text or "").strip()
        if not text.startswith("/"):
            return

        for pattern, handler in self._routes:
            match = pattern.match(text)
            if match:
                logger.info(f"Handling bot command: {text.split()[0]}")
                await handler(message.chat_id, match)
                return
        logger.debug(f"Ignoring unrecognised command: {text.split()[0]}")

    async def _reply(self, chat_id: ChatId, text: str) -> None:
        try:
            await self.transport.send_message(chat_id, text)
        except Exception as e:
            logger.error(f"Failed to send bot message: {e}")

    # --- Command handlers ---

    async def _login(self, chat_id: ChatId, match: "re.Match[str]") -> None:
        try:
            outcome = await self.whatsapp.login()
            qr_code = outcome.get("qrCode")
            if qr_code:
                await self._send_qr(chat_id, qr_code)
            else:
                await self._reply(chat_id, "✅ Login berhasil!")
        except Exception as e:
            await self._reply(chat_id, f"❌ Error login: {e}")

    async def _send_qr(self, chat_id: ChatId, qr_code: str) -> None:
        caption = "📱 Scan QR code ini di WhatsApp Anda"
        # The service always hands over a PNG data URL
        image = base64.b64decode(qr_code.split(",", 1)[1])
        await self.transport.send_photo(chat_id, image, caption=caption)

    async def _status(self, chat_id: ChatId, match: "re.Match[str]") -> None:
        status = self.whatsapp.status()
        text = "🟢 Connected" if status["connected"] else "🔴 Disconnected"
        await self._reply(chat_id, f"📱 WhatsApp Status: {text}")

    async def _list_groups(self, chat_id: ChatId, match: "re.Match[str]") -> None:
        try:
            groups = await self.whatsapp.get_groups()
            await self._reply(chat_id, format_group_listing(groups))
        except Exception as e:
            await self._reply(chat_id, f"❌ Error listing groups: {e}")

    async def _group_info(self, chat_id: ChatId, match: "re.Match[str]") -> None:
        try:
            info = await self.groups.group_info(int(match.group(1)))
        except Exception as e:
            await self._reply(chat_id, f"❌ Error getting group info: {e}")
            return

        lines = [
            f"📌 Nama: {info.name}",
            f"👥 Anggota: {info.participants}",
            f"⏳ Pending: {info.pending}",
            f"🔗 Link: {info.invite_code or '-'}",
            f"👑 Status: {'Admin' if info.is_admin else 'Anggota'}",
        ]
        if info.description:
            lines.append(f"📝 Deskripsi: {info.description}")
        await self._reply(chat_id, "\n".join(lines))

    async def _set_setting(self, chat_id: ChatId, match: "re.Match[str]") -> None:
        setting, action, target = match.group(1), match.group(2), match.group(3)
        label = SETTING_LABELS[GroupSetting(setting)]
        try:
            results = await self.groups.apply_setting(setting, action, target)
            await self._reply(chat_id, format_setting_results(results, label, action))
        except Exception as e:
            await self._reply(chat_id, f"❌ Error setting {label}: {e}")

    async def _rename(self, chat_id: ChatId, match: "re.Match[str]") -> None:
        number, new_name = int(match.group(1)), match.group(2).strip()
        try:
            await self.groups.rename(number, new_name)
            await self._reply(chat_id, f'✅ Nama grup {number} berhasil diubah menjadi "{new_name}"')
        except Exception as e:
            await self._reply(chat_id, f"❌ Error rename group: {e}")

    async def _bio(self, chat_id: ChatId, match: "re.Match[str]") -> None:
        number, bio = int(match.group(1)), match.group(2).strip()
        try:
            await self.groups.set_description(number, bio)
            await self._reply(chat_id, f"✅ Bio grup {number} berhasil diubah")
        except Exception as e:
            await self._reply(chat_id, f"❌ Error update bio: {e}")

    async def _setpp(self, chat_id: ChatId, match: "re.Match[str]") -> None:
        number = int(match.group(1))
        self.waiting_for_photo[chat_id] = number
        await self._reply(chat_id, f"📷 Kirim foto untuk dijadikan profil picture grup {number}")

    async def _receive_photo(self, message: IncomingMessage) -> None:
        number = self.waiting_for_photo.pop(message.chat_id)
        try:
            file_url = await self.transport.file_url(message.photo_file_id)
            await self.groups.set_picture(number, file_url=file_url)
            await self._reply(message.chat_id, f"✅ Foto profil grup {number} berhasil diubah")
        except Exception as e:
            await self._reply(message.chat_id, f"❌ Error mengubah foto profil: {e}")

    async def _delpp(self, chat_id: ChatId, match: "re.Match[str]") -> None:
        number = int(match.group(1))
        try:
            await self.groups.remove_picture(number)
            await self._reply(chat_id, f"✅ Foto profil grup {number} berhasil dihapus")
        except Exception as e:
            await self._reply(chat_id, f"❌ Error hapus foto profil: {e}")

    async def _invite(self, chat_id: ChatId, match: "re.Match[str]") -> None:
        number, phone = int(match.group(1)), match.group(2)
        try:
            await self.groups.invite(number, phone)
            await self._reply(chat_id, f"✅ Nomor {phone} berhasil diundang ke grup {number}")
        except Exception as e:
            await self._reply(chat_id, f"❌ Error invite member: {e}")

    async def _help(self, chat_id: ChatId, match: "re.Match[str]") -> None:
        await self._reply(chat_id, HELP_MESSAGE)
