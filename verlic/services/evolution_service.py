"""Client for the Evolution WhatsApp gateway REST API.

An unconfigured client (no base URL or API key) answers every call with an
empty result instead of raising. Management calls log and swallow gateway
errors. ``send_text`` reports a rejected send as False but lets transport
errors and timeouts propagate so the caller can account for them.
"""

from typing import Any, Optional

import httpx

from verlic.config import settings
from verlic.logging_config import get_logger, mask_phone
from verlic.services.identity_service import extract_phone_number

logger = get_logger("evolution_service")

WEBHOOK_EVENTS = ["MESSAGES_UPSERT", "CONNECTION_UPDATE", "QRCODE_UPDATED"]
DEFAULT_INTEGRATION = "WHATSAPP-BAILEYS"


class EvolutionError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class EvolutionClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/") if base_url else None
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url and self.api_key)

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        async with httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Content-Type": "application/json", "apikey": self.api_key},
            timeout=self.timeout_seconds,
            transport=self._transport,
        ) as client:
            return await client.request(method, path, **kwargs)

    async def _json(self, method: str, path: str, **kwargs) -> Any:
        response = await self._request(method, path, **kwargs)
        if not response.is_success:
            raise EvolutionError(
                f"Evolution API error: {response.status_code} - {response.text[:200]}",
                status_code=response.status_code,
            )
        if not response.content:
            return None
        return response.json()

    async def create_instance(self, instance_name: str) -> Optional[dict]:
        """Create an instance on the gateway. Errors propagate: the caller decides whether to abort."""
        if not self.is_configured:
            return None
        logger.info("Creating gateway instance", extra={"context": {"instance": instance_name}})
        return await self._json(
            "POST",
            "/instance/create",
            json={"instanceName": instance_name, "integration": DEFAULT_INTEGRATION, "qrcode": True},
        )

    async def get_qrcode(self, instance_name: str) -> Optional[dict]:
        """Pairing artifacts: base64 image, raw code and pairing code."""
        if not self.is_configured:
            return None
        try:
            data = await self._json("GET", f"/instance/connect/{instance_name}")
        except Exception as e:
            logger.error(f"Error fetching QR code: {e}", extra={"context": {"instance": instance_name}})
            return None
        if not isinstance(data, dict):
            data = {}
        return {
            "base64": data.get("base64") or None,
            "code": data.get("code") or None,
            "pairing_code": data.get("pairingCode") or None,
        }

    async def get_connection_state(self, instance_name: str) -> Optional[str]:
        """Gateway connection state ("open", "connecting", "close"); "disconnected" on error."""
        if not self.is_configured:
            return None
        try:
            data = await self._json("GET", f"/instance/connectionState/{instance_name}")
        except Exception as e:
            logger.error(f"Error fetching connection state: {e}", extra={"context": {"instance": instance_name}})
            return "disconnected"
        if not isinstance(data, dict):
            return "disconnected"
        instance = data.get("instance") if isinstance(data.get("instance"), dict) else {}
        return instance.get("state") or data.get("state") or "disconnected"

    async def get_instance_info(self, instance_name: str) -> Optional[dict]:
        if not self.is_configured:
            return None
        try:
            data = await self._json("GET", "/instance/fetchInstances", params={"instanceName": instance_name})
        except Exception as e:
            logger.error(f"Error fetching instance info: {e}", extra={"context": {"instance": instance_name}})
            return None

        instance = data[0] if isinstance(data, list) and data else data
        if not isinstance(instance, dict):
            return None
        owner = instance.get("ownerJid") or instance.get("owner")
        return {
            "profile_name": instance.get("profileName"),
            "profile_picture_url": instance.get("profilePicUrl"),
            "owner": owner,
            "phone_number": extract_phone_number(owner) if isinstance(owner, str) else None,
            "connection_status": instance.get("connectionStatus"),
        }

    async def list_instances(self) -> list[dict]:
        if not self.is_configured:
            return []
        try:
            data = await self._json("GET", "/instance/fetchInstances")
        except Exception as e:
            logger.error(f"Error listing instances: {e}")
            return []
        return data if isinstance(data, list) else []

    async def logout_instance(self, instance_name: str) -> bool:
        return await self._action("DELETE", f"/instance/logout/{instance_name}", "logout")

    async def delete_instance(self, instance_name: str) -> bool:
        return await self._action("DELETE", f"/instance/delete/{instance_name}", "delete")

    async def restart_instance(self, instance_name: str) -> bool:
        return await self._action("POST", f"/instance/restart/{instance_name}", "restart")

    async def set_webhook(self, instance_name: str, webhook_url: str) -> bool:
        return await self._action(
            "POST",
            f"/webhook/set/{instance_name}",
            "set_webhook",
            json={"webhook": {"enabled": True, "url": webhook_url, "events": WEBHOOK_EVENTS}},
        )

    async def _action(self, method: str, path: str, action: str, **kwargs) -> bool:
        if not self.is_configured:
            return False
        try:
            await self._json(method, path, **kwargs)
            return True
        except Exception as e:
            logger.error(f"Evolution {action} failed: {e}", extra={"context": {"path": path}})
            return False

    async def send_text(self, instance_name: str, phone_number: str, text: str) -> bool:
        """Send a text message. False when rejected; transport errors raise."""
        if not self.is_configured:
            return False
        if not instance_name or not phone_number or not text:
            logger.warning("send_text: missing instance, number or text")
            return False

        response = await self._request(
            "POST",
            f"/message/sendText/{instance_name}",
            json={"number": phone_number, "text": text},
        )
        logger.info(
            "Evolution send response",
            extra={
                "context": {
                    "instance": instance_name,
                    "phone": mask_phone(phone_number),
                    "status": response.status_code,
                }
            },
        )
        return response.is_success


def get_evolution_client() -> EvolutionClient:
    return EvolutionClient(
        base_url=settings.evolution_api_url,
        api_key=settings.evolution_api_key,
        timeout_seconds=settings.evolution_timeout_seconds,
    )
