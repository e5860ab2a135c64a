"""Request/response adapters between the UI and the provider manager.

Bodies and results use the camelCase JSON shapes of the web API
(``providerType``, ``instanceIndex``, ``mimeType`` ...), so any transport
can pass them through unchanged.
"""

import base64
import logging
from typing import Any

from cloudgallery.cloud.manager import ProviderManager, ProviderManagerError
from cloudgallery.cloud.provider import CloudProviderError, FileRecord, TokenExpiredError
from cloudgallery.cloud.thumbnails import ThumbnailIndex

logger = logging.getLogger(__name__)


class RequestError(ValueError):
    """A request body is missing fields or has invalid values."""


def _parse_index(value: Any, field: str) -> int:
    try:
        index = int(str(value))
    except (TypeError, ValueError):
        raise RequestError(f"{field} must be a non-negative number") from None
    if index < 0:
        raise RequestError(f"{field} must be a non-negative number")
    return index


def record_to_dict(record: FileRecord) -> dict:
    return {
        "id": record.id,
        "name": record.name,
        "path": record.path,
        "date_taken": record.date_taken.isoformat(),
        "size": record.size,
        "providerType": record.provider_type,
        "instanceIndex": record.instance_index,
        "hash": record.hash,
    }


def add_provider(manager: ProviderManager, body: dict) -> dict:
    """Add an instance at the end of its type's list and store its credentials."""
    provider_type = body.get("providerType")
    credentials = body.get("credentials")
    if not provider_type or not credentials:
        raise RequestError("Missing required fields: providerType, credentials")
    if not credentials.get("appKey") or not credentials.get("appSecret"):
        raise RequestError("Missing required credentials: appKey and appSecret")

    provider_type = provider_type.lower()
    index = manager.add_instance(provider_type, {
        "app_key": credentials["appKey"],
        "app_secret": credentials["appSecret"],
        "access_token": credentials.get("accessToken"),
        "refresh_token": credentials.get("refreshToken"),
    })
    return {
        "message": "Provider added successfully",
        "providerType": provider_type,
        "instanceIndex": index,
    }


def remove_provider(manager: ProviderManager, body: dict) -> dict:
    provider_type = body.get("providerType")
    if not provider_type or body.get("instanceIndex") is None:
        raise RequestError(
            "At least one of the following fields is missing: providerType, instanceIndex"
        )
    index = _parse_index(body["instanceIndex"], "Instance index")
    manager.remove_provider(provider_type.lower(), index)
    return {
        "message": "Provider removed successfully",
        "providerType": provider_type.lower(),
        "instanceIndex": index,
    }


def list_providers(manager: ProviderManager) -> list[dict]:
    providers = []
    for provider_type, index, provider in manager.instances():
        info = {
            "type": provider_type,
            "instanceIndex": index,
            "authenticated": provider.is_authenticated(),
            "tokenState": provider.lifecycle.state.value,
        }
        if info["authenticated"]:
            try:
                account = provider.get_account_info()
                info["accountInfo"] = {
                    "accountId": account.account_id,
                    "name": account.name,
                    "email": account.email,
                }
            except CloudProviderError as exc:
                if isinstance(exc, TokenExpiredError):
                    provider.lifecycle.token_rejected()
                logger.warning("Failed to get account info for %s instance %d: %s", provider_type, index, exc)
                info["authenticated"] = False
        providers.append(info)
    return providers


def get_thumbnails(
    manager: ProviderManager, thumbnails: ThumbnailIndex, index: Any, size: Any
) -> list[dict]:
    """A newest-first page with each thumbnail inlined, or an error per item."""
    start = _parse_index(index, "index")
    count = _parse_index(size, "size")
    page = []
    for record in thumbnails.get_page(start, count):
        item = record_to_dict(record)
        try:
            provider = manager.get_provider(record.provider_type, record.instance_index)
        except ProviderManagerError as exc:
            item["error"] = str(exc)
            page.append(item)
            continue
        result = provider.get_thumbnail(record.path)
        if result.success:
            item["data"] = base64.b64encode(result.data).decode("ascii")
            item["mimeType"] = result.mime_type
        else:
            item["error"] = result.error
        page.append(item)
    return page


def has_more(page: list, size: int) -> bool:
    return len(page) == size
