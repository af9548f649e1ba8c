"""
Embed config service: per-site widget configuration and public tokens.
"""

from __future__ import annotations

import uuid
from typing import Optional
from urllib.parse import urlparse

import structlog

from app.core.errors import DocumentNotFoundError, ForbiddenError, NotFoundError, ValidationError
from app.db.base import DocumentStore, FindQuery
from app.services.organizations import get_site_or_404
from scheduleright_shared.schemas.common import DocType, new_doc_id, utcnow_iso
from scheduleright_shared.schemas.embeds import (
    EmbedConfig,
    EmbedConfigCreate,
    EmbedConfigUpdate,
    EmbedStatus,
)

log = structlog.get_logger()


def _normalize_domain(value: str) -> str:
    raw = value
    value = value.strip().lower()
    if "://" in value:
        try:
            value = urlparse(value).hostname or ""
        except ValueError:
            raise ValidationError(
                "Invalid domain in allowDomains", details={"domain": raw}
            )
    return value.split(":", 1)[0].rstrip(".")


def origin_hostname(origin: Optional[str]) -> Optional[str]:
    """Hostname from an Origin or Referer header value; None when unparseable."""
    if not origin:
        return None
    try:
        parsed = urlparse(origin if "://" in origin else f"https://{origin}")
        return parsed.hostname
    except ValueError:
        return None


def domain_allowed(hostname: str, allow_domains: list[str]) -> bool:
    hostname = hostname.lower()
    for entry in allow_domains:
        domain = _normalize_domain(entry)
        if not domain:
            continue
        if domain.startswith("*."):
            domain = domain[2:]
        if hostname == domain or hostname.endswith("." + domain):
            return True
    return False


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------

async def list_embed_configs(store: DocumentStore, org_id: str) -> list[EmbedConfig]:
    result = await store.find(
        FindQuery(
            selector={"type": DocType.EMBED_CONFIG.value, "orgId": org_id},
            sort=[{"createdAt": "desc"}],
        )
    )
    return [EmbedConfig.model_validate(doc) for doc in result.docs]


async def get_embed_config(store: DocumentStore, config_id: str) -> Optional[EmbedConfig]:
    try:
        doc = await store.get(config_id)
    except DocumentNotFoundError:
        return None
    if doc.get("type") != DocType.EMBED_CONFIG.value:
        return None
    return EmbedConfig.model_validate(doc)


async def get_embed_config_or_404(
    store: DocumentStore, config_id: str, org_id: Optional[str] = None
) -> EmbedConfig:
    config = await get_embed_config(store, config_id)
    if config is None or (org_id is not None and config.org_id != org_id):
        raise NotFoundError("Embed config not found", code="EMBED_CONFIG_NOT_FOUND")
    return config


async def create_embed_config(
    store: DocumentStore, org_id: str, req: EmbedConfigCreate, created_by: Optional[str] = None
) -> EmbedConfig:
    await get_site_or_404(store, req.site_id, org_id)
    config = EmbedConfig(
        id=new_doc_id("embed_config"),
        org_id=org_id,
        site_id=req.site_id,
        name=req.name,
        token=uuid.uuid4().hex,
        theme_color=req.theme_color,
        button_label=req.button_label,
        allow_domains=[_normalize_domain(d) for d in req.allow_domains if d.strip()],
        locale=req.locale,
        timezone=req.timezone,
        default_service=req.default_service,
        status=EmbedStatus.ACTIVE,
        created_by=created_by,
    )
    result = await store.insert(config.to_doc())
    config.rev = result.rev
    log.info("embed_config.created", config_id=config.id, site_id=config.site_id)
    return config


async def update_embed_config(
    store: DocumentStore, org_id: str, config_id: str, req: EmbedConfigUpdate
) -> EmbedConfig:
    config = await get_embed_config_or_404(store, config_id, org_id)
    changes = req.model_dump(exclude_unset=True, exclude_none=True)
    if "allow_domains" in changes:
        changes["allow_domains"] = [
            _normalize_domain(d) for d in changes["allow_domains"] if d.strip()
        ]
    for field, value in changes.items():
        setattr(config, field, value)
    config.touch()
    result = await store.insert(config.to_doc())
    config.rev = result.rev
    log.info("embed_config.updated", config_id=config.id, fields=sorted(changes))
    return config


async def archive_embed_config(
    store: DocumentStore, org_id: str, config_id: str
) -> EmbedConfig:
    """Archive a config. Archiving an archived config is a no-op."""
    config = await get_embed_config_or_404(store, config_id, org_id)
    if config.status == EmbedStatus.ARCHIVED:
        return config
    config.status = EmbedStatus.ARCHIVED
    config.archived_at = utcnow_iso()
    config.touch()
    result = await store.insert(config.to_doc())
    config.rev = result.rev
    log.info("embed_config.archived", config_id=config.id)
    return config


# ---------------------------------------------------------------------------
# Public access
# ---------------------------------------------------------------------------

async def get_by_token(store: DocumentStore, token: str) -> Optional[EmbedConfig]:
    result = await store.find(
        FindQuery(selector={"type": DocType.EMBED_CONFIG.value, "token": token}, limit=1)
    )
    if not result.docs:
        return None
    return EmbedConfig.model_validate(result.docs[0])


def ensure_embed_access(
    config: Optional[EmbedConfig], site_id: str, origin: Optional[str]
) -> EmbedConfig:
    """
    Gate for public widget requests that present a token.

    The token must resolve to an active config for ``site_id``; when the
    config restricts domains, the caller's Origin/Referer host must match.
    """
    if config is None or config.status != EmbedStatus.ACTIVE:
        raise ForbiddenError("Invalid embed token", code="EMBED_FORBIDDEN")
    if config.site_id != site_id:
        raise ForbiddenError("Embed token is not valid for this site", code="EMBED_FORBIDDEN")
    if config.allow_domains:
        hostname = origin_hostname(origin)
        if not hostname or not domain_allowed(hostname, config.allow_domains):
            log.warning(
                "embed.origin_denied",
                config_id=config.id,
                origin=origin,
            )
            raise ForbiddenError("Origin not allowed for this embed", code="EMBED_FORBIDDEN")
    return config
