# Overview: WhatsApp texts for representatives (maleta control, expedition receipts) and the Cloud API sender.

from __future__ import annotations

import logging
import re
from datetime import datetime
from urllib.parse import quote

import httpx
from flask import current_app, has_app_context

from hub.time_utils import utcnow, format_br_date
from ..validation import ValidationError
from .commission_policy import CommissionPolicy, get_commission_policy

"""
Messaging Invariants (authoritative)

- Messages are built from the ledger-derived inventory; nothing here reads or
  writes movements.
- Sending is fire-and-forget: a missing configuration or an HTTP failure is
  logged and reported as "not sent", never raised into the ledger flow.
- The commission goal reminder is taken from the active commission policy.
"""

logger = logging.getLogger(__name__)

KIND_ORIGINAL = "ORIGINAL"
KIND_ADDITIVE = "ADDITIVE"
EXPEDITION_KINDS = (KIND_ORIGINAL, KIND_ADDITIVE)

BRAND = "HUB SOBERANO"

_EXPEDITION_TITLES = {
    KIND_ORIGINAL: "🎒 Nova Maleta Retirada!",
    KIND_ADDITIVE: "➕ Novo Aditivo Adicionado!",
}


def format_brl(cents: int) -> str:
    """pt-BR currency: 123456 -> "R$ 1.234,56"."""
    sign = "-" if cents < 0 else ""
    reais, centavos = divmod(abs(int(cents)), 100)
    grouped = f"{reais:,}".replace(",", ".")
    return f"{sign}R$ {grouped},{centavos:02d}"


def digits_only(phone: str | None) -> str:
    return re.sub(r"\D", "", phone or "")


def wa_me_link(phone: str | None, body: str) -> str:
    """Click-to-chat URL with the message pre-filled."""
    number = digits_only(phone)
    if not number:
        raise ValidationError("representative has no phone number")
    return f"https://wa.me/{number}?text={quote(body, safe='')}"


def text_payload(phone: str | None, body: str) -> dict:
    return {
        "messaging_product": "whatsapp",
        "to": digits_only(phone),
        "type": "text",
        "text": {"body": body},
    }


def build_maleta_message(representative, inventory, *, today: datetime | None = None) -> str:
    """Control text listing what the maleta holds, priced at the current catalog."""
    lines = [
        f"*CONTROLE DE MALETA - {BRAND}*",
        f"*Vendedora:* {representative.name}",
        f"*Data:* {format_br_date(today or utcnow())}",
        "",
        "*ITENS NA MALETA:*",
    ]
    for item in inventory.items:
        code = f" ({item.product_code})" if item.product_code else ""
        lines.append(f"• {item.product_name}{code}")
        lines.append(f"  Qtd: {item.quantity} | Un: {format_brl(item.unit_price_cents)}")
    lines.append("")
    lines.append(f"*VALOR TOTAL: {format_brl(inventory.total_value_cents)}*")
    lines.append("")
    lines.append("_Por favor, confira os itens e qualquer divergência avise imediatamente._")
    return "\n".join(lines)


def _goal_reminder(policy: CommissionPolicy) -> list[str]:
    below = format_brl(policy.threshold_cents - 1)
    at_or_above = format_brl(policy.threshold_cents)
    return [
        "🚀 *Lembrete de Metas:*",
        f"• Até {below} em vendas ➡️ *{policy.base_rate_bps // 100}% de Comissão*",
        f"• A partir de {at_or_above} em vendas ➡️ *{policy.premium_rate_bps // 100}% de Comissão*",
    ]


def build_expedition_payload(
    *,
    phone: str | None,
    name: str,
    due_at: datetime | None,
    items: list[dict],
    photos_url: str | None = None,
    kind: str = KIND_ORIGINAL,
    policy: CommissionPolicy | None = None,
) -> dict:
    """
    Cloud API text payload sent when a maleta is mounted (ORIGINAL) or topped up (ADDITIVE).

    items: [{"name": str, "quantity": int}]
    """
    kind = (kind or "").upper()
    if kind not in EXPEDITION_KINDS:
        raise ValidationError(f"kind must be one of: {', '.join(EXPEDITION_KINDS)}")
    policy = policy or get_commission_policy()

    lines = [
        f"*{BRAND}* 💎",
        "",
        f"Olá, *{name}*! {_EXPEDITION_TITLES[kind]}",
        "",
        f"📅 *Data Limite para Acerto:* {format_br_date(due_at)}",
        "",
        "📦 *Itens Levados:*",
    ]
    lines.extend(f"- {i['quantity']}x {i['name']}" for i in items)
    if photos_url:
        lines.extend(["", f"📸 *Fotos das Peças:* {photos_url}"])
    lines.append("")
    lines.extend(_goal_reminder(policy))
    lines.extend(["", "Boas vendas e vamos bater essa meta! 💪✨"])

    return text_payload(phone, "\n".join(lines))


def send_whatsapp(payload: dict, *, transport: httpx.BaseTransport | None = None) -> bool:
    """POST the payload to the Cloud API. Returns True only when it was accepted."""
    cfg = current_app.config if has_app_context() else {}
    token = cfg.get("WHATSAPP_TOKEN")
    phone_number_id = cfg.get("WHATSAPP_PHONE_NUMBER_ID")

    if not token or not phone_number_id:
        logger.info("WhatsApp not configured; message to %s not sent", payload.get("to"))
        return False
    if not payload.get("to"):
        logger.warning("WhatsApp message skipped: no recipient")
        return False

    if transport is None and has_app_context():
        transport = current_app.extensions.get("whatsapp_transport")

    base_url = cfg.get("WHATSAPP_API_URL", "https://graph.facebook.com/v17.0").rstrip("/")
    url = f"{base_url}/{phone_number_id}/messages"
    try:
        with httpx.Client(timeout=cfg.get("WHATSAPP_TIMEOUT_SECONDS", 10.0), transport=transport) as client:
            resp = client.post(url, json=payload, headers={"Authorization": f"Bearer {token}"})
            resp.raise_for_status()
    except httpx.HTTPError as e:
        logger.warning("WhatsApp send to %s failed: %s", payload.get("to"), e)
        return False

    logger.info("WhatsApp message sent to %s", payload.get("to"))
    return True
