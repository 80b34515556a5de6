# Overview: Image recognition boundary; asks the vision model for JSON and validates it before anyone sees it.

from __future__ import annotations

import base64
import json
import logging
from typing import Iterable, Optional

import httpx
from flask import current_app
from pydantic import ValidationError as SchemaValidationError

from hub.time_utils import utcnow, parse_iso_datetime, to_utc_z
from ..validation import ValidationError, parse_money_to_cents
from ..models.catalog import CATEGORIES, DEFAULT_CATEGORY
from .recognition_schemas import (
    KIND_PRODUCT_EXTRACTION,
    KIND_SALE_EXTRACTION,
    KIND_MALETA_EXTRACTION,
    KIND_MATCH_SUGGESTION,
    RECOGNITION_KINDS,
    recognition_result_adapter,
    wrap_payload,
)
from .snapshots import load_products, load_representatives, ProductSnapshot, RepresentativeSnapshot

"""
Recognition Invariants (authoritative)

- The model's answer is untrusted input. It is parsed into exactly one tagged
  variant (product-extraction, sale-extraction, maleta-extraction,
  match-suggestion); invalid JSON or a schema mismatch raises RecognitionError.
- Recognition never writes. Results are returned for review and committed only
  through the catalog/ledger operations.
- Match suggestions never reference products outside the catalog: unknown ids
  are dropped.
- One synchronous request per call, bounded by AI_TIMEOUT_SECONDS, no retry.
"""

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/png", "image/webp", "image/heic", "application/pdf"}
DEFAULT_CLIENT = "Cliente"
UNKNOWN_PRODUCT = "Desconhecido"


class RecognitionError(Exception):
    """The vision collaborator failed or answered something unusable (502)."""


class GeminiRecognitionClient:
    """
    Minimal Generative Language REST client.

    Sends one image plus an instruction and returns the raw JSON text of the
    first candidate. transport is injectable for tests (httpx.MockTransport).
    """

    def __init__(
        self,
        *,
        api_key: str | None,
        model: str,
        base_url: str,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_config(cls, config, transport: httpx.BaseTransport | None = None) -> "GeminiRecognitionClient":
        return cls(
            api_key=config.get("GEMINI_API_KEY"),
            model=config.get("GEMINI_MODEL", "gemini-2.0-flash"),
            base_url=config.get("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"),
            timeout=config.get("AI_TIMEOUT_SECONDS", 30.0),
            transport=transport,
        )

    def generate(self, *, image: bytes, mime_type: str, instruction: str) -> str:
        if not self.api_key:
            raise RecognitionError("GEMINI_API_KEY not configured")

        url = f"{self.base_url}/models/{self.model}:generateContent"
        body = {
            "contents": [
                {
                    "parts": [
                        {"inline_data": {"mime_type": mime_type, "data": base64.b64encode(image).decode("ascii")}},
                        {"text": instruction},
                    ]
                }
            ],
            "generationConfig": {"responseMimeType": "application/json"},
        }

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                resp = client.post(url, params={"key": self.api_key}, json=body)
        except httpx.HTTPError as e:
            logger.warning("Recognition request failed: %s", e)
            raise RecognitionError("recognition service unavailable") from e

        if resp.status_code >= 400:
            logger.warning("Recognition request rejected: HTTP %s %s", resp.status_code, resp.text[:200])
            raise RecognitionError(f"recognition service returned HTTP {resp.status_code}")

        try:
            data = resp.json()
            return data["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.warning("Recognition response has no candidate text")
            raise RecognitionError("recognition response has no content") from e


def get_recognition_client() -> GeminiRecognitionClient:
    """App-wide client; tests register one in app.extensions["recognition_client"]."""
    client = current_app.extensions.get("recognition_client")
    if client is None:
        client = GeminiRecognitionClient.from_config(current_app.config)
    return client


def parse_recognition(kind: str, raw_text: str | None):
    """Validate raw model output into the variant for kind."""
    if kind not in RECOGNITION_KINDS:
        raise ValidationError(f"kind must be one of: {', '.join(RECOGNITION_KINDS)}")
    try:
        payload = json.loads(raw_text or "")
        return recognition_result_adapter.validate_python(wrap_payload(kind, payload))
    except json.JSONDecodeError as e:
        logger.warning("Rejected %s response: invalid JSON (%s)", kind, e)
        raise RecognitionError("recognition response is not valid JSON") from e
    except (SchemaValidationError, ValueError) as e:
        logger.warning("Rejected %s response: %s", kind, e)
        raise RecognitionError("recognition response does not match the expected schema") from e


# ==================== PROMPTS ====================

def _catalog_code(p: ProductSnapshot) -> str:
    return f"{p.name} (Cod:{p.sku or '-'})"


def _catalog_line(p: ProductSnapshot) -> str:
    return f"{p.name} (Cod:{p.sku or '-'}, Preço:{p.price_cents / 100:.2f})"


def product_extraction_prompt() -> str:
    return (
        "Analise as imagens de uma lista de estoque ou rascunho de fechamento e extraia TODOS os itens, "
        "linha por linha. Para cada item identifique nome, preço (R$ 149,90 vira 149.90), categoria e código "
        "(se houver). Formato: [{\"name\": string, \"code\": string, \"price\": number, \"stock\": number, "
        f"\"category\": string}}]. As categorias permitidas são: {', '.join(CATEGORIES)}. "
        "Retorne APENAS o JSON puro."
    )


def sale_extraction_prompt(products: Iterable[ProductSnapshot], reps: Iterable[RepresentativeSnapshot]) -> str:
    return (
        "Analise esta planilha física ou anotação de vendas e extraia todas as linhas de venda. "
        "Para cada venda retorne: date (ISO, se detectada), client, productName (nome ou código), "
        f"value (número decimal), repName e category (uma das: {', '.join(CATEGORIES)}). "
        f"Vendedoras conhecidas: {', '.join(r.name for r in reps)}. "
        f"Produtos conhecidos: {', '.join(_catalog_code(p) for p in products)}. "
        "Retorne APENAS um JSON puro no formato array de objetos."
    )


def maleta_extraction_prompt(products: Iterable[ProductSnapshot]) -> str:
    return (
        "Analise esta foto de uma maleta de semijoias ou lista de conferência e identifique todos os "
        "produtos e suas quantidades. Para cada item retorne: productName (nome ou código), quantity "
        "(inteiro) e value (preço unitário). "
        f"Produtos conhecidos no catálogo: {', '.join(_catalog_line(p) for p in products)}. "
        "Retorne APENAS um JSON puro no formato array de objetos."
    )


def match_suggestion_prompt(products: Iterable[ProductSnapshot]) -> str:
    catalog = [
        {"id": str(p.id), "nome": p.name, "codigo": p.sku, "categoria": p.category,
         "preco": p.price_cents / 100, "estoque": p.stock}
        for p in products
    ]
    return (
        "Você é um scanner de catálogo de semijoias. Identifique qual produto do catálogo corresponde à imagem. "
        f"Catálogo: {json.dumps(catalog, ensure_ascii=False)}. "
        "Retorne um JSON com matchId (ID se tiver certeza absoluta), suggestionsIds (até 4 IDs similares "
        "se houver dúvida) e reason (motivo da escolha). Responda APENAS o JSON."
    )


# ==================== MATCHING ====================

def match_product(name: str | None, products: Iterable[ProductSnapshot]) -> Optional[ProductSnapshot]:
    """First product whose name contains the text, or whose code appears in it."""
    text = (name or "").strip().lower()
    if not text:
        return None
    for p in products:
        if text in p.name.lower():
            return p
        if p.sku and p.sku.lower() in text:
            return p
    return None


def match_representative(name: str | None, reps: Iterable[RepresentativeSnapshot]) -> Optional[RepresentativeSnapshot]:
    text = (name or "").strip().lower()
    if not text:
        return None
    for r in reps:
        if text in r.name.lower():
            return r
    return None


def _to_cents(value: float | None) -> int:
    if value is None:
        return 0
    return parse_money_to_cents(value)


def _sale_date(raw: str | None):
    try:
        return parse_iso_datetime(raw) or utcnow()
    except ValueError:
        return utcnow()


def review_products(result) -> list[dict]:
    """Rows ready for catalog_service.import_products()."""
    return [
        {
            "name": item.name,
            "sku": item.code or None,
            "category": item.category,
            "price_cents": _to_cents(item.price),
            "stock": item.stock or 0,
        }
        for item in result.items
    ]


def review_sales(result, products, reps) -> list[dict]:
    products, reps = tuple(products), tuple(reps)
    rows = []
    for item in result.items:
        product = match_product(item.productName, products)
        rep = match_representative(item.repName, reps)
        rows.append({
            "occurred_at": to_utc_z(_sale_date(item.date)),
            "client": item.client or DEFAULT_CLIENT,
            "product_name": item.productName or UNKNOWN_PRODUCT,
            "value_cents": _to_cents(item.value),
            "rep_name": item.repName or "",
            "category": item.category or DEFAULT_CATEGORY,
            "product_id": product.id if product else None,
            "representative_id": rep.id if rep else None,
        })
    return rows


def review_maleta(result, products) -> list[dict]:
    """A matched product is priced from the catalog, not from the photo."""
    products = tuple(products)
    rows = []
    for item in result.items:
        product = match_product(item.productName, products)
        rows.append({
            "product_name": item.productName or UNKNOWN_PRODUCT,
            "quantity": item.quantity,
            "value_cents": product.price_cents if product else _to_cents(item.value),
            "product_id": product.id if product else None,
        })
    return rows


def review_match(result, products) -> dict:
    by_id = {str(p.id): p for p in products}
    match = by_id.get(result.matchId) if result.matchId else None
    dropped = [i for i in result.suggestionsIds if i not in by_id]
    if dropped or (result.matchId and match is None):
        logger.info("Dropped unknown product ids from match suggestion: %s", dropped or [result.matchId])
    return {
        "match_id": match.id if match else None,
        "suggestion_ids": [by_id[i].id for i in result.suggestionsIds if i in by_id],
        "reason": result.reason or "",
    }


# ==================== TASKS ====================

def _check_image(image: bytes, mime_type: str | None) -> str:
    if not image:
        raise ValidationError("image is required")
    mime = (mime_type or "").lower()
    if mime not in ALLOWED_IMAGE_TYPES:
        raise ValidationError(f"unsupported image type: {mime_type}")
    return mime


def recognize(kind: str, *, image: bytes, mime_type: str, client: GeminiRecognitionClient | None = None) -> dict:
    """
    Run one recognition task against the current catalog and return review rows.

    {"kind": kind, "items": [...]} for extractions, {"kind": kind, "match": {...}}
    for match suggestions.
    """
    if kind not in RECOGNITION_KINDS:
        raise ValidationError(f"kind must be one of: {', '.join(RECOGNITION_KINDS)}")
    mime = _check_image(image, mime_type)
    client = client or get_recognition_client()

    products = load_products()
    if kind == KIND_PRODUCT_EXTRACTION:
        instruction = product_extraction_prompt()
    elif kind == KIND_SALE_EXTRACTION:
        reps = load_representatives()
        instruction = sale_extraction_prompt(products, reps)
    elif kind == KIND_MALETA_EXTRACTION:
        instruction = maleta_extraction_prompt(products)
    else:
        instruction = match_suggestion_prompt(products)

    result = parse_recognition(kind, client.generate(image=image, mime_type=mime, instruction=instruction))

    if kind == KIND_PRODUCT_EXTRACTION:
        return {"kind": kind, "items": review_products(result)}
    if kind == KIND_SALE_EXTRACTION:
        return {"kind": kind, "items": review_sales(result, products, reps)}
    if kind == KIND_MALETA_EXTRACTION:
        return {"kind": kind, "items": review_maleta(result, products)}
    return {"kind": KIND_MATCH_SUGGESTION, "match": review_match(result, products)}
