# Overview: Pytest coverage for the recognition boundary (schema validation, review rows, HTTP client).

import json

import httpx
import pytest

from hub.services.recognition_schemas import (
    KIND_MALETA_EXTRACTION,
    KIND_MATCH_SUGGESTION,
    KIND_PRODUCT_EXTRACTION,
    KIND_SALE_EXTRACTION,
)
from hub.services.recognition_service import (
    GeminiRecognitionClient,
    RecognitionError,
    match_product,
    parse_recognition,
    recognize,
    review_match,
)
from hub.services.snapshots import ProductSnapshot
from hub.validation import ValidationError


PNG = b"\x89PNG\r\n\x1a\nfake"


def gemini_body(answer) -> dict:
    text = answer if isinstance(answer, str) else json.dumps(answer)
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def make_client(answer=None, *, status=200, seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        if status >= 400:
            return httpx.Response(status, json={"error": {"message": "boom"}})
        return httpx.Response(200, json=gemini_body(answer))

    return GeminiRecognitionClient(
        api_key="test-key",
        model="gemini-test",
        base_url="https://gemini.test/v1beta",
        transport=httpx.MockTransport(handler),
    )


class TestParseRecognition:
    """Untrusted model output is validated into exactly one variant."""

    def test_product_rows(self):
        result = parse_recognition(KIND_PRODUCT_EXTRACTION, json.dumps([
            {"name": " Brinco Argola ", "code": "BR-9", "price": 149.9, "stock": 3, "category": "brincos"},
            {"name": "Colar", "price": "59.90", "category": "Relógios", "extra": "ignored"},
        ]))
        assert result.kind == KIND_PRODUCT_EXTRACTION
        assert result.items[0].name == "Brinco Argola"
        assert result.items[0].category == "Brincos"
        # unknown category falls back to the default
        assert result.items[1].category == "Brincos"
        assert result.items[1].price == pytest.approx(59.9)

    @pytest.mark.parametrize("kind, raw", [
        (KIND_PRODUCT_EXTRACTION, "not json"),
        (KIND_PRODUCT_EXTRACTION, json.dumps({"name": "not a list"})),
        (KIND_PRODUCT_EXTRACTION, json.dumps([{"name": "Sem preço"}])),
        (KIND_PRODUCT_EXTRACTION, json.dumps([{"name": "Negativo", "price": -1}])),
        (KIND_MALETA_EXTRACTION, json.dumps([{"productName": "Anel", "quantity": 0}])),
        (KIND_SALE_EXTRACTION, json.dumps([{"client": "Ana", "value": 10}])),
        (KIND_MATCH_SUGGESTION, json.dumps(["not", "an", "object"])),
        (KIND_MATCH_SUGGESTION, json.dumps({"suggestionsIds": "1,2"})),
        (KIND_MATCH_SUGGESTION, None),
    ])
    def test_schema_mismatch(self, kind, raw):
        with pytest.raises(RecognitionError):
            parse_recognition(kind, raw)

    def test_unknown_kind(self):
        with pytest.raises(ValidationError):
            parse_recognition("face-recognition", "[]")

    def test_match_suggestions_are_capped(self):
        result = parse_recognition(KIND_MATCH_SUGGESTION, json.dumps(
            {"matchId": 3, "suggestionsIds": [1, 2, 3, 4, 5, 6], "reason": "formato"}
        ))
        assert result.matchId == "3"
        assert result.suggestionsIds == ["1", "2", "3", "4"]


class TestReview:
    CATALOG = (
        ProductSnapshot(id=1, name="Brinco Gota", sku="BR-01", category="Brincos", price_cents=10000, stock=10),
        ProductSnapshot(id=2, name="Anel Solitário", sku="AN-01", category="Anéis", price_cents=5000, stock=5),
    )

    def test_match_product_by_name_or_code(self):
        assert match_product("gota", self.CATALOG).id == 1
        assert match_product("cod AN-01 dourado", self.CATALOG).id == 2
        assert match_product("", self.CATALOG) is None
        assert match_product("pulseira", self.CATALOG) is None

    def test_unknown_ids_are_dropped(self):
        result = parse_recognition(KIND_MATCH_SUGGESTION, json.dumps(
            {"matchId": "99", "suggestionsIds": ["2", "77", "1"]}
        ))
        review = review_match(result, self.CATALOG)
        assert review == {"match_id": None, "suggestion_ids": [2, 1], "reason": ""}


class TestClient:
    def test_request_shape(self):
        seen = []
        client = make_client([], seen=seen)
        text = client.generate(image=PNG, mime_type="image/png", instruction="extraia")

        assert text == "[]"
        [req] = seen
        assert req.url.path == "/v1beta/models/gemini-test:generateContent"
        assert req.url.params["key"] == "test-key"
        body = json.loads(req.content)
        parts = body["contents"][0]["parts"]
        assert parts[0]["inline_data"]["mime_type"] == "image/png"
        assert parts[1]["text"] == "extraia"
        assert body["generationConfig"]["responseMimeType"] == "application/json"

    def test_http_error(self):
        with pytest.raises(RecognitionError):
            make_client(status=500).generate(image=PNG, mime_type="image/png", instruction="x")

    def test_transport_failure(self):
        def handler(request):
            raise httpx.ConnectError("offline", request=request)

        client = GeminiRecognitionClient(
            api_key="k", model="m", base_url="https://gemini.test", transport=httpx.MockTransport(handler),
        )
        with pytest.raises(RecognitionError):
            client.generate(image=PNG, mime_type="image/png", instruction="x")

    def test_missing_candidate(self):
        client = GeminiRecognitionClient(
            api_key="k", model="m", base_url="https://gemini.test",
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"candidates": []})),
        )
        with pytest.raises(RecognitionError):
            client.generate(image=PNG, mime_type="image/png", instruction="x")

    def test_missing_api_key(self):
        client = GeminiRecognitionClient(api_key=None, model="m", base_url="https://gemini.test")
        with pytest.raises(RecognitionError):
            client.generate(image=PNG, mime_type="image/png", instruction="x")


class TestRecognize:
    def test_product_extraction(self, app, db_session):
        client = make_client([{"name": "Pulseira Elos", "code": "PU-1", "price": 89.9, "category": "Pulseiras e Colares"}])
        out = recognize(KIND_PRODUCT_EXTRACTION, image=PNG, mime_type="image/png", client=client)

        assert out["kind"] == KIND_PRODUCT_EXTRACTION
        assert out["items"] == [{
            "name": "Pulseira Elos",
            "sku": "PU-1",
            "category": "Pulseiras e Colares",
            "price_cents": 8990,
            "stock": 0,
        }]

    def test_sale_extraction_matches_catalog_and_reps(self, app, db_session, rep_maria, product_a):
        client = make_client([
            {"date": "2026-10-01", "client": "Joana", "productName": "BR-01", "value": 120, "repName": "maria"},
            {"productName": "Tiara", "value": 30, "repName": ""},
        ])
        out = recognize(KIND_SALE_EXTRACTION, image=PNG, mime_type="image/jpeg", client=client)

        first, second = out["items"]
        assert first["product_id"] == product_a.id
        assert first["representative_id"] == rep_maria.id
        assert first["value_cents"] == 12000
        assert first["occurred_at"] == "2026-10-01T00:00:00Z"
        assert second["product_id"] is None
        assert second["representative_id"] is None
        assert second["client"] == "Cliente"

    def test_maleta_extraction_uses_catalog_price(self, app, db_session, product_a):
        client = make_client([
            {"productName": "Brinco Gota", "quantity": 2, "value": 1},
            {"productName": "Peça nova", "quantity": 1, "value": 45.5},
        ])
        out = recognize(KIND_MALETA_EXTRACTION, image=PNG, mime_type="image/png", client=client)
        assert [(i["product_id"], i["value_cents"]) for i in out["items"]] == [(product_a.id, 10000), (None, 4550)]

    def test_match_suggestion(self, app, db_session, product_a, product_b):
        client = make_client({"matchId": str(product_b.id), "suggestionsIds": [str(product_a.id), "404"],
                              "reason": "aro liso"})
        out = recognize(KIND_MATCH_SUGGESTION, image=PNG, mime_type="image/webp", client=client)
        assert out["match"] == {"match_id": product_b.id, "suggestion_ids": [product_a.id], "reason": "aro liso"}

    def test_rejects_unsupported_image(self, app, db_session):
        with pytest.raises(ValidationError):
            recognize(KIND_PRODUCT_EXTRACTION, image=b"GIF89a", mime_type="image/gif", client=make_client([]))
        with pytest.raises(ValidationError):
            recognize(KIND_PRODUCT_EXTRACTION, image=b"", mime_type="image/png", client=make_client([]))

    def test_schema_mismatch_surfaces_as_recognition_error(self, app, db_session):
        client = make_client({"unexpected": True})
        with pytest.raises(RecognitionError):
            recognize(KIND_MALETA_EXTRACTION, image=PNG, mime_type="image/png", client=client)
