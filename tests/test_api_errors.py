"""Tests for mapping query errors to HTTP responses."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from docquery.api import error_code_for, register_exception_handlers
from docquery.errors import (
    BuilderConsumedError,
    NotFoundError,
    QueryError,
    StoreIOError,
    TransactionClosedError,
    ValidationError,
)


@pytest.fixture
def api_client():
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/members/{member_id}")
    async def get_member(member_id: str):
        if member_id == "missing":
            raise NotFoundError("Document not found", collection="member")
        if member_id == "bad":
            raise ValidationError("Specify filter before writing", collection="member")
        if member_id == "down":
            raise StoreIOError("Aggregation failed: timed out", collection="member")
        return {"id": member_id}

    return TestClient(app)


class TestHandlers:
    def test_success_untouched(self, api_client):
        response = api_client.get("/members/m1")
        assert response.status_code == 200
        assert response.json() == {"id": "m1"}

    def test_not_found(self, api_client):
        response = api_client.get("/members/missing")
        assert response.status_code == 404
        assert response.json() == {
            "error": "NotFoundError",
            "detail": "Document not found (collection=member)",
            "code": "not_found",
        }

    def test_validation(self, api_client):
        response = api_client.get("/members/bad")
        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"

    def test_store_unavailable(self, api_client):
        response = api_client.get("/members/down")
        assert response.status_code == 503
        assert response.json()["code"] == "store_unavailable"


class TestErrorCodes:
    def test_most_specific_class_wins(self):
        assert error_code_for(TransactionClosedError("closed")) == "transaction_closed"

    def test_builder_consumed(self):
        assert error_code_for(BuilderConsumedError("used")) == "builder_consumed"

    def test_unknown_subclass_falls_back(self):
        class CustomError(QueryError):
            pass

        assert error_code_for(CustomError("x")) == "query_error"

    def test_subclass_of_known_error(self):
        class MissingMember(NotFoundError):
            pass

        assert error_code_for(MissingMember("x")) == "not_found"
