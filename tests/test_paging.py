"""Tests for PagingResponse."""

from docquery.paging import PagingResponse


class TestBuild:
    def test_without_total(self):
        page = PagingResponse.build(["a", "b"], page=0, size=2)
        assert page.items == ["a", "b"]
        assert page.total_items is None
        assert page.total_pages is None

    def test_total_pages_rounds_up(self):
        page = PagingResponse.build([], page=3, size=10, total_items=25)
        assert page.total_pages == 3

    def test_exact_multiple(self):
        assert PagingResponse.build([], page=0, size=5, total_items=20).total_pages == 4

    def test_zero_size(self):
        assert PagingResponse.build([], page=0, size=0, total_items=7).total_pages == 0

    def test_serializes_to_json(self):
        page = PagingResponse[int].build([1, 2], page=1, size=2, total_items=4)
        assert page.model_dump() == {
            "items": [1, 2],
            "page": 1,
            "size": 2,
            "total_items": 4,
            "total_pages": 2,
        }
