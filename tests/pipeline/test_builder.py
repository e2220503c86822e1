"""Tests for pipeline compilation order and builder state."""

from docquery.pipeline.builder import QueryBuilder, query
from docquery.pipeline.filters import equal, is_, or_
from docquery.pipeline.lookup import many, one, one_merge_to


def stage_names(pipeline):
    return [next(iter(stage)) for stage in pipeline]


class TestEmptyBuilder:
    def test_no_stages(self):
        assert query("member").build_pipeline() == []

    def test_collection_kept(self):
        assert query("member").collection == "member"


class TestPagination:
    def test_skip_then_limit(self):
        """page=2, size=10 compiles to $skip 20 then $limit 10."""
        pipeline = query("member").paginate(2, 10).build_pipeline()
        assert pipeline == [{"$skip": 20}, {"$limit": 10}]

    def test_first_page_skips_nothing(self):
        assert query("member").paginate(0, 25).build_pipeline() == [{"$skip": 0}, {"$limit": 25}]

    def test_no_paging_stages_when_unset(self):
        pipeline = query("member").filter([is_("deleted", False)]).build_pipeline()
        assert "$skip" not in stage_names(pipeline)
        assert "$limit" not in stage_names(pipeline)


class TestSort:
    def test_preserves_order(self):
        """[(created_at, -1), (name, 1)] -> {created_at: -1, name: 1} in that order."""
        pipeline = query("member").sort([("created_at", -1), ("name", 1)]).build_pipeline()
        assert pipeline == [{"$sort": {"created_at": -1, "name": 1}}]
        assert list(pipeline[0]["$sort"]) == ["created_at", "name"]

    def test_repeated_key_keeps_position(self):
        builder = query("member").sort([("created_at", -1), ("name", 1)]).sort([("created_at", 1)])
        assert builder.build_pipeline() == [{"$sort": {"created_at": 1, "name": 1}}]


class TestGroup:
    def test_group_on_field(self):
        pipeline = query("transaction").group_by("branch_id", {"total": {"$sum": "$total"}}).build_pipeline()
        assert pipeline == [{"$group": {"_id": "$branch_id", "total": {"$sum": "$total"}}}]

    def test_group_everything(self):
        pipeline = query("transaction").group_by(None, {"n": {"$sum": 1}}).build_pipeline()
        assert pipeline == [{"$group": {"_id": None, "n": {"$sum": 1}}}]


class TestStageOrder:
    def test_fixed_order_regardless_of_call_order(self):
        builder = (
            QueryBuilder("member")
            .paginate(1, 5)
            .sort([("created_at", -1)])
            .group_by("status")
            .lookup([one("user", "user_id", "_id", "user")])
            .filter([equal("status", "active")])
        )
        assert stage_names(builder.build_pipeline()) == [
            "$match",
            "$lookup",
            "$unwind",
            "$sort",
            "$group",
            "$skip",
            "$limit",
        ]

    def test_lookups_expand_in_call_order(self):
        builder = query("member").lookup(
            [
                one("user", "user_id", "_id", "user"),
                one_merge_to("file", "user.picture_id", "_id", "picture", "user"),
            ]
        ).lookup([many("member-log", "_id", "member_id", "logs")])

        pipeline = builder.build_pipeline()
        assert stage_names(pipeline) == ["$lookup", "$unwind", "$lookup", "$set", "$lookup"]
        assert pipeline[0]["$lookup"]["as"] == "user"
        assert pipeline[4]["$lookup"]["as"] == "logs"

    def test_build_is_repeatable(self):
        builder = query("member").filter([equal("status", "active")]).paginate(0, 10)
        assert builder.build_pipeline() == builder.build_pipeline()
        assert builder.compile() == builder.build_pipeline()


class TestFilterAccumulation:
    def test_filter_and_or(self):
        builder = query("thread").filter(
            [is_("deleted", False), or_([is_("visibility", "public"), is_("author_id", "u1")])]
        )
        assert builder.build_pipeline() == [
            {
                "$match": {
                    "deleted": False,
                    "$or": [{"visibility": "public"}, {"author_id": "u1"}],
                }
            }
        ]

    def test_and_accepts_raw_documents(self):
        builder = query("thread").and_({"votes": {"$gt": 3}})
        assert builder.build_filter() == {"votes": {"$gt": 3}}

    def test_or_method(self):
        builder = query("thread").or_(or_([is_("a", 1)]), or_([is_("b", 2)]))
        assert builder.build_filter() == {"$and": [{"$or": [{"a": 1}]}, {"$or": [{"b": 2}]}]}

    def test_text_in_match_not_in_filter(self):
        builder = query("thread").text("coffee").filter([is_("deleted", False)])
        assert builder.build_pipeline() == [
            {"$match": {"$text": {"$search": "coffee"}, "deleted": False}}
        ]
        assert builder.build_filter() == {"deleted": False}

    def test_match_stages_only(self):
        builder = query("thread").filter([is_("deleted", False)]).sort([("created_at", -1)])
        assert builder.match_stages() == [{"$match": {"deleted": False}}]


class TestConsume:
    def test_accumulation_allowed_after_consume(self):
        builder = query("member")
        builder.consume()
        assert builder.consumed
        builder.paginate(0, 1)
        assert builder.window.skip == 0
