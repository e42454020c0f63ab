"""Tests for suggestion persistence and the generic review flag."""

import pytest

from edulink.core.exceptions import NotFoundError, UnknownSuggestionTypeError, ValidationError
from edulink.models import SuggestionType, Tenant
from edulink.services.suggestion_store import SuggestionStore, relationship_payload


def payload(confidence, source="s1", target="c1"):
    return relationship_payload("student_class", source, target, confidence, "test")


@pytest.fixture
def store(db, tenant):
    return SuggestionStore(db, tenant.id)


async def add(store, confidence, entity_id="s1", suggestion_type=SuggestionType.RELATIONSHIP_INFERENCE):
    suggestion = store.build(
        entity_type="student",
        entity_id=entity_id,
        suggestion_type=suggestion_type,
        suggestion_data=payload(confidence, source=entity_id),
        confidence_score=confidence,
        target_entity_type="class",
    )
    return await store.save(suggestion)


class TestRelationshipPayload:
    def test_layout(self):
        data = relationship_payload("parent_child", "p1", "s1", 0.81234, "Surname match", strategy="surname_matching")

        assert data == {
            "type": "parent_child",
            "source_entity": "p1",
            "target_entity": "s1",
            "confidence": 0.8123,
            "reasoning": "Surname match",
            "data": {},
            "strategy": "surname_matching",
        }


class TestListing:
    async def test_list_for_orders_by_confidence(self, store):
        await add(store, 0.6)
        await add(store, 0.9)
        await add(store, 0.75)
        await add(store, 0.95, entity_id="someone-else")

        suggestions = await store.list_for("student", "s1")

        assert [s.confidence_score for s in suggestions] == [0.9, 0.75, 0.6]

    async def test_list_for_skips_accepted(self, store):
        kept = await add(store, 0.6)
        accepted = await add(store, 0.9)
        await store.set_accepted(accepted.id, True)

        suggestions = await store.list_for("student", "s1")

        assert [s.id for s in suggestions] == [kept.id]

    async def test_list_for_separates_suggestion_types(self, store):
        await add(store, 0.6)
        linking = await add(store, 0.7, suggestion_type=SuggestionType.INTELLIGENT_LINKING)

        suggestions = await store.list_for("student", "s1", SuggestionType.INTELLIGENT_LINKING)

        assert [s.id for s in suggestions] == [linking.id]

    async def test_list_all_applies_default_floor(self, store):
        await add(store, 0.3)
        await add(store, 0.5)
        await add(store, 0.8)

        default = await store.list_all()
        strict = await store.list_all(min_confidence=0.7)

        assert [s.confidence_score for s in default] == [0.8, 0.5]
        assert [s.confidence_score for s in strict] == [0.8]

    async def test_list_generic_includes_accepted(self, store):
        await add(store, 0.4)
        accepted = await add(store, 0.9)
        await store.set_accepted(accepted.id, True)

        everything = await store.list_generic()
        only_accepted = await store.list_generic(accepted=True)

        assert len(everything) == 2
        assert [s.id for s in only_accepted] == [accepted.id]

    async def test_unknown_suggestion_type(self, store):
        with pytest.raises(UnknownSuggestionTypeError):
            await store.list_generic(suggestion_type="gut_feeling")


class TestSetAccepted:
    async def test_accepting_stamps_applied_at(self, store):
        suggestion = await add(store, 0.8)
        assert suggestion.accepted is False
        assert suggestion.applied_at is None

        updated = await store.set_accepted(suggestion.id, True)

        assert updated.accepted is True
        assert updated.applied_at is not None

    async def test_applied_data_replaces_payload(self, store):
        suggestion = await add(store, 0.8)

        updated = await store.set_accepted(suggestion.id, True, {"note": "reviewed"})

        assert updated.suggestion_data == {"note": "reviewed"}

    async def test_accepted_cannot_be_reverted(self, store):
        suggestion = await add(store, 0.8)
        await store.set_accepted(suggestion.id, True)

        with pytest.raises(ValidationError):
            await store.set_accepted(suggestion.id, False)

    async def test_declining_keeps_it_open(self, store):
        suggestion = await add(store, 0.8)

        updated = await store.set_accepted(suggestion.id, False)

        assert updated.accepted is False
        assert updated.applied_at is None

    async def test_missing_suggestion(self, store):
        with pytest.raises(NotFoundError):
            await store.set_accepted("missing", True)

    async def test_other_tenants_are_invisible(self, db, store):
        other = Tenant(school_code="edl002", school_name="Other School")
        db.add(other)
        await db.commit()
        suggestion = await add(store, 0.8)

        with pytest.raises(NotFoundError):
            await SuggestionStore(db, other.id).get_or_404(suggestion.id)
