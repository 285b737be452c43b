"""Tests for the dynamic field registry facade."""

# purpose: cover add/get/update/delete/list semantics, validation and cache invalidation
# status: active

from datetime import date

import pytest
from sqlalchemy.exc import OperationalError

from dynamic_fields import models
from dynamic_fields.cache import MemoryCache
from dynamic_fields.context import build_context
from dynamic_fields.errors import (
    DuplicateDynamicFieldError,
    DynamicFieldNotFoundError,
    DynamicFieldStoreError,
    DynamicFieldValidationError,
)
from dynamic_fields.registry import (
    CACHE_NAMESPACE,
    MAX_FIELD_ORDER,
    dump_config,
    load_config,
)
from dynamic_fields.schemas import ListResultType
from .conftest import add_field


def test_severity_scenario(registry):
    field_id = registry.add(
        name="Severity",
        label="Severity",
        field_order=5,
        field_type="Dropdown",
        object_type="Ticket",
        config={"options": ["Low", "High"]},
        valid_id=1,
        user_id=1,
    )
    assert field_id

    record = registry.get(name="Severity")
    assert record.id == field_id
    assert record.name == "Severity"
    assert record.field_order == 5
    assert record.config == {"options": ["Low", "High"]}
    assert record.create_time is not None
    assert record.change_time is not None


def test_config_round_trip_nested(registry):
    config = {
        "possible_values": {"a": "Alpha", "b": "Beta"},
        "defaults": [1, 2.5, None, True, "x"],
        "nested": {"deep": [{"k": [1, {"z": False}]}]},
        "empty": {},
    }
    field_id = add_field(registry, "Nested", 1, config=config)

    assert registry.get(field_id=field_id).config == config
    # second read comes from the cache and must be equal as well
    assert registry.get(field_id=field_id).config == config
    assert load_config(dump_config(config)) == config


def test_empty_config_is_accepted(registry):
    field_id = add_field(registry, "Plain", 1, config={})
    assert registry.get(field_id=field_id).config == {}


def test_add_string_field_order(registry):
    field_id = add_field(registry, "FromForm", "12")
    assert registry.get(field_id=field_id).field_order == 12


@pytest.mark.parametrize(
    "missing",
    ["name", "label", "field_order", "field_type", "object_type", "config", "valid_id", "user_id"],
)
def test_add_requires_every_argument(registry, missing):
    params = {
        "name": "Needed",
        "label": "Needed",
        "field_order": 1,
        "field_type": "Text",
        "object_type": "Ticket",
        "config": {},
        "valid_id": 1,
        "user_id": 1,
    }
    params[missing] = None
    with pytest.raises(DynamicFieldValidationError, match=f"Need {missing}"):
        registry.add(**params)
    assert registry.list(valid=False) == []


@pytest.mark.parametrize("name", ["Bad Name", "bad-name", "naïve", "", "under_score"])
def test_add_rejects_malformed_name(registry, name):
    with pytest.raises(DynamicFieldValidationError):
        add_field(registry, name, 1)
    assert registry.list(valid=False) == []


@pytest.mark.parametrize("field_order", ["5a", "-1", "5.0", " 5", True, 0, "0", 2.5])
def test_add_rejects_malformed_field_order(registry, field_order):
    with pytest.raises(DynamicFieldValidationError):
        add_field(registry, "Ordered", field_order)
    assert registry.list(valid=False) == []


def test_add_rejects_unregistered_field_type(registry):
    with pytest.raises(DynamicFieldValidationError, match="Unknown|No backend"):
        add_field(registry, "Mystery", 1, field_type="Hologram")


def test_duplicate_name_rejected_without_mutation(registry):
    field_id = add_field(registry, "Color", 1, label="Colour")
    before = registry.get(field_id=field_id)

    with pytest.raises(DuplicateDynamicFieldError):
        add_field(registry, "Color", 4, label="Other")

    after = registry.get(field_id=field_id)
    assert after == before
    assert registry.list(valid=False) == [field_id]


def test_get_requires_exactly_one_key(registry):
    with pytest.raises(DynamicFieldValidationError):
        registry.get()
    with pytest.raises(DynamicFieldValidationError):
        registry.get(field_id=1, name="Both")


def test_get_missing_raises_not_found(registry):
    with pytest.raises(DynamicFieldNotFoundError):
        registry.get(field_id=999)
    with pytest.raises(DynamicFieldNotFoundError):
        registry.get(name="Nobody")


def test_get_serves_from_cache_until_write(registry, db):
    field_id = add_field(registry, "Cached", 1, label="Before")
    assert registry.get(field_id=field_id).label == "Before"

    db.query(models.DynamicField).filter(models.DynamicField.id == field_id).update(
        {models.DynamicField.label: "Sneaky"}
    )
    db.commit()
    assert registry.get(field_id=field_id).label == "Before"

    record = registry.get(field_id=field_id)
    registry.update(
        field_id=field_id,
        name=record.name,
        label="After",
        field_order=record.field_order,
        field_type=record.field_type,
        object_type=record.object_type,
        config=record.config,
        valid_id=record.valid_id,
        user_id=3,
    )
    assert registry.get(field_id=field_id).label == "After"
    assert registry.get(name="Cached").label == "After"


def test_update_changes_every_column(registry, db):
    field_id = add_field(registry, "Mutable", 1)

    assert registry.update(
        field_id=field_id,
        name="Mutated",
        label="Changed",
        field_order=1,
        field_type="Dropdown",
        object_type="Article",
        config={"options": ["x"]},
        valid_id=2,
        user_id=9,
    ) is True

    record = registry.get(field_id=field_id)
    assert record.name == "Mutated"
    assert record.label == "Changed"
    assert record.field_type == "Dropdown"
    assert record.object_type == "Article"
    assert record.config == {"options": ["x"]}
    assert record.valid_id == 2
    assert db.get(models.DynamicField, field_id).change_by == 9
    with pytest.raises(DynamicFieldNotFoundError):
        registry.get(name="Mutable")


def test_update_missing_field_raises_not_found(registry):
    with pytest.raises(DynamicFieldNotFoundError):
        registry.update(
            field_id=404,
            name="Ghost",
            label="Ghost",
            field_order=1,
            field_type="Text",
            object_type="Ticket",
            config={},
            valid_id=1,
            user_id=1,
        )


def test_update_validates_before_touching_store(registry):
    field_id = add_field(registry, "Strict", 1)
    with pytest.raises(DynamicFieldValidationError):
        registry.update(
            field_id=field_id,
            name="Strict",
            label="Strict",
            field_order="one",
            field_type="Text",
            object_type="Ticket",
            config={},
            valid_id=1,
            user_id=1,
        )
    assert registry.get(field_id=field_id).field_order == 1


def test_update_rename_to_existing_name_is_duplicate(registry):
    add_field(registry, "Taken", 1)
    field_id = add_field(registry, "Free", 2)
    with pytest.raises(DuplicateDynamicFieldError):
        registry.update(
            field_id=field_id,
            name="Taken",
            label="Free",
            field_order=2,
            field_type="Text",
            object_type="Ticket",
            config={},
            valid_id=1,
            user_id=1,
        )
    assert registry.get(field_id=field_id).name == "Free"


def test_delete_cascades_values(registry, db):
    field_id = add_field(registry, "Doomed", 1)
    keeper_id = add_field(registry, "Keeper", 2)
    db.add_all(
        [
            models.DynamicFieldValue(field_id=field_id, object_id=1, value_text="a"),
            models.DynamicFieldValue(field_id=field_id, object_id=2, value_text="b"),
            models.DynamicFieldValue(field_id=keeper_id, object_id=1, value_text="c"),
        ]
    )
    db.commit()

    assert registry.delete(field_id=field_id, user_id=1) is True

    remaining = db.query(models.DynamicFieldValue).all()
    assert [value.field_id for value in remaining] == [keeper_id]
    with pytest.raises(DynamicFieldNotFoundError):
        registry.get(field_id=field_id)
    assert registry.list(valid=False) == [keeper_id]


def test_delete_missing_is_failure(registry):
    with pytest.raises(DynamicFieldNotFoundError):
        registry.delete(field_id=12345, user_id=1)


def test_delete_requires_user(registry):
    field_id = add_field(registry, "NeedsUser", 1)
    with pytest.raises(DynamicFieldValidationError):
        registry.delete(field_id=field_id, user_id=None)
    assert registry.get(field_id=field_id)


def test_delete_leaves_gap_without_reorder(registry):
    add_field(registry, "One", 1)
    two = add_field(registry, "Two", 2)
    add_field(registry, "Three", 3)

    registry.delete(field_id=two, user_id=1)

    assert [r.field_order for r in registry.list_full(valid=False)] == [1, 3]


def test_list_filters_and_orders(registry):
    ticket_b = add_field(registry, "TicketB", 2)
    ticket_a = add_field(registry, "TicketA", 1)
    article = add_field(registry, "ArticleA", 3, object_type="Article")
    disabled = add_field(registry, "Disabled", 4, valid_id=2)

    assert registry.list() == [ticket_a, ticket_b, article]
    assert registry.list(valid=False) == [ticket_a, ticket_b, article, disabled]
    assert registry.list(valid=0, object_type="Ticket") == [ticket_a, ticket_b, disabled]
    assert registry.list(object_type="Article") == [article]
    assert registry.list(object_type="All") == [ticket_a, ticket_b, article]

    names = registry.list(result_type=ListResultType.HASH)
    assert names == {ticket_a: "TicketA", ticket_b: "TicketB", article: "ArticleA"}
    assert list(names) == [ticket_a, ticket_b, article]
    assert registry.list(result_type="hash", valid=False)[disabled] == "Disabled"


def test_list_result_types_are_cached_separately(registry):
    field_id = add_field(registry, "Shape", 1)
    assert registry.list() == [field_id]
    assert registry.list(result_type="hash") == {field_id: "Shape"}
    assert registry.list() == [field_id]


def test_list_is_cached_and_invalidated_by_writes(registry, db):
    first = add_field(registry, "First", 1)
    assert registry.list() == [first]

    # bypass the registry: the cached listing must not notice
    db.add(
        models.DynamicField(
            name="Sideloaded",
            label="Sideloaded",
            field_order=2,
            field_type="Text",
            object_type="Ticket",
            config="{}",
            valid_id=1,
            create_by=1,
            change_by=1,
        )
    )
    db.commit()
    assert registry.list() == [first]

    second = add_field(registry, "Second", 3)
    listed = registry.list()
    assert listed[0] == first
    assert listed[-1] == second
    assert len(listed) == 3


def test_list_full_matches_list_order(registry):
    add_field(registry, "Zulu", 3)
    add_field(registry, "Yankee", 1)
    add_field(registry, "Xray", 2, object_type="Article")

    full = registry.list_full()
    assert [record.id for record in full] == registry.list()
    assert [record.name for record in full] == ["Yankee", "Xray", "Zulu"]
    assert [record.name for record in registry.list_full(object_type="Article")] == ["Xray"]
    # cached copy is equal to the fresh one
    assert registry.list_full() == full


def test_list_full_invalidated_after_delete(registry):
    keep = add_field(registry, "Keep", 1)
    drop = add_field(registry, "Drop", 2)
    assert [r.id for r in registry.list_full()] == [keep, drop]

    registry.delete(field_id=drop, user_id=1)

    assert [r.id for r in registry.list_full()] == [keep]


def test_writes_clear_whole_namespace(registry, cache):
    field_id = add_field(registry, "Spread", 1)
    registry.get(field_id=field_id)
    registry.get(name="Spread")
    registry.list()
    registry.list_full()
    cache.set("Other", "key", "value", 60)
    assert len(cache) > 1

    registry.delete(field_id=field_id, user_id=1)

    assert cache.get(CACHE_NAMESPACE, f"DynamicFieldGet::ID::{field_id}") is None
    assert cache.get(CACHE_NAMESPACE, "DynamicFieldGet::Name::Spread") is None
    assert cache.get("Other", "key") == "value"


def test_store_failure_is_reported_and_rolled_back(registry, db, monkeypatch):
    def broken_commit():
        raise OperationalError("INSERT INTO dynamic_field", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db, "commit", broken_commit)
    with pytest.raises(DynamicFieldStoreError) as excinfo:
        add_field(registry, "Unlucky", 1)
    assert not isinstance(excinfo.value, DuplicateDynamicFieldError)

    monkeypatch.undo()
    assert registry.list(valid=False) == []


def test_reorder_failure_does_not_fail_add(registry, monkeypatch, caplog):
    add_field(registry, "Alpha", 1)

    def failing_update(**kwargs):
        raise DynamicFieldStoreError("locked")

    monkeypatch.setattr(registry, "update", failing_update)
    with caplog.at_level("ERROR"):
        field_id = add_field(registry, "Beta", 1)

    assert registry.get(field_id=field_id).name == "Beta"
    assert "Reorder after adding dynamic field Beta failed" in caplog.text


def test_backend_instance_for_record(registry):
    field_id = add_field(registry, "Picked", 1, field_type="Dropdown", config={"options": ["a"]})
    record = registry.get(field_id=field_id)

    backend = registry.backend_instance(record)

    assert backend is registry.backend_instance({"field_type": "Dropdown"})
    assert backend.validate_value(record.model_dump(), "a")
    assert not backend.validate_value(record.model_dump(), "b")


def test_build_context_keeps_injected_collaborators(db, settings, resolver):
    mine = MemoryCache()
    assert len(mine) == 0

    context = build_context(db, settings=settings, cache=mine, resolver=resolver)

    assert context.cache is mine
    assert context.settings is settings
    assert context.resolver is resolver


@pytest.mark.parametrize(
    "config",
    [
        {1: "Low", 2: "High"},
        {"options": [{"nested": {3: "x"}}]},
        {"default": date(2024, 1, 1)},
        {"choices": {"a", "b"}},
        {"weight": float("nan")},
    ],
)
def test_add_rejects_config_that_cannot_round_trip(registry, config):
    with pytest.raises(DynamicFieldValidationError, match="Not valid"):
        add_field(registry, "Odd", 1, config=config)
    assert registry.list(valid=False) == []


def test_update_rejects_unserializable_config(registry):
    field_id = add_field(registry, "Stable", 1, config={"options": ["a"]})
    record = registry.get(field_id=field_id)

    with pytest.raises(DynamicFieldValidationError):
        registry.update(
            field_id=field_id,
            name=record.name,
            label="Changed",
            field_order=record.field_order,
            field_type=record.field_type,
            object_type=record.object_type,
            config={"default": date(2024, 1, 1)},
            valid_id=record.valid_id,
            user_id=1,
        )

    registry.invalidate_cache()
    stored = registry.get(field_id=field_id)
    assert stored.label == "Stable"
    assert stored.config == {"options": ["a"]}


def test_field_order_upper_bound(registry):
    with pytest.raises(DynamicFieldValidationError, match="maximum"):
        add_field(registry, "Huge", 10**20)
    with pytest.raises(DynamicFieldValidationError):
        add_field(registry, "JustOver", MAX_FIELD_ORDER + 1)
    assert registry.list(valid=False) == []

    field_id = add_field(registry, "Largest", MAX_FIELD_ORDER)
    assert registry.get(field_id=field_id).field_order == MAX_FIELD_ORDER
