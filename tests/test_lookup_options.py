"""Tests for option merging, learned options and lookup map application."""

from pyqt_metaforms.forms.field_schema import FieldSchema, FieldType, FormFieldOption, apply_lookup_options
from pyqt_metaforms.forms.lookup_options import LearnedOptionRegistry, merge_options


def _opt(value, label):
    return FormFieldOption(label=label, value=value)


def test_base_wins_and_new_options_are_appended():
    merged = merge_options([_opt("a", "A")], [_opt("a", "A2"), _opt("b", "B")])
    assert merged == [_opt("a", "A"), _opt("b", "B")]


def test_merge_keeps_arrival_order_of_learned():
    merged = merge_options([], [_opt("z", "Z"), _opt("y", "Y"), _opt("z", "Z again")])
    assert [o.value for o in merged] == ["z", "y"]


def test_registry_learns_once_per_value():
    registry = LearnedOptionRegistry()
    base = (_opt("general", "General"),)
    assert registry.learn("fund", _opt("youth", "Youth"), base=base)
    assert not registry.learn("fund", _opt("youth", "Youth (dup)"), base=base)
    assert not registry.learn("fund", _opt("general", "General"), base=base)
    assert registry.options_for("fund") == (_opt("youth", "Youth"),)
    assert registry.options_for("other") == ()


def test_augment_only_touches_select_fields_with_learned_options():
    registry = LearnedOptionRegistry()
    select = FieldSchema(name="fund", type=FieldType.SELECT, options=(_opt("general", "General"),))
    text = FieldSchema(name="fund_note")

    assert registry.augment(select) is select
    registry.learn("fund", _opt("youth", "Youth"))
    registry.learn("fund_note", _opt("ignored", "Ignored"))

    augmented = registry.augment(select)
    assert [o.value for o in augmented.options] == ["general", "youth"]
    assert select.options == (_opt("general", "General"),)
    assert registry.augment(text) is text


def test_clear_forgets_learned_options():
    registry = LearnedOptionRegistry()
    registry.learn("fund", _opt("youth", "Youth"))
    registry.clear()
    assert registry.options_for("fund") == ()


def test_lookup_map_replaces_options_by_lookup_id():
    fields = [
        FieldSchema(name="ministry", type=FieldType.SELECT, lookup_id="ministries",
                    options=(_opt("old", "Old"),)),
        FieldSchema(name="status", type=FieldType.SELECT, lookup_id="statuses",
                    options=(_opt("active", "Active"),)),
        FieldSchema(name="plain"),
    ]
    result = apply_lookup_options(fields, {
        "ministries": [{"label": "Youth", "value": "youth"}],
        "statuses": [],
    })
    assert [o.value for o in result[0].options] == ["youth"]
    assert [o.value for o in result[1].options] == ["active"]
    assert result[2] is fields[2]
