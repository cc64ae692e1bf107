"""Tests for the plan reconciliation engine."""

import logging

import pytest

from planmod.config import EngineOptions
from planmod.diagnostics import Severity
from planmod.modifiers import MatchElementStateForUnknown
from planmod.path import Path, PathExpression, StepKind
from planmod.planmodifier import plan_modifier
from planmod.private_state import PrivateState, ProviderData
from planmod.reconciler import reconcile
from planmod.schema import AttributeNode, Schema
from planmod.values import (
    Kind,
    int64_value,
    list_value,
    map_value,
    null,
    object_value,
    set_value,
    string_value,
    unknown,
)


def _string_schema(*modifiers, **attrs) -> Schema:
    """Helper: one optional string attribute "a" plus any extra attributes."""
    return Schema({"a": AttributeNode(Kind.STRING, optional=True, modifiers=list(modifiers)), **attrs})


def _rule(name, port, id_):
    return object_value(
        {
            "name": string_value(name),
            "port": int64_value(port),
            "id": id_ if not isinstance(id_, str) else string_value(id_),
        }
    )


class TestEndToEnd:
    """Whole-pass scenarios."""

    def test_changed_attribute_requires_replace(self, replace_schema):
        """config=v1, state=v0, plan=v1 with RequiresReplace."""
        result = reconcile(
            replace_schema,
            config=object_value({"name": string_value("v1")}),
            state=object_value({"name": string_value("v0")}),
            plan=object_value({"name": string_value("v1")}),
        )

        assert result.plan == object_value({"name": string_value("v1")})
        assert result.requires_replace == [Path.root("name")]
        assert len(result.diagnostics) == 0

    def test_computed_list_of_objects_keeps_state(self, computed_list_schema):
        """Unknown computed member of a list element takes its prior value."""
        result = reconcile(
            computed_list_schema,
            config=object_value({"items": null(Kind.LIST)}),
            state=object_value(
                {
                    "items": list_value(
                        [object_value({"computed": string_value("s1"), "required": string_value("r1")})]
                    )
                }
            ),
            plan=object_value(
                {
                    "items": list_value(
                        [object_value({"computed": unknown(Kind.STRING), "required": string_value("r1")})]
                    )
                }
            ),
        )

        assert result.plan.to_python() == {"items": [{"computed": "s1", "required": "r1"}]}
        assert len(result.diagnostics) == 0
        assert not result.requires_replace

    def test_destroy_runs_nothing(self):
        calls = []
        schema = _string_schema(plan_modifier(lambda req, resp: calls.append(req.path)))
        blob = PrivateState(provider=ProviderData({"k": b"1"})).to_bytes()

        result = reconcile(
            schema,
            config=null(Kind.OBJECT),
            state=object_value({"a": string_value("x")}),
            plan=null(Kind.OBJECT),
            private=blob,
        )

        assert result.plan.is_null()
        assert calls == []
        assert result.private == blob

    def test_create_leaves_computed_unknown(self, computed_list_schema):
        result = reconcile(
            computed_list_schema,
            config=object_value({"items": null(Kind.LIST)}),
            state=null(Kind.OBJECT),
            plan=object_value({"items": unknown(Kind.LIST)}),
        )
        assert result.plan.attribute("items").is_unknown()

    def test_rejects_non_object_roots(self, replace_schema):
        with pytest.raises(TypeError, match="config must be an object"):
            reconcile(
                replace_schema,
                config=string_value("x"),
                state=null(Kind.OBJECT),
                plan=null(Kind.OBJECT),
            )


class TestModifierChain:
    """Tests for chain ordering and response handling."""

    def test_chain_runs_in_declaration_order(self):
        """X -> Y by the first modifier, Y -> Z by the second."""

        def x_to_y(req, resp):
            if req.plan_value == string_value("X"):
                resp.plan_value = string_value("Y")

        def y_to_z(req, resp):
            if req.plan_value == string_value("Y"):
                resp.plan_value = string_value("Z")

        values = {
            "config": object_value({"a": string_value("X")}),
            "state": null(Kind.OBJECT),
            "plan": object_value({"a": string_value("X")}),
        }

        forward = reconcile(_string_schema(plan_modifier(x_to_y), plan_modifier(y_to_z)), **values)
        backward = reconcile(_string_schema(plan_modifier(y_to_z), plan_modifier(x_to_y)), **values)

        assert forward.plan.attribute("a") == string_value("Z")
        assert backward.plan.attribute("a") == string_value("Y")

    def test_later_modifier_can_clear_replace(self):
        def mark(req, resp):
            resp.requires_replace = True

        def clear(req, resp):
            assert resp.requires_replace
            resp.requires_replace = False

        result = reconcile(
            _string_schema(plan_modifier(mark), plan_modifier(clear)),
            config=object_value({"a": string_value("x")}),
            state=object_value({"a": string_value("y")}),
            plan=object_value({"a": string_value("x")}),
        )
        assert not result.requires_replace

    def test_replace_survives_other_attributes(self):
        def mark(req, resp):
            resp.requires_replace = True

        def noop(req, resp):
            pass

        schema = _string_schema(
            plan_modifier(mark), b=AttributeNode(Kind.STRING, optional=True, modifiers=[plan_modifier(noop)])
        )
        result = reconcile(
            schema,
            config=object_value({"a": string_value("x"), "b": string_value("x")}),
            state=object_value({"a": string_value("y"), "b": string_value("x")}),
            plan=object_value({"a": string_value("x"), "b": string_value("x")}),
        )
        assert result.requires_replace == [Path.root("a")]

    def test_duplicate_diagnostics_are_collapsed(self):
        def warn(req, resp):
            resp.diagnostics.add_warning("Deprecated", "This attribute is deprecated.")

        schema = _string_schema(
            plan_modifier(warn), b=AttributeNode(Kind.STRING, optional=True, modifiers=[plan_modifier(warn)])
        )
        result = reconcile(
            schema,
            config=object_value({"a": null(Kind.STRING), "b": null(Kind.STRING)}),
            state=null(Kind.OBJECT),
            plan=object_value({"a": null(Kind.STRING), "b": null(Kind.STRING)}),
        )
        assert len(result.diagnostics) == 1

    def test_error_stops_chain_but_not_siblings(self):
        calls = []

        def fail(req, resp):
            resp.diagnostics.add_attribute_error(req.path, "Failed", "boom")

        def record(req, resp):
            calls.append(str(req.path))

        schema = _string_schema(
            plan_modifier(fail),
            plan_modifier(record),
            b=AttributeNode(Kind.STRING, optional=True, modifiers=[plan_modifier(record)]),
        )
        values = {
            "config": object_value({"a": null(Kind.STRING), "b": null(Kind.STRING)}),
            "state": null(Kind.OBJECT),
            "plan": object_value({"a": null(Kind.STRING), "b": null(Kind.STRING)}),
        }

        result = reconcile(schema, **values)
        assert result.has_error
        assert calls == ["b"]

        calls.clear()
        reconcile(schema, options=EngineOptions(stop_chain_on_error=False), **values)
        assert calls == ["a", "b"]

    def test_wrong_kind_is_discarded(self):
        def bad(req, resp):
            resp.plan_value = int64_value(1)

        result = reconcile(
            _string_schema(plan_modifier(bad)),
            config=object_value({"a": string_value("x")}),
            state=null(Kind.OBJECT),
            plan=object_value({"a": string_value("x")}),
        )

        assert result.plan.attribute("a") == string_value("x")
        assert result.diagnostics[0].summary == "Invalid Plan Value Kind"
        assert result.diagnostics[0].severity == Severity.ERROR
        assert result.diagnostics[0].path == Path.root("a")

    def test_known_value_is_never_made_unknown(self, caplog):
        def forget(req, resp):
            resp.plan_value = unknown(Kind.STRING)

        with caplog.at_level(logging.WARNING, logger="planmod.reconciler"):
            result = reconcile(
                _string_schema(plan_modifier(forget, description="forget")),
                config=object_value({"a": string_value("x")}),
                state=null(Kind.OBJECT),
                plan=object_value({"a": string_value("x")}),
            )

        assert result.plan.attribute("a") == string_value("x")
        assert len(result.diagnostics) == 0
        assert "forget" in caplog.text

    def test_request_carries_paths_and_roots(self):
        seen = {}

        def inspect(req, resp):
            seen["path"] = req.path
            seen["expression"] = req.path_expression
            seen["config"] = req.config

        element = AttributeNode(
            Kind.OBJECT,
            attributes={"v": AttributeNode(Kind.STRING, optional=True, modifiers=[plan_modifier(inspect)])},
        )
        schema = Schema({"m": AttributeNode(Kind.MAP, optional=True, element=element)})
        config = object_value({"m": map_value({"k": object_value({"v": string_value("1")})})})

        reconcile(schema, config=config, state=null(Kind.OBJECT), plan=config)

        assert seen["path"] == Path.root("m").at_map_key("k").at_name("v")
        assert str(seen["expression"]) == "m[*].v"
        assert seen["config"] == config


class TestNesting:
    """Tests for recursion into objects and collections."""

    def test_child_resolves_parent_default(self):
        def parent_default(req, resp):
            resp.plan_value = object_value({"x": unknown(Kind.STRING)})

        def child_resolve(req, resp):
            if req.plan_value.is_unknown():
                resp.plan_value = string_value("resolved")

        schema = Schema(
            {
                "conf": AttributeNode(
                    Kind.OBJECT,
                    computed=True,
                    modifiers=[plan_modifier(parent_default)],
                    attributes={
                        "x": AttributeNode(Kind.STRING, computed=True, modifiers=[plan_modifier(child_resolve)])
                    },
                )
            }
        )
        result = reconcile(
            schema,
            config=object_value({"conf": null(Kind.OBJECT)}),
            state=null(Kind.OBJECT),
            plan=object_value({"conf": unknown(Kind.OBJECT)}),
        )
        assert result.plan.to_python() == {"conf": {"x": "resolved"}}

    def test_unknown_collection_is_not_recursed(self):
        calls = []
        element = AttributeNode(
            Kind.OBJECT,
            attributes={
                "v": AttributeNode(
                    Kind.STRING, computed=True, modifiers=[plan_modifier(lambda req, resp: calls.append(1))]
                )
            },
        )
        schema = Schema({"l": AttributeNode(Kind.LIST, computed=True, element=element)})

        reconcile(
            schema,
            config=object_value({"l": null(Kind.LIST)}),
            state=null(Kind.OBJECT),
            plan=object_value({"l": unknown(Kind.LIST)}),
        )
        assert calls == []

    def test_element_replace_and_diagnostics_are_merged(self):
        def mark(req, resp):
            resp.requires_replace = True
            resp.diagnostics.add_attribute_warning(req.path, "Marked", "")

        element = AttributeNode(
            Kind.OBJECT,
            attributes={"v": AttributeNode(Kind.STRING, optional=True, modifiers=[plan_modifier(mark)])},
        )
        schema = Schema({"l": AttributeNode(Kind.LIST, optional=True, element=element)})
        value = object_value(
            {"l": list_value([object_value({"v": string_value("a")}), object_value({"v": string_value("b")})])}
        )

        result = reconcile(schema, config=value, state=value, plan=value)

        assert result.requires_replace.to_list() == ["l[0].v", "l[1].v"]
        assert result.diagnostics.warning_count == 2

    def test_map_elements_use_state_by_key(self):
        from planmod.modifiers import UseStateForUnknown

        element = AttributeNode(
            Kind.OBJECT,
            attributes={
                "size": AttributeNode(Kind.INT64, required=True),
                "arn": AttributeNode(Kind.STRING, computed=True, modifiers=[UseStateForUnknown()]),
            },
        )
        schema = Schema({"disks": AttributeNode(Kind.MAP, required=True, element=element)})

        def disk(size, arn):
            return object_value({"size": int64_value(size), "arn": arn})

        result = reconcile(
            schema,
            config=object_value({"disks": map_value({"a": disk(1, null(Kind.STRING)), "b": disk(2, null(Kind.STRING))})}),
            state=object_value({"disks": map_value({"b": disk(2, string_value("arn:b"))})}),
            plan=object_value({"disks": map_value({"a": disk(1, unknown(Kind.STRING)), "b": disk(2, unknown(Kind.STRING))})}),
        )

        assert result.plan.to_python() == {
            "disks": {"a": {"size": 1, "arn": "(known after apply)"}, "b": {"size": 2, "arn": "arn:b"}}
        }


class TestSetMatching:
    """Tests for carrying prior state through unordered collections."""

    def test_unique_matches_carry_forward_without_warning(self, rules_schema):
        state = object_value({"rules": set_value([_rule("a", 1, "id-a"), _rule("b", 2, "id-b")])})
        config = object_value(
            {"rules": set_value([_rule("b", 2, null(Kind.STRING)), _rule("a", 1, null(Kind.STRING))])}
        )
        plan = object_value(
            {"rules": set_value([_rule("b", 2, unknown(Kind.STRING)), _rule("a", 1, unknown(Kind.STRING))])}
        )

        result = reconcile(rules_schema, config=config, state=state, plan=plan)

        assert result.plan.attribute("rules") == set_value([_rule("a", 1, "id-a"), _rule("b", 2, "id-b")])
        assert len(result.diagnostics) == 0

    def test_swapped_fields_warn_per_element(self, rules_schema):
        state = object_value({"rules": set_value([_rule("a", 1, "id-a"), _rule("b", 2, "id-b")])})
        config = object_value(
            {"rules": set_value([_rule("a", 2, null(Kind.STRING)), _rule("b", 1, null(Kind.STRING))])}
        )
        plan = object_value(
            {"rules": set_value([_rule("a", 2, unknown(Kind.STRING)), _rule("b", 1, unknown(Kind.STRING))])}
        )

        result = reconcile(rules_schema, config=config, state=state, plan=plan)

        warnings = result.diagnostics.warnings()
        assert len(warnings) == 2
        assert not result.has_error
        for diagnostic in warnings:
            assert diagnostic.summary == "Ambiguous Set Element Match"
            assert diagnostic.path.parent() == Path.root("rules")
            assert diagnostic.path.last_step().kind == StepKind.SET_VALUE
        # Positional fallback still carries prior values forward
        assert result.plan.attribute("rules") == set_value([_rule("a", 2, "id-a"), _rule("b", 1, "id-b")])

    def test_ambiguity_warning_can_be_disabled(self, rules_schema):
        state = object_value({"rules": set_value([_rule("a", 1, "id-a"), _rule("b", 2, "id-b")])})
        plan = object_value(
            {"rules": set_value([_rule("a", 2, unknown(Kind.STRING)), _rule("b", 1, unknown(Kind.STRING))])}
        )
        config = object_value(
            {"rules": set_value([_rule("a", 2, null(Kind.STRING)), _rule("b", 1, null(Kind.STRING))])}
        )

        result = reconcile(
            rules_schema,
            config=config,
            state=state,
            plan=plan,
            options=EngineOptions(warn_on_ambiguous_match=False),
        )
        assert len(result.diagnostics) == 0

    def test_added_element_warns_and_stays_unknown(self, rules_schema):
        """One rule added next to an existing one: the element count changed."""
        state = object_value({"rules": set_value([_rule("a", 1, "id-a")])})
        config = object_value({"rules": set_value([_rule("a", 1, null(Kind.STRING)), _rule("c", 3, null(Kind.STRING))])})
        plan = object_value(
            {"rules": set_value([_rule("a", 1, unknown(Kind.STRING)), _rule("c", 3, unknown(Kind.STRING))])}
        )

        result = reconcile(rules_schema, config=config, state=state, plan=plan)

        assert result.plan.attribute("rules") == set_value([_rule("a", 1, "id-a"), _rule("c", 3, unknown(Kind.STRING))])
        warnings = result.diagnostics.warnings()
        assert len(warnings) == 2
        assert {w.summary for w in warnings} == {"Ambiguous Set Element Match"}
        assert not result.has_error

    def test_removed_element_warns(self, rules_schema):
        """One of two rules removed: the remaining rule keeps its id but is flagged."""
        state = object_value({"rules": set_value([_rule("a", 1, "id-a"), _rule("b", 2, "id-b")])})
        config = object_value({"rules": set_value([_rule("a", 1, null(Kind.STRING))])})
        plan = object_value({"rules": set_value([_rule("a", 1, unknown(Kind.STRING))])})

        result = reconcile(rules_schema, config=config, state=state, plan=plan)

        assert result.plan.attribute("rules") == set_value([_rule("a", 1, "id-a")])
        warnings = result.diagnostics.warnings()
        assert len(warnings) == 1
        assert warnings[0].summary == "Ambiguous Set Element Match"
        assert warnings[0].path == Path.root("rules").at_set_value(_rule("a", 1, unknown(Kind.STRING)))

    def test_created_set_does_not_warn(self, rules_schema):
        config = object_value({"rules": set_value([_rule("a", 1, null(Kind.STRING))])})
        plan = object_value({"rules": set_value([_rule("a", 1, unknown(Kind.STRING))])})

        result = reconcile(rules_schema, config=config, state=null(Kind.OBJECT), plan=plan)

        assert len(result.diagnostics) == 0
        assert result.plan.attribute("rules") == plan.attribute("rules")
        assert len(result.diagnostics) == 0


class TestMatchElementState:
    """MatchElementStateForUnknown driven by the engine."""

    def test_reordered_list_keeps_ids_by_name(self):
        name = PathExpression.relative_to_current().at_parent().at_name("name")
        schema = Schema(
            {
                "items": AttributeNode(
                    Kind.LIST,
                    required=True,
                    element=AttributeNode(
                        Kind.OBJECT,
                        attributes={
                            "name": AttributeNode(Kind.STRING, required=True),
                            "id": AttributeNode(
                                Kind.STRING, computed=True, modifiers=[MatchElementStateForUnknown(name)]
                            ),
                        },
                    ),
                ),
            }
        )

        def item(n, id_):
            return object_value({"name": string_value(n), "id": id_})

        state = object_value({"items": list_value([item("a", string_value("id-a")), item("b", string_value("id-b"))])})
        config = object_value({"items": list_value([item("b", null(Kind.STRING)), item("a", null(Kind.STRING))])})
        plan = object_value({"items": list_value([item("b", unknown(Kind.STRING)), item("a", unknown(Kind.STRING))])})

        result = reconcile(schema, config=config, state=state, plan=plan)

        assert len(result.diagnostics) == 0
        assert result.plan.attribute("items") == list_value(
            [item("b", string_value("id-b")), item("a", string_value("id-a"))]
        )


class TestPrivateState:
    """Tests for private state threading."""

    def test_write_is_visible_to_later_attributes(self):
        seen = []

        def write(req, resp):
            resp.private.set_key("k", b'"v1"')

        def read_then_overwrite(req, resp):
            seen.append(req.private.get_key("k"))
            resp.private.set_key("k", b'"v2"')

        schema = _string_schema(
            plan_modifier(write),
            b=AttributeNode(Kind.STRING, optional=True, modifiers=[plan_modifier(read_then_overwrite)]),
        )
        values = object_value({"a": string_value("x"), "b": string_value("y")})

        result = reconcile(schema, config=values, state=values, plan=values)

        assert seen == [b'"v1"']
        assert PrivateState.from_bytes(result.private).provider.get_key("k") == b'"v2"'

    def test_request_private_is_a_copy(self):
        """Only writes made through the response reach later modifiers."""
        seen = []

        def write_request(req, resp):
            req.private.set_key("ignored", b"1")
            resp.private.set_key("kept", b"2")

        def read(req, resp):
            seen.append((req.private.get_key("ignored"), req.private.get_key("kept")))

        schema = _string_schema(plan_modifier(write_request), plan_modifier(read))
        values = object_value({"a": string_value("x")})

        result = reconcile(schema, config=values, state=values, plan=values)

        assert seen == [(None, b"2")]
        assert PrivateState.from_bytes(result.private).provider.keys() == ["kept"]

    def test_replaced_provider_data_is_threaded(self):
        def replace(req, resp):
            resp.private = ProviderData({"fresh": b"true"})

        def read(req, resp):
            resp.plan_value = string_value(req.private.get_key("fresh").decode())

        schema = _string_schema(
            plan_modifier(replace), b=AttributeNode(Kind.STRING, optional=True, modifiers=[plan_modifier(read)])
        )
        values = object_value({"a": string_value("x"), "b": string_value("y")})

        result = reconcile(schema, config=values, state=values, plan=values)
        assert result.plan.attribute("b") == string_value("true")

    def test_incoming_blob_is_readable_and_framework_keys_survive(self):
        blob = PrivateState(framework={".fw": b"1"}, provider=ProviderData({"k": b"[1]"})).to_bytes()
        seen = []

        schema = _string_schema(plan_modifier(lambda req, resp: seen.append(req.private.get_key("k"))))
        values = object_value({"a": string_value("x")})

        result = reconcile(schema, config=values, state=values, plan=values, private=blob)

        assert seen == [b"[1]"]
        assert PrivateState.from_bytes(result.private).framework == {".fw": b"1"}

    def test_private_state_error_becomes_diagnostic(self):
        def misuse(req, resp):
            resp.private.set_key(".reserved", b"1")

        values = object_value({"a": string_value("x")})
        result = reconcile(_string_schema(plan_modifier(misuse)), config=values, state=values, plan=values)

        assert result.has_error
        assert result.diagnostics[0].summary == "Private State Error"
        assert result.diagnostics[0].path == Path.root("a")


class TestPlanResult:
    """Tests for PlanResult rendering."""

    def test_as_dict(self, replace_schema):
        result = reconcile(
            replace_schema,
            config=object_value({"name": string_value("v1")}),
            state=object_value({"name": string_value("v0")}),
            plan=object_value({"name": string_value("v1")}),
        )
        assert result.as_dict() == {
            "plan": {"name": "v1"},
            "requires_replace": ["name"],
            "diagnostics": [],
            "private": None,
        }
