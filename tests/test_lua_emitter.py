"""
Lua export tests — exact output layout, field presence and ordering,
quoting, image URL rewriting and the invalid-item policy.
"""

import logging

import pytest

from item_schema import ItemValidationError
from lua_emitter import (
    LuaWriter,
    bracket_key,
    emit_items_lua,
    lua_expression,
    lua_number,
    lua_string,
    rewrite_image_url,
    select_exportable,
)

BASE = "https://cdn.example"

WATERBOTTLE_LUA = """return {
    ['waterbottle'] = {
        label = 'Water Bottle',
        weight = 500,
        client = {
            usetime = 2500,
            status = {
                ['thirst'] = 200000,
            },
        },
    },
}
"""

SAMPLE_LUA = """return {
    ['waterbottle'] = {
        label = 'Water Bottle',
        weight = 500,
        client = {
            usetime = 2500,
            status = {
                ['thirst'] = 200000,
            },
        },
    },
    ['burger'] = {
        label = 'Burger',
        weight = 220,
        degrade = 60,
        stack = true,
        client = {
            anim = 'eating',
            prop = 'burger',
            usetime = 2500,
            notification = 'You ate a delicious burger',
            imageurl = 'https://cdn.example/uploads/images/1700000000000-burger.png',
            status = {
                ['hunger'] = 200000,
                ['stress'] = -5000,
            },
        },
        server = {
            export = 'food.eat',
        },
        buttons = {
            {
                label = 'Take a bite',
                group = 'eat',
                action = 'bite',
            },
            {
                label = 'Throw away',
                group = 'misc',
                action = 'discard',
            },
        },
    },
    ['phone'] = {
        label = 'Phone',
    },
}
"""


# ── Whole-document output ──────────────────────────────────────────────────

class TestEmitItemsLua:
    def test_waterbottle_end_to_end(self, waterbottle):
        out = emit_items_lua([waterbottle], BASE)
        assert out == WATERBOTTLE_LUA
        for absent in ("server", "buttons", "degrade", "consume", "stack"):
            assert absent not in out

    def test_full_sample(self, sample_items):
        assert emit_items_lua(sample_items, BASE) == SAMPLE_LUA

    def test_empty_catalog(self):
        assert emit_items_lua([], BASE) == "return {\n}\n"

    def test_label_only_item_has_no_sub_tables(self):
        out = emit_items_lua([{"name": "phone", "label": "Phone"}], BASE)
        assert out == "return {\n    ['phone'] = {\n        label = 'Phone',\n    },\n}\n"

    def test_deterministic(self, sample_items):
        first = emit_items_lua(sample_items, BASE)
        assert all(emit_items_lua(sample_items, BASE) == first for _ in range(5))

    def test_does_not_mutate_input(self, sample_items):
        import copy

        before = copy.deepcopy(sample_items)
        emit_items_lua(sample_items, BASE)
        assert sample_items == before

    def test_items_keep_input_order(self):
        items = [{"name": n, "label": n.upper()} for n in ("zulu", "alpha", "mike")]
        out = emit_items_lua(items, BASE)
        assert out.index("['zulu']") < out.index("['alpha']") < out.index("['mike']")


# ── Field presence ─────────────────────────────────────────────────────────

class TestFieldPresence:
    @pytest.mark.parametrize("value", [None, 0, "", False])
    def test_falsy_scalars_are_omitted(self, value):
        item = {"name": "x", "label": "X", "weight": value, "degrade": value, "consume": value, "stack": value}
        out = emit_items_lua([item], BASE)
        for key in ("weight", "degrade", "consume", "stack"):
            assert f"{key} =" not in out

    def test_scalar_fields_follow_canonical_order(self):
        item = {"stack": True, "consume": 1, "degrade": 5, "weight": 10, "label": "X", "name": "x"}
        out = emit_items_lua([item], BASE)
        positions = [out.index(f"{k} =") for k in ("label", "weight", "degrade", "consume", "stack")]
        assert positions == sorted(positions)

    def test_client_fields_follow_canonical_order(self):
        client = {
            "status": {"a": 1},
            "imageurl": "/uploads/images/a.png",
            "image": "a.png",
            "notification": "n",
            "usetime": 100,
            "prop": "p",
            "anim": "an",
        }
        out = emit_items_lua([{"name": "x", "label": "X", "client": client}], BASE)
        keys = ("anim =", "prop =", "usetime =", "notification =", "image =", "imageurl =", "status =")
        positions = [out.index(k) for k in keys]
        assert positions == sorted(positions)

    def test_empty_client_and_server_are_omitted(self):
        item = {"name": "x", "label": "X", "client": {"anim": "", "status": {}}, "server": {}, "buttons": []}
        out = emit_items_lua([item], BASE)
        assert "client" not in out
        assert "server" not in out
        assert "buttons" not in out

    def test_numeric_strings_are_emitted_as_numbers(self):
        item = {"name": "x", "label": "X", "weight": "500", "client": {"usetime": " 2500 "}}
        out = emit_items_lua([item], BASE)
        assert "weight = 500," in out
        assert "usetime = 2500," in out

    def test_integral_floats_drop_the_fraction(self):
        assert lua_number(500.0) == "500"
        assert lua_number(0.25) == "0.25"


# ── Status values ──────────────────────────────────────────────────────────

class TestStatus:
    def test_key_order_matches_input(self):
        status = {"thirst": 1, "hunger": 2, "stress": 3, "armor": 4}
        out = emit_items_lua([{"name": "x", "label": "X", "client": {"status": status}}], BASE)
        positions = [out.index(f"['{k}']") for k in status]
        assert positions == sorted(positions)

    def test_reversed_key_order_is_kept(self):
        status = {"b": 1, "a": 2}
        out = emit_items_lua([{"name": "x", "label": "X", "client": {"status": status}}], BASE)
        assert out.index("['b']") < out.index("['a']")

    def test_values_are_raw_expressions(self):
        status = {"thirst": 200000, "drunk": True, "calm": False, "ratio": 0.5, "scaled": "2 * 1000", "zero": 0}
        out = emit_items_lua([{"name": "x", "label": "X", "client": {"status": status}}], BASE)
        assert "['thirst'] = 200000," in out
        assert "['drunk'] = true," in out
        assert "['calm'] = false," in out
        assert "['ratio'] = 0.5," in out
        assert "['scaled'] = 2 * 1000," in out
        assert "['zero'] = 0," in out

    def test_lua_expression_booleans(self):
        assert lua_expression(True) == "true"
        assert lua_expression(False) == "false"


# ── Quoting ────────────────────────────────────────────────────────────────

class TestQuoting:
    def test_single_quote_is_escaped(self):
        assert lua_string("Bob's Burger") == "'Bob\\'s Burger'"

    def test_backslash_and_newline(self):
        assert lua_string("a\\b\nc") == "'a\\\\b\\nc'"

    def test_control_characters_use_decimal_escapes(self):
        assert lua_string("a\x01b") == "'a\\001b'"

    def test_unicode_passes_through(self):
        assert lua_string("Café ☕") == "'Café ☕'"

    def test_quoted_label_and_name_stay_well_formed(self):
        item = {"name": "bob's", "label": "Bob's 'Special'"}
        out = emit_items_lua([item], BASE)
        assert "['bob\\'s'] = {" in out
        assert "label = 'Bob\\'s \\'Special\\''," in out

    def test_bracket_key(self):
        assert bracket_key("water bottle") == "['water bottle']"


# ── Image URL rewriting ────────────────────────────────────────────────────

class TestRewriteImageUrl:
    def test_replaces_recorded_origin(self):
        url = "http://localhost:3000/uploads/images/1-a.png"
        assert rewrite_image_url(url, BASE) == "https://cdn.example/uploads/images/1-a.png"

    def test_idempotent_for_fixed_base(self):
        url = "http://old:1234/uploads/images/1-a.png"
        once = rewrite_image_url(url, BASE)
        assert rewrite_image_url(once, BASE) == once

    def test_relative_path_gets_base(self):
        assert rewrite_image_url("/uploads/images/a.png", BASE) == "https://cdn.example/uploads/images/a.png"
        assert rewrite_image_url("uploads/images/a.png", BASE) == "https://cdn.example/uploads/images/a.png"

    def test_trailing_slash_on_base_is_ignored(self):
        assert rewrite_image_url("/x.png", BASE + "/") == "https://cdn.example/x.png"

    def test_emitted_url_uses_current_base(self, sample_items):
        out = emit_items_lua(sample_items, "http://10.0.0.5:8080")
        assert "imageurl = 'http://10.0.0.5:8080/uploads/images/1700000000000-burger.png'," in out
        assert "old-host" not in out


# ── Invalid items ──────────────────────────────────────────────────────────

class TestInvalidItems:
    def test_missing_label_aborts_by_default(self, waterbottle):
        with pytest.raises(ItemValidationError) as excinfo:
            emit_items_lua([waterbottle, {"name": "broken"}], BASE)
        assert any("label" in e for e in excinfo.value.errors)

    def test_missing_name_aborts(self):
        with pytest.raises(ItemValidationError):
            emit_items_lua([{"label": "Nameless"}], BASE)

    def test_all_problems_are_reported(self):
        with pytest.raises(ItemValidationError) as excinfo:
            emit_items_lua([{"name": "a"}, {"label": "B"}, "junk"], BASE)
        assert len(excinfo.value.errors) == 3

    def test_skip_policy_drops_and_logs(self, waterbottle, caplog):
        with caplog.at_level(logging.WARNING):
            out = emit_items_lua([{"name": "broken"}, waterbottle], BASE, on_invalid="skip")
        assert out == WATERBOTTLE_LUA
        assert "broken" in caplog.text

    def test_duplicate_names(self, waterbottle):
        dup = dict(waterbottle, label="Other")
        with pytest.raises(ItemValidationError):
            emit_items_lua([waterbottle, dup], BASE)
        kept = select_exportable([waterbottle, dup], on_invalid="skip")
        assert kept == [waterbottle]

    def test_bad_status_value(self):
        item = {"name": "x", "label": "X", "client": {"status": {"thirst": None}}}
        with pytest.raises(ItemValidationError):
            emit_items_lua([item], BASE)

    def test_unknown_policy(self):
        with pytest.raises(ValueError):
            emit_items_lua([], BASE, on_invalid="ignore")


# ── Writer ─────────────────────────────────────────────────────────────────

class TestLuaWriter:
    def test_nested_tables_and_list_elements(self):
        w = LuaWriter(indent="  ")
        w.table("t", [("a", "1"), ("inner", [("b", "'x'")]), ("list", [(None, [("c", "2")])])])
        assert w.text() == (
            "t = {\n"
            "  a = 1,\n"
            "  inner = {\n"
            "    b = 'x',\n"
            "  },\n"
            "  list = {\n"
            "    {\n"
            "      c = 2,\n"
            "    },\n"
            "  },\n"
            "},\n"
        )
