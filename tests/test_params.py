"""Tests for grammar-neutral request parameters built by commands."""

import pytest

from filemaker_client import params
from filemaker_client.commands import Command
from filemaker_client.errors import CommandError, FieldNotFoundError

from conftest import LAYOUT, SINGLE_RESULT_XML, sent_params


class TestParamBuilders:
    def test_command_params_basics(self) -> None:
        built = params.command_params("Contacts", "Contact Detail")
        assert built == {"-db": "Contacts", "-lay": "Contact Detail"}

    def test_scripts_only_when_set(self) -> None:
        built = params.command_params(
            "Contacts",
            "Contact Detail",
            script=("After", "x"),
            pre_sort_script=("Sorting", None),
        )
        assert built["-script"] == "After"
        assert built["-script.param"] == "x"
        assert built["-script.presort"] == "Sorting"
        assert "-script.presort.param" not in built
        assert "-script.prefind" not in built

    def test_result_layout_and_globals(self) -> None:
        built = params.command_params(
            "Contacts", "Contact Detail", result_layout="List", global_fields={"Session": "abc"}
        )
        assert built["-lay.response"] == "List"
        assert built["Session.global"] == "abc"

    def test_sort_params_ascending_precedence(self) -> None:
        built = params.add_sort_params({}, {2: ("Age", None), 1: ("Name", "descend")})
        assert list(built) == ["-sortfield.1", "-sortorder.1", "-sortfield.2"]
        assert built["-sortorder.1"] == "descend"

    def test_range_omits_zero(self) -> None:
        assert params.add_range_params({}, 0, None) == {}
        assert params.add_range_params({}, 5, 10) == {"-skip": 5, "-max": 10}

    def test_related_sets_filter(self) -> None:
        built = params.add_related_sets_filter_params({}, "layout", 3)
        assert built == {"-relatedsets.filter": "layout", "-relatedsets.max": 3}
        assert params.add_related_sets_filter_params({}, None, 3) == {}

    def test_find_without_criteria_is_findall(self) -> None:
        assert params.add_find_params({}, {}) == {"-findall": True}

    def test_find_with_record_id(self) -> None:
        assert params.add_find_params({}, {}, record_id="7") == {"-find": True, "-recid": "7"}


class TestCompoundFind:
    def test_query_expression(self) -> None:
        built = params.add_compound_find_params(
            {},
            [({"A": "1"}, False), ({"B": "2", "C": "3"}, False), ({"D": "4"}, True)],
        )
        assert built["-query"] == "(q1);(q2,q3);!(q4)"
        assert built["-q2"] == "B"
        assert built["-q3.value"] == "3"
        assert built["-findquery"] is True

    def test_empty_requests_are_skipped(self) -> None:
        built = params.add_compound_find_params({}, [({}, False), ({"A": "1"}, True)])
        assert built["-query"] == "!(q1)"

    def test_requests_sorted_by_precedence(self, fm, xml_transport) -> None:
        command = fm.new_compound_find_command(LAYOUT)
        command.add(3, fm.new_find_request(LAYOUT).add_find_criterion("Status", "I").set_omit())
        command.add(1, fm.new_find_request(LAYOUT).add_find_criterion("Name", "Ada"))
        command.add(
            2,
            fm.new_find_request(LAYOUT).add_find_criterion("Age", ">30").add_find_criterion("Status", "A"),
        )
        command.execute()
        request = sent_params(xml_transport)[-1]
        assert request["-query"] == "(q1);(q2,q3);!(q4)"
        assert (request["-q1"], request["-q1.value"]) == ("Name", "Ada")
        assert (request["-q4"], request["-q4.value"]) == ("Status", "I")


class TestCommandParams:
    """Flat parameters produced by each command over the XML grammar."""

    def test_base_command_is_abstract(self, fm) -> None:
        with pytest.raises(TypeError):
            Command(fm, LAYOUT)

    def test_find_end_to_end(self, fm, xml_transport) -> None:
        command = fm.new_find_command(LAYOUT)
        command.add_find_criterion("Name", "Smith")
        command.add_sort_rule("Age", 1, "ascend")
        command.set_range(0, 10)
        command.execute()
        request = sent_params(xml_transport)[-1]
        assert request["-db"] == "Contacts"
        assert request["-lay"] == LAYOUT
        assert request["-find"] is True
        assert request["Name"] == "Smith"
        assert request["-sortfield.1"] == "Age"
        assert request["-sortorder.1"] == "ascend"
        assert request["-max"] == 10
        assert "-skip" not in request

    def test_find_or_operator(self, fm, xml_transport) -> None:
        fm.new_find_command(LAYOUT).add_find_criterion("Name", "A").set_logical_operator("or").execute()
        assert sent_params(xml_transport)[-1]["-lop"] == "or"

    def test_find_unknown_field(self, fm) -> None:
        with pytest.raises(FieldNotFoundError):
            fm.new_find_command(LAYOUT).add_find_criterion("Nope", "x")

    def test_sort_precedence_bounds(self, fm) -> None:
        command = fm.new_find_all_command(LAYOUT)
        with pytest.raises(CommandError):
            command.add_sort_rule("Name", 10)
        with pytest.raises(CommandError):
            command.add_sort_rule("Name", 0)

    def test_findall_with_range(self, fm, xml_transport) -> None:
        command = fm.new_find_all_command(LAYOUT)
        command.set_range(20, 10)
        assert command.get_range() == (20, 10)
        command.execute()
        request = sent_params(xml_transport)[-1]
        assert request["-findall"] is True
        assert request["-skip"] == 20

    def test_add_repetitions_are_one_based(self, fm, xml_transport) -> None:
        xml_transport.result_doc = SINGLE_RESULT_XML
        fm.new_add_command(LAYOUT, {"Name": "Ada", "Phone": ["555-1", "555-2"]}).execute()
        request = sent_params(xml_transport)[-1]
        assert request["-new"] is True
        assert request["Name(1)"] == "Ada"
        assert request["Phone(1)"] == "555-1"
        assert request["Phone(2)"] == "555-2"

    def test_global_field_gets_suffix(self, fm, xml_transport) -> None:
        xml_transport.result_doc = SINGLE_RESULT_XML
        fm.new_edit_command(LAYOUT, 1, {"Session": "s1"}).execute()
        assert sent_params(xml_transport)[-1]["Session(1).global"] == "s1"

    def test_dotted_field_keeps_suffix(self, fm, xml_transport) -> None:
        xml_transport.result_doc = SINGLE_RESULT_XML
        fm.new_edit_command(LAYOUT, 1, {"Orders::Item.10": "Bolt"}).execute()
        assert sent_params(xml_transport)[-1]["Orders::Item(1).10"] == "Bolt"

    def test_edit_params(self, fm, xml_transport) -> None:
        xml_transport.result_doc = SINGLE_RESULT_XML
        command = fm.new_edit_command(LAYOUT, 1)
        command.set_field("Name", "Ada")
        command.set_modification_id(3)
        command.execute()
        request = sent_params(xml_transport)[-1]
        assert request["-edit"] is True
        assert request["-recid"] == "1"
        assert request["-modid"] == "3"
        assert request["Name(1)"] == "Ada"

    def test_edit_requires_record_id(self, fm) -> None:
        with pytest.raises(CommandError):
            fm.new_edit_command(LAYOUT, values={"Name": "x"}).execute()

    def test_edit_requires_changes(self, fm) -> None:
        with pytest.raises(CommandError):
            fm.new_edit_command(LAYOUT, 1).execute()

    def test_delete_related_params(self, fm, xml_transport) -> None:
        xml_transport.result_doc = SINGLE_RESULT_XML
        fm.new_edit_command(LAYOUT, 1).set_delete_related("Orders.10").execute()
        request = sent_params(xml_transport)[-1]
        assert request["-delete.related"] == "Orders.10"
        assert "Name(1)" not in request

    def test_delete_and_duplicate_require_record_id(self, fm) -> None:
        with pytest.raises(CommandError):
            fm.new_delete_command(LAYOUT).execute()
        with pytest.raises(CommandError):
            fm.new_duplicate_command(LAYOUT).execute()

    def test_duplicate_params(self, fm, xml_transport) -> None:
        xml_transport.result_doc = SINGLE_RESULT_XML
        fm.new_duplicate_command(LAYOUT, 1).execute()
        request = sent_params(xml_transport)[-1]
        assert request["-dup"] is True
        assert request["-recid"] == "1"

    def test_perform_script_uses_findany_over_xml(self, fm, xml_transport) -> None:
        fm.new_perform_script_command(LAYOUT, "Cleanup", "all").execute()
        request = sent_params(xml_transport)[-1]
        assert request["-findany"] is True
        assert request["-script"] == "Cleanup"
        assert request["-script.param"] == "all"

    def test_related_set_param_not_sent_over_xml(self, fm, xml_transport) -> None:
        xml_transport.result_doc = SINGLE_RESULT_XML
        command = fm.new_edit_command(LAYOUT, 1, {"Orders::Item.0": "Bolt"})
        command.set_related_set("Orders")
        command.execute()
        assert "-relatedSet" not in sent_params(xml_transport)[-1]

    def test_related_sets_filter_validation(self, fm) -> None:
        with pytest.raises(CommandError):
            fm.new_find_all_command(LAYOUT).set_related_sets_filters("all")
