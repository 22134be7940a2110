"""
Integration tests for the MCP server surfaces.

Tests that each FastMCP instance registers the right tools and that the
registered tool functions run against the services they were built with.
"""

from dataclasses import replace

import pytest

from db.schema import init_db
from server import create_console_server, create_portal_server, create_server

CONSOLE_TOOLS = {
    "move_to_stage",
    "reject_application",
    "withdraw_application",
    "create_application",
    "add_comment",
    "assign_application",
    "get_application",
    "list_activity",
    "get_journey",
    "refresh_stage_ages",
    "register_candidate",
    "create_job_opening",
    "create_offer",
    "send_offer",
    "respond_to_offer",
    "set_offer_status",
    "update_offer_terms",
    "resend_offer",
    "delete_offer",
    "mark_offer_viewed",
    "get_offer",
    "list_offers",
}

PORTAL_TOOLS = {
    "portal_lookup",
    "portal_get_application_status",
    "portal_withdraw",
    "portal_respond_to_offer",
    "portal_view_offer",
    "portal_submit_application",
}


@pytest.fixture
def console(services):
    return create_console_server(services)


@pytest.fixture
def portal_server(services):
    return create_portal_server(services)


def _call(server, name, /, **kwargs):
    return server._tool_manager._tools[name].fn(**kwargs)


class TestServerRegistration:
    def test_server_names(self, console, portal_server):
        assert console.name == "hireflow-console"
        assert portal_server.name == "hireflow-portal"

    def test_server_name_override(self, services):
        assert create_console_server(services, server_name="hr-console").name == "hr-console"

    def test_instructions_mention_tools(self, console, portal_server):
        assert "move_to_stage" in console.instructions
        assert "portal_lookup" in portal_server.instructions

    def test_console_tools_registered(self, console):
        assert set(console._tool_manager._tools) == CONSOLE_TOOLS

    def test_portal_exposes_only_candidate_tools(self, portal_server):
        assert set(portal_server._tool_manager._tools) == PORTAL_TOOLS

    def test_tool_has_description(self, console):
        tool = console._tool_manager._tools["move_to_stage"]
        assert tool.name == "move_to_stage"
        assert tool.description

    @pytest.mark.parametrize(
        "surface,tools",
        [("portal", PORTAL_TOOLS), ("console", CONSOLE_TOOLS), ("unknown", CONSOLE_TOOLS)],
    )
    def test_create_server_by_surface(self, services, surface, tools):
        assert set(create_server(surface, services)._tool_manager._tools) == tools


class TestToolFunctions:
    def test_console_flow(self, console, services):
        job = _call(console, "create_job_opening", title="Data Engineer", skills="python, spark")["job"]
        candidate = _call(
            console, "register_candidate", name="Meera Iyer", email="meera@example.com", phone="99000 54321"
        )["candidate"]

        created = _call(console, "create_application", candidate_id=candidate["id"], job_id=job["id"])
        application_id = created["application"]["id"]
        services.side_effects.drain()

        moved = _call(console, "move_to_stage", application_id=application_id, target_stage="screening")
        assert moved["application"]["stage"] == "screening"

        fetched = _call(console, "get_application", application_id=application_id)
        assert fetched["application"]["version"] == moved["application"]["version"]

        offer = _call(console, "create_offer", application_id=application_id)
        assert offer["offer"]["status"] == "draft"

    def test_validation_error_through_tool(self, console):
        result = _call(console, "move_to_stage", application_id=1, target_stage="Screening")
        assert result["error"]["code"] == "VALIDATION_ERROR"

    def test_portal_flow(self, console, portal_server, services):
        job = _call(console, "create_job_opening", title="Analyst")["job"]
        _call(console, "register_candidate", name="Arjun", email="arjun@example.com", phone="98450 67890")

        submitted = _call(
            portal_server, "portal_submit_application", name="Arjun", email="arjun@example.com", job_id=job["id"]
        )
        assert "token" not in submitted
        services.side_effects.drain()

        token = _call(portal_server, "portal_lookup", email="arjun@example.com", phone_last5="67890")["token"]
        result = _call(
            portal_server,
            "portal_withdraw",
            application_id=submitted["application_id"],
            email="arjun@example.com",
            token=token,
        )
        assert result["stage_key"] == "withdrawn"

    def test_tools_use_the_bound_services(self, services, tmp_path, console):
        other_db = str(init_db(str(tmp_path / "other.db")))
        other_console = create_console_server(replace(services, db_path=other_db))

        job = _call(console, "create_job_opening", title="Backend Engineer")["job"]
        candidate = _call(console, "register_candidate", name="Ravi", email="ravi@example.com")["candidate"]
        created = _call(console, "create_application", candidate_id=candidate["id"], job_id=job["id"])
        application_id = created["application"]["id"]
        services.side_effects.drain()

        assert _call(console, "get_application", application_id=application_id)["application"]["id"] == application_id
        result = _call(other_console, "get_application", application_id=application_id)
        assert result["error"]["code"] == "NOT_FOUND"
