#!/usr/bin/env python3
"""
MCP server entry point for HireFlow.

Two surfaces share one database and the same engines:

- console: the internal recruiter tools (stages, offers, comments, candidates)
- portal: the candidate-facing tools, every call scoped by email + tracking token

HIREFLOW_SURFACE picks which one a process serves. The collaborators are
built once in main() and bound to the tools of the server that is created.

Usage:
    python server.py
    HIREFLOW_SURFACE=portal python server.py

The server runs in stdio mode, which is the standard transport for MCP
servers that are invoked by LLM agents.
"""

import logging
from typing import Any, Dict, Optional

from mcp.server.fastmcp import FastMCP

from config import get_config
from db.schema import init_db
from pipeline.services import HiringServices, build_services
from tools import applications as application_tools
from tools import offers as offer_tools
from tools import portal as portal_tools

config = get_config()

CONSOLE_INSTRUCTIONS = (
    "This server provides the recruiter console for HireFlow. "
    "\n\n"
    "PIPELINE:\n"
    "Applications move through shortlisting, screening, assessment, interview, "
    "offer-sent, offer-accepted and hired; rejected and withdrawn close them. "
    "Use move_to_stage for ordinary moves (pass expected_stage to guard against stale reads), "
    "reject_application and withdraw_application to close an application, "
    "get_application, get_journey and list_activity to inspect one. "
    "refresh_stage_ages recomputes days-in-stage and flags stale applications."
    "\n\n"
    "OFFERS:\n"
    "Use create_offer to draft (or send_now) an offer, send_offer to send a draft, "
    "update_offer_terms to edit, set_offer_status for administrative closes "
    "(negotiating, rejected, expired, withdrawn), respond_to_offer to record the "
    "candidate's answer. Terminal offers accept no further changes."
    "\n\n"
    "A CONFLICT error is retryable: re-read the application and try again."
)

PORTAL_INSTRUCTIONS = (
    "This server is the HireFlow candidate portal. "
    "Call portal_lookup with the candidate's email and the last 5 digits of their phone "
    "number to obtain a tracking token, then pass application_id, email and token to the "
    "other portal tools. portal_submit_application applies to a job opening and returns "
    "the reference number; track it with portal_lookup afterwards."
)


def _provided(**kwargs: Any) -> Dict[str, Any]:
    """Build tool arguments from the parameters that were explicitly provided."""
    return {key: value for key, value in kwargs.items() if value is not None}


# ----------------------------------------------------------------------
# Console tools
# ----------------------------------------------------------------------


def create_console_server(services: HiringServices, server_name: Optional[str] = None) -> FastMCP:
    """Build the recruiter console with every tool bound to ``services``."""
    server = FastMCP(name=server_name or config.server_name, instructions=CONSOLE_INSTRUCTIONS)

    @server.tool(
        name="move_to_stage",
        description=(
            "Move an application to another pipeline stage. Closes the open stage-history "
            "entry and opens a new one in the same transaction. Backward moves are allowed "
            "with a warning; moves out of rejected/withdrawn/hired are refused."
        ),
    )
    def move_to_stage_tool(
        application_id: int,
        target_stage: str,
        actor: str | None = None,
        notes: str | None = None,
        action: str | None = None,
        expected_stage: str | None = None,
        notify: bool | None = None,
    ) -> dict:
        """
        Move an application to ``target_stage``.

        Args:
            application_id: Application to move
            target_stage: Stage key (e.g. 'screening', 'interview')
            actor: Who performs the move (default: configured default actor)
            notes: Free-text notes stored on the new history entry
            action: History action label (default: 'stage_change')
            expected_stage: Stage the caller believes the application is in;
                a mismatch fails with CONFLICT
            notify: Send the stage-update notification to the candidate

        Returns:
            {"application": {...}, "transition": {"allowed": true, "warnings": [...]}}
            or {"error": {"code", "message", "retryable"}}
        """
        return application_tools.move_to_stage(
            _provided(
                application_id=application_id,
                target_stage=target_stage,
                actor=actor,
                notes=notes,
                action=action,
                expected_stage=expected_stage,
                notify=notify,
            ),
            services,
        )

    @server.tool(
        name="reject_application",
        description="Reject an application with a mandatory reason; optionally notify the candidate.",
    )
    def reject_application_tool(
        application_id: int,
        reason: str,
        actor: str | None = None,
        notify: bool | None = None,
    ) -> dict:
        return application_tools.reject_application(
            _provided(application_id=application_id, reason=reason, actor=actor, notify=notify),
            services,
        )

    @server.tool(
        name="withdraw_application",
        description="Withdraw an application on the candidate's behalf. Refused after the offer was accepted.",
    )
    def withdraw_application_tool(
        application_id: int,
        reason: str | None = None,
        actor: str | None = None,
    ) -> dict:
        return application_tools.withdraw_application(
            _provided(application_id=application_id, reason=reason, actor=actor),
            services,
        )

    @server.tool(
        name="create_application",
        description=(
            "Create an application for an existing candidate and job opening. It starts at "
            "'shortlisting'; resume scoring runs in the background."
        ),
    )
    def create_application_tool(
        candidate_id: int,
        job_id: int,
        actor: str | None = None,
        referral_source: str | None = None,
        notify: bool | None = None,
    ) -> dict:
        return application_tools.create_application(
            _provided(
                candidate_id=candidate_id,
                job_id=job_id,
                actor=actor,
                referral_source=referral_source,
                notify=notify,
            ),
            services,
        )

    @server.tool(name="add_comment", description="Add a recruiter comment to an application.")
    def add_comment_tool(
        application_id: int,
        text: str,
        actor: str | None = None,
        stage: str | None = None,
    ) -> dict:
        return application_tools.add_comment(
            _provided(application_id=application_id, text=text, actor=actor, stage=stage),
            services,
        )

    @server.tool(name="assign_application", description="Assign an application to a recruiter.")
    def assign_application_tool(application_id: int, assignee: str, actor: str | None = None) -> dict:
        return application_tools.assign_application(
            _provided(application_id=application_id, assignee=assignee, actor=actor),
            services,
        )

    @server.tool(
        name="get_application",
        description="Get an application with its stage history and comments.",
    )
    def get_application_tool(application_id: int) -> dict:
        return application_tools.get_application({"application_id": application_id}, services)

    @server.tool(name="list_activity", description="List the activity log of an application, oldest first.")
    def list_activity_tool(application_id: int) -> dict:
        return application_tools.list_activity({"application_id": application_id}, services)

    @server.tool(
        name="get_journey",
        description="Merged timeline of stage changes, comments and activity for an application.",
    )
    def get_journey_tool(application_id: int) -> dict:
        return application_tools.get_journey({"application_id": application_id}, services)

    @server.tool(
        name="refresh_stage_ages",
        description=(
            "Recompute days-in-stage for every open application and flag those stuck longer "
            "than the configured threshold."
        ),
    )
    def refresh_stage_ages_tool() -> dict:
        return application_tools.refresh_stage_ages({}, services)

    @server.tool(
        name="register_candidate",
        description="Register a candidate, or update the one already registered under the email.",
    )
    def register_candidate_tool(
        name: str,
        email: str,
        phone: str | None = None,
        resume_text: str | None = None,
        resume_key: str | None = None,
    ) -> dict:
        return application_tools.register_candidate(
            _provided(name=name, email=email, phone=phone, resume_text=resume_text, resume_key=resume_key),
            services,
        )

    @server.tool(name="create_job_opening", description="Create a job opening applications can point at.")
    def create_job_opening_tool(
        title: str,
        department: str | None = None,
        location: str | None = None,
        skills: str | None = None,
        description: str | None = None,
    ) -> dict:
        return application_tools.create_job_opening(
            _provided(
                title=title,
                department=department,
                location=location,
                skills=skills,
                description=description,
            ),
            services,
        )

    @server.tool(
        name="create_offer",
        description=(
            "Create an offer for an application. Fails if the application already has an "
            "active offer. With send_now the offer is sent and the application moves to 'offer-sent'."
        ),
    )
    def create_offer_tool(
        application_id: int,
        terms: dict | None = None,
        actor: str | None = None,
        send_now: bool | None = None,
    ) -> dict:
        """
        Create an offer.

        Args:
            application_id: Application the offer belongs to
            terms: Offer terms. Keys: offer_type (text|pdf|word), offer_content,
                attachment (path, {"key","name","type"} or tagged record), salary,
                salary_currency, bonus, equity, benefits, start_date, expiry_date,
                terms_and_conditions, internal_notes
            actor: Who creates the offer
            send_now: Send immediately instead of leaving a draft

        Returns:
            {"offer": {...}, "application": {...}} or {"error": {...}}
        """
        return offer_tools.create_offer(
            _provided(application_id=application_id, terms=terms, actor=actor, send_now=send_now),
            services,
        )

    @server.tool(name="send_offer", description="Send a draft offer and move the application to 'offer-sent'.")
    def send_offer_tool(offer_id: int, actor: str | None = None) -> dict:
        return offer_tools.send_offer(_provided(offer_id=offer_id, actor=actor), services)

    @server.tool(
        name="respond_to_offer",
        description=(
            "Record the candidate's accept or decline of a sent offer. Accept moves the "
            "application to 'offer-accepted'; decline leaves the stage unchanged."
        ),
    )
    def respond_to_offer_tool(
        offer_id: int,
        response: str,
        actor: str | None = None,
        details: str | None = None,
        joining_date: str | None = None,
        joining_location: str | None = None,
    ) -> dict:
        return offer_tools.respond_to_offer(
            _provided(
                offer_id=offer_id,
                response=response,
                actor=actor,
                details=details,
                joining_date=joining_date,
                joining_location=joining_location,
            ),
            services,
        )

    @server.tool(
        name="set_offer_status",
        description="Administrative offer status change: negotiating, rejected, expired or withdrawn.",
    )
    def set_offer_status_tool(
        offer_id: int,
        status: str,
        actor: str | None = None,
        notes: str | None = None,
    ) -> dict:
        return offer_tools.set_offer_status(
            _provided(offer_id=offer_id, status=status, actor=actor, notes=notes),
            services,
        )

    @server.tool(
        name="update_offer_terms",
        description="Edit the terms of a non-terminal offer; with resend the candidate is notified again.",
    )
    def update_offer_terms_tool(
        offer_id: int,
        terms: dict,
        actor: str | None = None,
        resend: bool | None = None,
    ) -> dict:
        return offer_tools.update_offer_terms(
            _provided(offer_id=offer_id, terms=terms, actor=actor, resend=resend),
            services,
        )

    @server.tool(name="resend_offer", description="Send the offer notification again.")
    def resend_offer_tool(offer_id: int, actor: str | None = None) -> dict:
        return offer_tools.resend_offer(_provided(offer_id=offer_id, actor=actor), services)

    @server.tool(name="delete_offer", description="Delete a draft offer.")
    def delete_offer_tool(offer_id: int, actor: str | None = None) -> dict:
        return offer_tools.delete_offer(_provided(offer_id=offer_id, actor=actor), services)

    @server.tool(name="mark_offer_viewed", description="Mark a sent offer as viewed.")
    def mark_offer_viewed_tool(offer_id: int, actor: str | None = None) -> dict:
        return offer_tools.mark_offer_viewed(_provided(offer_id=offer_id, actor=actor), services)

    @server.tool(name="get_offer", description="Get an offer with its negotiation history.")
    def get_offer_tool(offer_id: int) -> dict:
        return offer_tools.get_offer({"offer_id": offer_id}, services)

    @server.tool(name="list_offers", description="List the offers of an application, newest first.")
    def list_offers_tool(application_id: int) -> dict:
        return offer_tools.list_offers({"application_id": application_id}, services)

    return server


# ----------------------------------------------------------------------
# Portal tools
# ----------------------------------------------------------------------


def create_portal_server(services: HiringServices, server_name: Optional[str] = None) -> FastMCP:
    """Build the candidate portal; it exposes only the portal tools."""
    server = FastMCP(name=server_name or config.portal_server_name, instructions=PORTAL_INSTRUCTIONS)

    @server.tool(
        name="portal_lookup",
        description="Find your applications by email and the last 5 digits of your phone number.",
    )
    def portal_lookup_tool(email: str, phone_last5: str) -> dict:
        return portal_tools.portal_lookup({"email": email, "phone_last5": phone_last5}, services)

    @server.tool(
        name="portal_get_application_status",
        description="Status, timeline and offer details of one of your applications.",
    )
    def portal_get_application_status_tool(application_id: int, email: str, token: str) -> dict:
        return portal_tools.portal_get_application_status(
            {"application_id": application_id, "email": email, "token": token},
            services,
        )

    @server.tool(name="portal_withdraw", description="Withdraw one of your applications.")
    def portal_withdraw_tool(
        application_id: int,
        email: str,
        token: str,
        reason: str | None = None,
    ) -> dict:
        return portal_tools.portal_withdraw(
            _provided(application_id=application_id, email=email, token=token, reason=reason),
            services,
        )

    @server.tool(
        name="portal_respond_to_offer",
        description=(
            "Accept or decline your pending offer. Accepting needs joining_date and "
            "joining_location; declining needs a reason."
        ),
    )
    def portal_respond_to_offer_tool(
        application_id: int,
        email: str,
        token: str,
        response: str,
        message: str | None = None,
        joining_date: str | None = None,
        joining_location: str | None = None,
        reason: str | None = None,
    ) -> dict:
        return portal_tools.portal_respond_to_offer(
            _provided(
                application_id=application_id,
                email=email,
                token=token,
                response=response,
                message=message,
                joining_date=joining_date,
                joining_location=joining_location,
                reason=reason,
            ),
            services,
        )

    @server.tool(name="portal_view_offer", description="View the offer made on one of your applications.")
    def portal_view_offer_tool(application_id: int, email: str, token: str) -> dict:
        return portal_tools.portal_view_offer(
            {"application_id": application_id, "email": email, "token": token},
            services,
        )

    @server.tool(
        name="portal_submit_application",
        description=(
            "Apply to a job opening. Returns your reference number; "
            "use portal_lookup to get a tracking token."
        ),
    )
    def portal_submit_application_tool(
        name: str,
        email: str,
        job_id: int,
        phone: str | None = None,
        resume_text: str | None = None,
        resume_key: str | None = None,
        referral_source: str | None = None,
    ) -> dict:
        return portal_tools.portal_submit_application(
            _provided(
                name=name,
                email=email,
                job_id=job_id,
                phone=phone,
                resume_text=resume_text,
                resume_key=resume_key,
                referral_source=referral_source,
            ),
            services,
        )

    return server


def create_server(surface: str, services: HiringServices) -> FastMCP:
    """Build the FastMCP instance for a surface name; unknown names get the console."""
    if surface == "portal":
        return create_portal_server(services)
    return create_console_server(services)


def main():
    """
    Main entry point for the MCP server.

    Builds the collaborators once, binds them to the selected surface and
    runs it in stdio mode. Side-effect workers are drained before the
    process exits.
    """
    config.setup_logging()

    logger = logging.getLogger(__name__)
    logger.info("Starting HireFlow MCP Server")

    warnings = config.validate()
    for warning in warnings:
        logger.warning(warning)

    init_db(config.get_db_path_str())
    services = build_services(config)

    server = create_server(config.surface, services)
    logger.info(f"Server name: {server.name}")
    logger.info("Server starting in stdio mode")
    try:
        server.run(transport="stdio")
    finally:
        services.side_effects.shutdown()


if __name__ == "__main__":
    main()
