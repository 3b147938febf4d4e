"""
User-visible bot texts.

Users only ever see one of these templates (or a verbatim classifier
answer / executor message). Raw dependency errors are never interpolated.
"""

from typing import Iterable

from clixen.entitlements.models import AccessState, EntitlementResult
from clixen.services.workflow_catalog import WorkflowDefinition

CLASSIFIER_FALLBACK = "How can I help you today? Try asking about the weather or to translate some text."
CLARIFICATION_FALLBACK = "Could you provide a bit more detail?"
WORKFLOW_FAILED = "Sorry, I couldn't complete that task right now. Please try again in a moment."
UNEXPECTED_ERROR = "Something went wrong on our side. Please try again."


def onboarding_prompt(signup_url: str) -> str:
    return (
        "Welcome to Clixen AI!\n\n"
        "To get started:\n"
        f"1. Sign up at {signup_url}\n"
        "2. Open your dashboard and click \"Link Telegram\"\n"
        "3. Send me the linking code\n\n"
        "After linking I can check the weather, translate text, scan your inbox and more."
    )


def signup_prompt(signup_url: str) -> str:
    return (
        "I don't recognise this chat yet. "
        f"Please sign up at {signup_url} and link your Telegram account to continue."
    )


def upgrade_prompt(access: EntitlementResult, billing_url: str) -> str:
    if access.state is AccessState.TRIAL_EXPIRED:
        return f"Your free trial has expired. Upgrade at {billing_url} to keep using the bot."
    if access.eligible_for_trial:
        return (
            "You don't have an active plan yet. "
            "Send /trial to start your 7-day free trial, "
            f"or choose a plan at {billing_url}."
        )
    return f"A subscription is required to use the bot. Choose a plan at {billing_url}."


def out_of_credits_prompt(billing_url: str) -> str:
    return f"You're out of credits for this request. Top up or upgrade at {billing_url}."


def tier_required_prompt(workflow: WorkflowDefinition, billing_url: str) -> str:
    return (
        f"{workflow.description} requires the {workflow.min_tier.value.title()} plan or higher. "
        f"Upgrade at {billing_url} to unlock it."
    )


def workflow_unavailable(workflow_key: str) -> str:
    return f"The \"{workflow_key}\" automation is not available yet. Coming soon!"


def welcome_back(first_name: str) -> str:
    name = first_name or "there"
    return (
        f"Welcome back, {name}! Your account is linked and ready.\n\n"
        "Send me any request in plain language, or use:\n"
        "/help - available features\n"
        "/status - account status\n"
        "/unlink - disconnect this chat"
    )


def help_text(workflows: Iterable[WorkflowDefinition], access: EntitlementResult) -> str:
    lines = ["Clixen AI - available features:", ""]
    for workflow in workflows:
        lines.append(f"- {workflow.description}: \"{workflow.example}\"")
    lines += [
        "",
        "Commands: /status, /help, /trial, /unlink",
        f"Tier: {access.tier.upper()}" + (" (TRIAL)" if access.is_trial else ""),
    ]
    return "\n".join(lines)


def status_text(access: EntitlementResult, quota_used: int, quota_limit, billing_url: str) -> str:
    state_labels = {
        AccessState.ACTIVE_PAID: "Active subscription",
        AccessState.ACTIVE_TRIAL: f"Free trial, {access.days_remaining} day(s) left",
        AccessState.TRIAL_EXPIRED: "Trial expired",
        AccessState.NO_ACCESS: "No active plan",
    }
    quota = f"{quota_used}/{quota_limit}" if quota_limit is not None else f"{quota_used}"
    lines = [
        "Account status",
        "",
        f"Tier: {access.tier.upper()}",
        f"Access: {state_labels[access.state]}",
        f"Credits remaining: {access.credits_remaining}",
        f"Requests used: {quota}",
    ]
    if not access.has_access:
        lines += ["", f"Upgrade at {billing_url} for full access."]
    return "\n".join(lines)


def trial_started(days: int, credits: int) -> str:
    return f"Your free trial has started! You have {days} days and {credits} credits."


def trial_unavailable(billing_url: str) -> str:
    return (
        "A free trial can only be started once, within 24 hours of signing up. "
        f"Choose a plan at {billing_url}."
    )


LINK_SUCCESS = (
    "Account linked successfully!\n\n"
    "Try asking me something like:\n"
    "- \"What's the weather in New York?\"\n"
    "- \"Translate 'hello' to Spanish\"\n\n"
    "Use /help to see all features."
)
LINK_ALREADY = "This chat is already linked to an account."


def link_failed(app_url: str) -> str:
    return (
        "That linking code is invalid or has expired.\n\n"
        f"Get a new code from your dashboard at {app_url} and send it within 10 minutes."
    )


def unlinked(app_url: str) -> str:
    return f"This chat has been unlinked. Visit {app_url} to link it again."


UNLINK_FAILED = "This chat is not linked to an account."


def unknown_command(command: str) -> str:
    return f"Unknown command: {command}\n\nUse /help to see available commands, or just ask me in plain language."
