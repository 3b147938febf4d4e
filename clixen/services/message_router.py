"""
Inbound chat message routing.

Per message:
1. Link the chat to a profile when the message carries a linking token
2. Resolve the profile by chat identity; unknown chats get a signup prompt
3. Bot commands (work without access so users can check status / start a trial)
4. Entitlement gate; no classification call for users without access
5. Classify intent and dispatch (direct answer, clarification, or workflow)
6. Record usage for every resolved profile, including unexpected failures

Edited messages are ignored: an edit carries the id of a message that was
already routed, charged and recorded.

route() never raises: the platform only needs the webhook acknowledged,
and every outbound send is best-effort.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Callable, Optional, Tuple

from clixen.api.schemas.telegram import TelegramMessage, TelegramUpdate
from clixen.config import Settings
from clixen.entitlements import EntitlementResult, evaluate
from clixen.entitlements.evaluator import TRIAL_CREDITS, TRIAL_DURATION
from clixen.integrations.telegram.client import TelegramClient
from clixen.integrations.workflows.executor_client import WorkflowExecutorClient
from clixen.models.profile import Profile
from clixen.monitoring.alerts import record_executor_failure
from clixen.services import bot_messages
from clixen.services.intent_classifier import (
    ClassificationContext,
    DirectResponse,
    IntentClassifier,
    NeedClarification,
    RouteToWorkflow,
)
from clixen.services.profile_store import ProfileStore
from clixen.services.usage_recorder import UsageRecorder
from clixen.services.workflow_catalog import get_workflow, workflows_for_tier

logger = logging.getLogger(__name__)

LINK_TOKEN_PATTERN = re.compile(r"^[0-9a-f]{64}$")


def parse_command(text: str) -> Tuple[Optional[str], str]:
    """Split "/cmd@bot args" into ("/cmd", "args"); (None, text) for plain text."""
    if not text.startswith("/"):
        return None, text
    head, _, rest = text.partition(" ")
    command = head.split("@", 1)[0].lower()
    return command, rest.strip()


class MessageRouter:
    """Routes one inbound chat update to a reply."""

    def __init__(
        self,
        store: ProfileStore,
        usage: UsageRecorder,
        classifier: IntentClassifier,
        executor: WorkflowExecutorClient,
        telegram: TelegramClient,
        settings: Settings,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.usage = usage
        self.classifier = classifier
        self.executor = executor
        self.telegram = telegram
        self.settings = settings
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def route(self, update: TelegramUpdate) -> None:
        message = update.message
        if message is None:
            if update.edited_message is not None:
                logger.info(
                    "Edited message ignored",
                    extra={"update_id": update.update_id, "chat_id": update.edited_message.chat.id},
                )
            else:
                logger.debug("Update without message ignored", extra={"update_id": update.update_id})
            return

        chat_id = message.chat.id
        try:
            await self._handle(message)
        except Exception as e:
            logger.exception(
                "Unhandled error while routing message",
                extra={"chat_id": chat_id, "error_type": type(e).__name__},
            )
            await self._reply(chat_id, bot_messages.UNEXPECTED_ERROR)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _handle(self, message: TelegramMessage) -> None:
        chat_id = message.chat.id
        text = message.body.strip()
        now = self._clock()
        command, args = parse_command(text)

        logger.info(
            "Inbound message",
            extra={
                "chat_id": chat_id,
                "text_length": len(text),
                "has_document": message.document is not None,
            },
        )

        if command == "/link" or LINK_TOKEN_PATTERN.match(text.lower()):
            token = args if command == "/link" else text
            await self._link(message, token.lower(), now)
            return

        profile = self.store.get_by_chat_id(chat_id)
        if profile is None:
            if command == "/start":
                await self._reply(chat_id, bot_messages.onboarding_prompt(self.settings.signup_url))
            else:
                await self._reply(chat_id, bot_messages.signup_prompt(self.settings.signup_url))
            return

        try:
            await self._handle_for_profile(profile, message, text, command, now)
        except Exception as e:
            self._record(profile, message, f"error:{type(e).__name__}", succeeded=False)
            raise

    async def _handle_for_profile(
        self,
        profile: Profile,
        message: TelegramMessage,
        text: str,
        command: Optional[str],
        now: datetime,
    ) -> None:
        chat_id = message.chat.id
        self.store.touch_activity(profile.id, now)
        access = evaluate(profile, now)

        if command is not None:
            await self._handle_command(command, profile, access, message, now)
            return

        if not access.has_access:
            await self._reply(chat_id, bot_messages.upgrade_prompt(access, self.settings.billing_url))
            self._record(profile, message, f"gate:{access.state.value}", succeeded=False)
            return

        if not text and message.document is None:
            await self._reply(chat_id, bot_messages.CLASSIFIER_FALLBACK)
            self._record(profile, message, "empty_message")
            return

        context = ClassificationContext(
            tier=access.tier,
            is_trial=access.is_trial,
            credits_remaining=access.credits_remaining,
            attachment_name=message.document.file_name if message.document else None,
        )
        decision = await self.classifier.classify(text, context)

        if isinstance(decision, DirectResponse):
            await self._reply(chat_id, decision.response)
            self._record(profile, message, "direct_response")
        elif isinstance(decision, NeedClarification):
            await self._reply(chat_id, decision.clarification)
            self._record(profile, message, "need_clarification")
        elif isinstance(decision, RouteToWorkflow):
            await self._dispatch_workflow(decision, profile, message, text, now)

    async def _dispatch_workflow(
        self,
        decision: RouteToWorkflow,
        profile: Profile,
        message: TelegramMessage,
        text: str,
        now: datetime,
    ) -> None:
        chat_id = message.chat.id
        workflow = get_workflow(decision.workflow)
        if workflow is None:
            logger.info("Classifier chose unknown workflow", extra={"workflow": decision.workflow})
            await self._reply(chat_id, bot_messages.workflow_unavailable(decision.workflow))
            self._record(profile, message, f"workflow_unavailable:{decision.workflow}", succeeded=False)
            return

        # trial users are gated as free
        if not workflow.allows(profile.tier_enum):
            await self._reply(chat_id, bot_messages.tier_required_prompt(workflow, self.settings.billing_url))
            self._record(profile, message, f"gate:tier:{workflow.key}", succeeded=False)
            return

        if not self.store.debit_credits(profile.id, workflow.credit_cost, now):
            await self._reply(chat_id, bot_messages.out_of_credits_prompt(self.settings.billing_url))
            self._record(profile, message, f"gate:credits:{workflow.key}", succeeded=False)
            return

        parameters = dict(decision.parameters)
        if message.document is not None:
            parameters.setdefault("file_id", message.document.file_id)
            parameters.setdefault("file_name", message.document.file_name)

        await self.telegram.send_chat_action(chat_id, "typing")
        result = await self.executor.execute(
            workflow.key,
            parameters,
            profile_id=profile.id,
            chat_id=chat_id,
            message_text=text,
        )

        if result.success:
            await self._reply(chat_id, result.message)
        else:
            logger.warning(
                "Workflow execution failed",
                extra={"workflow": workflow.key, "profile_id": profile.id, "error": result.error},
            )
            record_executor_failure(workflow.key)
            await self._reply(chat_id, bot_messages.WORKFLOW_FAILED)

        self._record(profile, message, f"workflow:{workflow.key}", succeeded=result.success)

    # ------------------------------------------------------------------
    # Linking and commands
    # ------------------------------------------------------------------

    async def _link(self, message: TelegramMessage, token: str, now: datetime) -> None:
        chat_id = message.chat.id
        existing = self.store.get_by_chat_id(chat_id)
        if existing is not None:
            await self._reply(chat_id, bot_messages.LINK_ALREADY)
            self._record(existing, message, "command:link", succeeded=False)
            return

        username = message.from_.username if message.from_ else None
        profile_id = None
        if LINK_TOKEN_PATTERN.match(token):
            profile_id = self.store.link_chat_identity(token, chat_id, username, now)

        if profile_id is None:
            logger.info("Chat linking failed", extra={"chat_id": chat_id})
            await self._reply(chat_id, bot_messages.link_failed(self.settings.app_url))
            return

        logger.info("Chat linked to profile", extra={"chat_id": chat_id, "profile_id": profile_id})
        await self._reply(chat_id, bot_messages.LINK_SUCCESS)
        self.usage.record(
            profile_id,
            "command:link",
            message.message_id,
            chat_id=chat_id,
            succeeded=True,
        )

    async def _handle_command(
        self,
        command: str,
        profile: Profile,
        access: EntitlementResult,
        message: TelegramMessage,
        now: datetime,
    ) -> None:
        chat_id = message.chat.id
        succeeded = True

        if command == "/start":
            first_name = message.from_.first_name if message.from_ else ""
            reply = bot_messages.welcome_back(first_name)
        elif command == "/help":
            reply = bot_messages.help_text(workflows_for_tier(profile.tier_enum), access)
        elif command == "/status":
            reply = bot_messages.status_text(
                access, profile.quota_used or 0, profile.quota_limit, self.settings.billing_url
            )
        elif command == "/trial":
            succeeded = self.store.start_trial(profile.id, now)
            if succeeded:
                reply = bot_messages.trial_started(TRIAL_DURATION.days, TRIAL_CREDITS)
            else:
                reply = bot_messages.trial_unavailable(self.settings.billing_url)
        elif command == "/unlink":
            succeeded = self.store.unlink_chat_identity(profile.id, now)
            reply = bot_messages.unlinked(self.settings.app_url) if succeeded else bot_messages.UNLINK_FAILED
        else:
            succeeded = False
            reply = bot_messages.unknown_command(command)

        await self._reply(chat_id, reply)
        self._record(profile, message, f"command:{command.lstrip('/')}", succeeded=succeeded)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _reply(self, chat_id, text: str) -> None:
        if not await self.telegram.send_message(chat_id, text):
            logger.warning("Reply not delivered", extra={"chat_id": chat_id})

    def _record(
        self,
        profile: Profile,
        message: TelegramMessage,
        action: str,
        succeeded: Optional[bool] = None,
    ) -> None:
        self.usage.record(
            profile.id,
            action,
            message.message_id,
            chat_id=message.chat.id,
            succeeded=succeeded,
        )
