# kaizbot/core/engine/use_cases.py
import asyncio
from typing import TypeVar, assert_never

from kaizbot.core.engine import replies
from kaizbot.core.engine.capabilities import (
    AIModel,
    CapabilityId,
    CapabilityResult,
    ChatResult,
    ImageResult,
    MediaResult,
    SearchResult,
    TrackResult,
    WikiResult,
    build_params,
    get_spec,
)
from kaizbot.core.engine.classifier import COMMANDS, classify
from kaizbot.core.engine.domain import InboundEvent, User
from kaizbot.core.engine.errors import CapabilityError, DeliveryError, StateError, ValidationError
from kaizbot.core.engine.intents import (
    AcceptTerms,
    AnalyzeImage,
    AskModel,
    DeclineTerms,
    DownloadMedia,
    FreeformChat,
    Intent,
    MissingArgument,
    ModelSelected,
    Platform,
    RemoveBackground,
    SearchTikTok,
    SearchWiki,
    ShowAIMenu,
    ShowHelp,
    ShowMainMenu,
    ShowMusicMenu,
    ShowWelcome,
    UnknownCommand,
    UnsupportedAttachment,
    intent_name,
)
from kaizbot.core.engine.ports import (
    AsyncInboundEventRepository,
    AsyncUserStore,
    CapabilityRegistry,
    OutboundChannel,
)
from kaizbot.core.engine.replies import OutboundMessage
from kaizbot.core.engine.texts import get_text
from kaizbot.infra.logging_config import LogContext, get_logger
from kaizbot.infra.metrics import AppMetrics

logger = get_logger(__name__)

R = TypeVar("R", ChatResult, TrackResult, MediaResult, SearchResult, WikiResult, ImageResult)

IMAGE_ANALYSIS_FEATURE = "Image analysis"


class DispatchEngine:
    """
    Application service / use-case layer.
    Workflow: idempotency -> classify -> admission (user state) -> intent handlers.

    Admission runs under the per-user store lock so two concurrent events
    for the same user cannot both create the user or both race the
    accept-terms transition. Capability calls and sends happen outside it.

    Error policy:
    - ValidationError / CapabilityError: recovered here, the user gets a
      friendly reply and the event completes.
    - DeliveryError: propagates to the caller (the webhook loop).
    - StateError: logged, treated as a no-op.
    """

    def __init__(
        self,
        *,
        store: AsyncUserStore,
        capabilities: CapabilityRegistry,
        channel: OutboundChannel,
        inbound: AsyncInboundEventRepository,
        bot_name: str = "KAIZ Bot",
        default_model: AIModel = AIModel.KAIZ,
        welcome_delay_seconds: float = 0.0,
        terms_url: str | None = None,
        registration_page_url: str | None = None,
    ) -> None:
        self.store = store
        self.capabilities = capabilities
        self.channel = channel
        self.inbound = inbound
        self.bot_name = bot_name
        self.default_model = default_model
        self.welcome_delay_seconds = welcome_delay_seconds
        self.terms_url = terms_url
        self.registration_page_url = registration_page_url

    # ------------------------------------------------------------------
    # Inbound events
    # ------------------------------------------------------------------

    async def process_event(self, event: InboundEvent) -> None:
        """Process one inbound event. Raises DeliveryError if a send fails."""
        kind = event.kind.value
        AppMetrics.event_received(kind)
        log = LogContext(logger, user_id=event.sender_id, event_id=event.event_id)

        # idempotency
        if event.event_id and await self.inbound.seen_or_mark(event.event_id):
            AppMetrics.duplicate_event(kind)
            log.info("Duplicate event ignored")
            return

        intents = classify(event)
        if not intents:
            log.debug("Event carries nothing to dispatch")
            return

        with AppMetrics.track_processing_time(kind):
            user = await self._admit(event.sender_id, intents[0], log)
            if user is None:
                return

            for intent in intents:
                await self._dispatch(user, intent, event.is_text, log)

    async def _admit(self, user_id: str, intent: Intent, log: LogContext) -> User | None:
        """
        Resolve the user's registration state for this event.

        Returns the user when the intent may proceed, or None after sending
        the terms prompt (new user) or the gating notice (pending user).
        """
        async with self.store.lock(user_id):
            user, created = await self.store.get_or_create(user_id)

            if created:
                log.info(f"New user, sending terms prompt (code={user.reference_code})")
                gate = replies.terms_prompt(user, self.terms_url, self.registration_page_url)
            elif isinstance(intent, AcceptTerms):
                try:
                    return await self.store.accept_terms(user_id)
                except StateError as e:
                    log.warning(f"Accept terms ignored: {e}")
                    return None
            elif user.is_active or isinstance(intent, DeclineTerms):
                return user
            else:
                log.info(f"Pending user, {intent_name(intent)} gated")
                gate = replies.terms_pending(user)

        await self._deliver(user_id, gate)
        return None

    async def _dispatch(self, user: User, intent: Intent, typing: bool, log: LogContext) -> None:
        name = intent_name(intent)

        if typing:
            await self.channel.set_typing(user.id, True)
        try:
            await self._route(user, intent)
            AppMetrics.intent_dispatched(name, "ok")
        except ValidationError as e:
            AppMetrics.intent_dispatched(name, "rejected")
            log.info(f"{name} rejected: {e.reason}")
            await self._deliver(user.id, e.reply)
        except CapabilityError as e:
            AppMetrics.intent_dispatched(name, "capability_error")
            log.error(f"{name} failed: {e}", extra={"capability": e.capability_id})
            feature = e.feature or get_spec(CapabilityId(e.capability_id)).feature
            await self._deliver(user.id, replies.capability_failed(feature))
        finally:
            if typing:
                await self.channel.set_typing(user.id, False)

    async def _route(self, user: User, intent: Intent) -> None:
        uid = user.id

        if isinstance(intent, AcceptTerms):
            await self._confirm_registration(user)
        elif isinstance(intent, DeclineTerms):
            await self._deliver(uid, replies.terms_declined(active=user.is_active))
        elif isinstance(intent, ShowWelcome):
            await self._deliver(uid, replies.welcome(self.bot_name))
        elif isinstance(intent, ShowMainMenu):
            await self._deliver(uid, replies.main_menu())
        elif isinstance(intent, ShowHelp):
            await self._deliver(uid, replies.help_menu(self.bot_name))
        elif isinstance(intent, ShowAIMenu):
            await self._deliver(uid, replies.ai_menu())
        elif isinstance(intent, ShowMusicMenu):
            await self._deliver(uid, replies.music_menu())
        elif isinstance(intent, ModelSelected):
            await self._deliver(uid, replies.model_selected(intent.model))
        elif isinstance(intent, FreeformChat):
            await self._ask(uid, self.default_model, intent.text)
        elif isinstance(intent, AskModel):
            await self._ask(uid, intent.model, intent.prompt)
        elif isinstance(intent, DownloadMedia):
            await self._download(uid, intent.platform, intent.url)
        elif isinstance(intent, SearchTikTok):
            result = await self._invoke(CapabilityId.TIKTOK_SEARCH, intent.query, SearchResult)
            await self._deliver(uid, replies.search_results(intent.query, result))
        elif isinstance(intent, SearchWiki):
            result = await self._invoke(CapabilityId.WIKIPEDIA, intent.query, WikiResult)
            await self._deliver(uid, replies.wiki_article(result))
        elif isinstance(intent, RemoveBackground):
            self._require_image_url(intent.image_url, get_spec(CapabilityId.REMOVE_BG).feature)
            result = await self._invoke(CapabilityId.REMOVE_BG, intent.image_url, ImageResult)
            await self._deliver(uid, replies.background_removed(result))
        elif isinstance(intent, AnalyzeImage):
            await self._analyze_image(uid, intent.url)
        elif isinstance(intent, UnsupportedAttachment):
            await self._deliver(uid, replies.unsupported_attachment())
        elif isinstance(intent, UnknownCommand):
            await self._deliver(uid, replies.unknown_command(intent.command))
        elif isinstance(intent, MissingArgument):
            raise ValidationError(
                intent.command, "missing argument",
                replies.missing_argument(intent.command, intent.usage),
            )
        else:
            assert_never(intent)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _confirm_registration(self, user: User) -> None:
        # Re-sent on every accept postback, including repeats
        await self._deliver(user.id, replies.registration_confirmed(user))
        if self.welcome_delay_seconds > 0:
            await asyncio.sleep(self.welcome_delay_seconds)
        await self._deliver(user.id, replies.welcome(self.bot_name))

    async def _ask(self, user_id: str, model: AIModel, prompt: str) -> None:
        if not prompt.strip():
            command = COMMANDS[model.command]
            raise ValidationError(
                model.command, "empty prompt",
                replies.missing_argument(model.command, command.usage or model.command),
            )
        result = await self._invoke(model.capability, prompt, ChatResult, user_id=user_id)
        await self._deliver(user_id, replies.ai_response(model, result))

    async def _download(self, user_id: str, platform: Platform, url: str) -> None:
        if platform.domain_marker not in url.lower():
            raise ValidationError(
                get_spec(platform.capability).feature,
                f"url lacks {platform.domain_marker}",
                replies.invalid_url(platform),
            )

        if platform is Platform.SPOTIFY:
            track = await self._invoke(platform.capability, url, TrackResult)
            await self._deliver(user_id, replies.track_ready(track))
        else:
            media = await self._invoke(platform.capability, url, MediaResult)
            await self._deliver(user_id, replies.media_ready(platform, media))

    async def _analyze_image(self, user_id: str, url: str) -> None:
        model = self.default_model
        self._require_image_url(url, IMAGE_ANALYSIS_FEATURE)
        await self._deliver(user_id, replies.image_analyzing(model))
        prompt = get_text("image_prompt", url=url)
        try:
            result = await self._invoke(model.capability, prompt, ChatResult, user_id=user_id)
        except CapabilityError as e:
            raise CapabilityError(e.capability_id, e.cause, feature=IMAGE_ANALYSIS_FEATURE) from e
        await self._deliver(user_id, replies.image_analysis(result))

    @staticmethod
    def _require_image_url(url: str, feature: str) -> None:
        if "http" not in url:
            raise ValidationError(feature, "image url lacks http", replies.invalid_image_url())

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    async def _invoke(
        self,
        capability_id: CapabilityId,
        argument: str,
        expected: type[R],
        *,
        user_id: str | None = None,
    ) -> R:
        result: CapabilityResult = await self.capabilities.invoke(
            capability_id, build_params(capability_id, argument, user_id),
        )
        if not isinstance(result, expected):
            raise CapabilityError(
                capability_id.value, f"expected {expected.__name__}, got {type(result).__name__}",
            )
        return result

    async def _deliver(self, recipient_id: str, messages: list[OutboundMessage]) -> None:
        # Composed order is send order
        for message in messages:
            await self.channel.deliver(recipient_id, message)

    # ------------------------------------------------------------------
    # Out-of-band registration
    # ------------------------------------------------------------------

    async def complete_registration(self, reference_code: str) -> tuple[User, bool]:
        """
        Complete a registration started in chat, by reference code.

        Returns ``(user, notified)``; ``notified`` is False when the
        confirmation message could not be delivered.

        Raises:
            ValidationError: empty reference code
            RegistrationNotFoundError: unknown or already completed code
            TermsNotAcceptedError: user has not accepted the terms yet
        """
        if not reference_code or not reference_code.strip():
            raise ValidationError("registration", "reference code is required")

        user = await self.store.complete_registration(reference_code)
        log = LogContext(logger, user_id=user.id)
        log.info(f"Out-of-band registration completed (code={user.reference_code})")

        try:
            await self._deliver(user.id, replies.registration_completed_web(user))
        except DeliveryError as e:
            log.error(f"Registration notice not delivered: {e}")
            return user, False
        return user, True
