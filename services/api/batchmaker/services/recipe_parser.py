"""Recipe parse orchestrator.

Runs one parse request through a fixed sequence of stages:

    VALIDATING_INPUT -> CHECKING_CONNECTIVITY -> CHECKING_RATE_LIMIT
      -> [FETCHING_PAGE] -> INVOKING_MODEL -> PARSING_RESPONSE -> NORMALIZING

and always answers with a ``ParserResult``. A retryable failure after the
rate-limit check is retried exactly once after a fixed backoff, so the model
is called at most twice per request.

Quota: every attempt that reached the model is recorded, successful or not.
Requests stopped by validation, connectivity or the rate limit itself are
not recorded. ``asyncio.CancelledError`` is never swallowed; an abandoned
request stops where it is and records nothing for the interrupted attempt.
"""
import asyncio
import ipaddress
import logging
import uuid
from contextlib import contextmanager
from typing import Awaitable, Callable, Optional
from urllib.parse import urlparse

from ..core.auth import RequestSession
from ..parsing.errors import (
    InputValidationError,
    NoInternetError,
    RateLimitedError,
    RecipeParserError,
)
from ..parsing.normalizer import normalize_recipe
from ..parsing.sanitizer import sanitize_and_parse
from ..parsing.schemas import ParserError, ParserErrorCode, ParserResult
from .connectivity import ConnectivityChecker
from .model_invoker import ModelInvoker
from .observer import LoggingObserver, ParseContext, ParseStage, PipelineObserver
from .page_fetcher import PageFetcher
from .rate_limiter import RateLimiter

logger = logging.getLogger("batchmaker.parser")

NO_INTERNET_MESSAGE = (
    "No internet connection. Recipe parsing requires an internet connection. "
    "Check your Wi-Fi or cellular data and try again."
)
SIGN_IN_MESSAGE = "You must be signed in to parse recipes."

_API_HINTS = ("fetch", "network", "timeout", "ai service", "edge function")
_SESSION_HINTS = ("not authenticated", "session expired", "jwt expired", "token expired", "invalid or expired token")
_TAXONOMY_CODES = {c.value for c in ParserErrorCode} | {"FETCH_FAILED"}


def _taxonomy_code(exc: BaseException) -> Optional[str]:
    """Explicit parser code carried by the exception, if any.

    SDK errors often carry an unrelated numeric ``code``; those are ignored.
    """
    code = getattr(exc, "code", None)
    if isinstance(code, ParserErrorCode):
        return code.value
    if isinstance(code, str) and code in _TAXONOMY_CODES:
        return code
    return None


def _api_failure(message: str, source: str) -> ParserError:
    prefix = "Failed to reach the recipe URL." if source == "url" else "Failed to reach the AI service."
    return ParserError(code=ParserErrorCode.API_FAILURE, message=f"{prefix} {message}", retryable=True)


def _parse_failure(message: str, retryable: bool) -> ParserError:
    return ParserError(
        code=ParserErrorCode.PARSE_FAILURE,
        message=f"Could not parse the recipe. {message}",
        retryable=retryable,
    )


def classify_error(exc: BaseException, source: str = "text") -> ParserError:
    """Map any failure to the parser error taxonomy.

    Exceptions carrying a parser code are mapped by that code alone. Anything
    else is matched on its message in priority order: session problems,
    API/network problems, then everything else as a parse failure.
    """
    message = getattr(exc, "message", None) or str(exc) or "Something went wrong"

    if isinstance(exc, (InputValidationError, NoInternetError)):
        return ParserError(code=exc.code, message=message, retryable=exc.retryable)

    code_value = _taxonomy_code(exc)
    if code_value is not None:
        if code_value in (ParserErrorCode.RATE_LIMITED.value, ParserErrorCode.NOT_A_RECIPE.value):
            return ParserError(code=ParserErrorCode(code_value), message=message, retryable=False)
        if code_value == ParserErrorCode.UNAUTHORIZED.value:
            return ParserError(code=ParserErrorCode.UNAUTHORIZED, message=SIGN_IN_MESSAGE, retryable=False)
        if code_value in (ParserErrorCode.API_FAILURE.value, "FETCH_FAILED"):
            return _api_failure(message, source)
        if code_value == ParserErrorCode.PARSE_FAILURE.value:
            return _parse_failure(message, getattr(exc, "retryable", True))
        return ParserError(code=ParserErrorCode(code_value), message=message, retryable=False)

    lowered = message.lower()
    if any(h in lowered for h in _SESSION_HINTS):
        return ParserError(code=ParserErrorCode.UNAUTHORIZED, message=SIGN_IN_MESSAGE, retryable=False)
    if any(h in lowered for h in _API_HINTS):
        return _api_failure(message, source)
    return _parse_failure(message, True)


def validate_recipe_url(url: str) -> str:
    candidate = (url or "").strip()
    if not candidate:
        raise InputValidationError("No recipe URL provided. Paste a link to a recipe first.")

    parsed = urlparse(candidate)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise InputValidationError("A valid URL is required (starting with http:// or https://).")

    # Literal internal addresses are never fetched
    try:
        ip = ipaddress.ip_address(parsed.hostname)
    except ValueError:
        return candidate
    if ip.is_private or ip.is_loopback or ip.is_link_local:
        raise InputValidationError("Cannot import recipes from internal network addresses.")
    return candidate


class RecipeParserService:
    def __init__(
        self,
        invoker: ModelInvoker,
        rate_limiter: RateLimiter,
        connectivity: ConnectivityChecker,
        fetcher: PageFetcher,
        observer: Optional[PipelineObserver] = None,
        retry_backoff_seconds: float = 2.0,
        max_text_chars: int = 50_000,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.invoker = invoker
        self.rate_limiter = rate_limiter
        self.connectivity = connectivity
        self.fetcher = fetcher
        self.observer = observer or LoggingObserver()
        self.retry_backoff_seconds = retry_backoff_seconds
        self.max_text_chars = max_text_chars
        self.sleep = sleep

    async def parse_from_text(
        self, session: RequestSession, recipe_text: str, allow_retry: bool = True
    ) -> ParserResult:
        return await self._run(session, "text", recipe_text, allow_retry)

    async def parse_from_url(
        self, session: RequestSession, url: str, allow_retry: bool = True
    ) -> ParserResult:
        return await self._run(session, "url", url, allow_retry)

    @contextmanager
    def _stage(self, stage: ParseStage, ctx: ParseContext):
        self.observer.stage_entered(stage, ctx)
        try:
            yield
        except BaseException as e:
            self.observer.stage_exited(stage, ctx, f"error:{e.__class__.__name__}")
            raise
        self.observer.stage_exited(stage, ctx, "ok")

    def _validate(self, source: str, value: str) -> str:
        if source == "url":
            return validate_recipe_url(value)

        if not value or not value.strip():
            raise InputValidationError("No recipe text provided. Paste or type a recipe first.")
        if len(value) > self.max_text_chars:
            raise InputValidationError(
                f"Recipe text is too long ({len(value)} characters, max {self.max_text_chars})."
            )
        return value.strip()

    def _finish(self, result: ParserResult, ctx: ParseContext) -> ParserResult:
        stage = ParseStage.SUCCESS if result.success else ParseStage.FAILURE
        self.observer.stage_entered(stage, ctx)
        return result

    def _failure(self, exc: BaseException, ctx: ParseContext) -> ParserResult:
        error = classify_error(exc, ctx.source)
        self.observer.error_classified(error, ctx)
        return ParserResult(success=False, error=error)

    async def _run(self, session: RequestSession, source: str, value: str, allow_retry: bool) -> ParserResult:
        ctx = ParseContext(request_id=uuid.uuid4().hex[:12], source=source)
        self.observer.stage_entered(ParseStage.IDLE, ctx)

        try:
            with self._stage(ParseStage.VALIDATING_INPUT, ctx):
                cleaned = self._validate(source, value)

            with self._stage(ParseStage.CHECKING_CONNECTIVITY, ctx):
                if not await self.connectivity.is_online():
                    raise NoInternetError(NO_INTERNET_MESSAGE)

            with self._stage(ParseStage.CHECKING_RATE_LIMIT, ctx):
                user_id = await session.get_user_id()
                ctx.user_id = user_id
                violation = await self.rate_limiter.check_limit(user_id)
                if violation:
                    raise RateLimitedError(violation)
        except RecipeParserError as e:
            return self._finish(self._failure(e, ctx), ctx)
        except Exception as e:
            logger.exception(f"[{ctx.request_id}] unexpected error before model call: {e}")
            error = ParserError(code=ParserErrorCode.UNKNOWN, message=str(e) or "Something went wrong", retryable=False)
            self.observer.error_classified(error, ctx)
            return self._finish(ParserResult(success=False, error=error), ctx)

        result = await self._attempt(ctx, user_id, cleaned)
        if result.success or not (allow_retry and result.error.retryable):
            return self._finish(result, ctx)

        self.observer.retry_triggered(result.error, ctx)
        with self._stage(ParseStage.RETRYING, ctx):
            await self.sleep(self.retry_backoff_seconds)

        return self._finish(await self._attempt(ctx, user_id, cleaned), ctx)

    async def _attempt(self, ctx: ParseContext, user_id: str, cleaned: str) -> ParserResult:
        ctx.attempt += 1
        reached_model = False
        try:
            source_text = cleaned
            if ctx.source == "url":
                with self._stage(ParseStage.FETCHING_PAGE, ctx):
                    source_text = await self.fetcher.fetch_text(cleaned)

            with self._stage(ParseStage.INVOKING_MODEL, ctx):
                reached_model = True
                raw_text = await self.invoker.invoke(source_text, ctx.source)

            with self._stage(ParseStage.PARSING_RESPONSE, ctx):
                raw = sanitize_and_parse(raw_text)

            with self._stage(ParseStage.NORMALIZING, ctx):
                recipe = normalize_recipe(raw)
        except Exception as e:
            if reached_model:
                await self.rate_limiter.record_attempt(user_id, False)
            return self._failure(e, ctx)

        await self.rate_limiter.record_attempt(user_id, True)
        logger.info(
            f"[{ctx.request_id}] parsed '{recipe.recipe_name}' steps={len(recipe.steps)} "
            f"ingredients={len(recipe.ingredients)} attempt={ctx.attempt}"
        )
        return ParserResult.ok(recipe)
