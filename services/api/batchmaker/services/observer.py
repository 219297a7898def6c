"""Pipeline observability hooks.

The orchestrator reports stage boundaries, retries and error
classifications to an observer instead of logging inline.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol

from ..parsing.schemas import ParserError

logger = logging.getLogger("batchmaker.parser")


class ParseStage(str, Enum):
    IDLE = "IDLE"
    VALIDATING_INPUT = "VALIDATING_INPUT"
    CHECKING_CONNECTIVITY = "CHECKING_CONNECTIVITY"
    CHECKING_RATE_LIMIT = "CHECKING_RATE_LIMIT"
    FETCHING_PAGE = "FETCHING_PAGE"
    INVOKING_MODEL = "INVOKING_MODEL"
    PARSING_RESPONSE = "PARSING_RESPONSE"
    NORMALIZING = "NORMALIZING"
    RETRYING = "RETRYING"
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"


@dataclass
class ParseContext:
    request_id: str
    source: str  # "text" or "url"
    user_id: Optional[str] = None
    attempt: int = 0

    def as_log_extra(self) -> Dict[str, Any]:
        return {
            "request_id": self.request_id,
            "source": self.source,
            "user_id": self.user_id,
            "attempt": self.attempt,
        }


class PipelineObserver(Protocol):
    def stage_entered(self, stage: ParseStage, ctx: ParseContext) -> None: ...

    def stage_exited(self, stage: ParseStage, ctx: ParseContext, outcome: str) -> None: ...

    def retry_triggered(self, error: ParserError, ctx: ParseContext) -> None: ...

    def error_classified(self, error: ParserError, ctx: ParseContext) -> None: ...


class LoggingObserver:
    def stage_entered(self, stage: ParseStage, ctx: ParseContext) -> None:
        logger.debug("[%s] enter %s", ctx.request_id, stage.value, extra=ctx.as_log_extra())

    def stage_exited(self, stage: ParseStage, ctx: ParseContext, outcome: str) -> None:
        logger.debug("[%s] exit %s -> %s", ctx.request_id, stage.value, outcome, extra=ctx.as_log_extra())

    def retry_triggered(self, error: ParserError, ctx: ParseContext) -> None:
        logger.info(
            "[%s] retrying after %s: %s", ctx.request_id, error.code.value, error.message,
            extra=ctx.as_log_extra(),
        )

    def error_classified(self, error: ParserError, ctx: ParseContext) -> None:
        logger.warning(
            "[%s] parse failed code=%s retryable=%s message=%s",
            ctx.request_id, error.code.value, error.retryable, error.message,
            extra=ctx.as_log_extra(),
        )


@dataclass
class RecordingObserver:
    """Keeps events in memory; used by tests and debugging tools."""
    events: List[tuple] = field(default_factory=list)

    def stage_entered(self, stage: ParseStage, ctx: ParseContext) -> None:
        self.events.append(("enter", stage, ctx.attempt))

    def stage_exited(self, stage: ParseStage, ctx: ParseContext, outcome: str) -> None:
        self.events.append(("exit", stage, outcome))

    def retry_triggered(self, error: ParserError, ctx: ParseContext) -> None:
        self.events.append(("retry", error.code))

    def error_classified(self, error: ParserError, ctx: ParseContext) -> None:
        self.events.append(("classified", error.code))

    def stages(self) -> List[ParseStage]:
        return [e[1] for e in self.events if e[0] == "enter"]
