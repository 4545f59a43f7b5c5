"""Verification pipeline: ask an external judge whether candidates really conflict.

Candidates come from discovery already ranked. The top ``max_candidates`` are
sent to the judge in fixed-size concurrent batches. Every call in a batch is
awaited before the next batch starts (``asyncio.gather`` with
``return_exceptions=True``), so one failure never cancels its siblings. Each
call carries its own timeout, so a hung request costs one candidate and not the
whole scan.

A candidate becomes a Conflict only when the judge says ``isConflict`` with a
confidence at or above the gate (0.6). Everything else is discarded:
  - judge says no, or is not confident enough  → dropped (debug log)
  - malformed JSON, transport error, timeout   → dropped (warning log)

Nothing is retried within a scan; re-running the scan is always safe.

When no judge is available, callers use ``build_heuristic_conflicts`` instead,
which accepts candidates at a stricter heuristic score (0.5).
"""

from __future__ import annotations

import asyncio
import json
import logging
import re

from pydantic import ValidationError

from dissent.interfaces import Completion, JudgeService
from dissent.models import (
    Candidate,
    Conflict,
    ConflictMetadata,
    ConflictType,
    Judgment,
    Severity,
)

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 5
DEFAULT_CONFIDENCE_THRESHOLD = 0.6
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_ACCEPT_THRESHOLD = 0.5
DEFAULT_HIGH_SEVERITY_THRESHOLD = 0.7

_JUDGE_TEMPERATURE = 0.2
_JUDGE_MAX_TOKENS = 1000

_HEURISTIC_RECOMMENDATION = "Review both items and decide which reflects your current thinking."

SYSTEM_PROMPT = """\
You are a knowledge-base conflict detection assistant. Your job is to analyze two pieces \
of information from a user's knowledge base and determine if they genuinely conflict with \
each other.

A "conflict" means the two items cannot both be true or acted upon simultaneously: they \
represent contradictory decisions, opposing recommendations, or incompatible approaches.

Things that are NOT conflicts:
- Natural evolution or refinement of an idea (e.g., adding nuance to an earlier take)
- Complementary information (both can be true)
- Different aspects of the same topic being discussed
- Level of detail differences (one is more specific than the other)
- Context-dependent advice (one is for frontend, the other for backend)

You must respond with valid JSON matching this exact schema:

{
  "isConflict": true/false,
  "type": "decision_conflict" | "insight_conflict" | "approach_conflict" | "fact_conflict",
  "severity": "high" | "medium" | "low",
  "analysis": "1-2 sentence explanation of why this is or is not a conflict",
  "recommendation": "1-2 sentence recommendation for resolving the conflict (or 'No conflict detected' if not a real conflict)",
  "confidenceScore": 0.0 to 1.0
}

Conflict types:
- decision_conflict: Opposite decisions were made (use X vs avoid X)
- insight_conflict: Contradictory conclusions or lessons learned
- approach_conflict: Different approaches recommended for the same problem
- fact_conflict: Contradictory factual claims

Severity:
- high: Directly opposite decisions or recommendations that cannot coexist
- medium: Different approaches that could cause confusion if both are followed
- low: Minor discrepancy or subtle difference in emphasis

Be conservative: only mark something as a conflict if you are fairly confident. Evolution \
of thinking is natural and healthy, not a conflict."""

_USER_PROMPT = """\
Analyze these two pieces of knowledge for potential conflict:

**OLDER item** (from earlier conversation):
"{older_content}"

**NEWER item** (from more recent conversation):
"{newer_content}"

**Heuristic signals detected:**
{signals}

**Heuristic confidence score:** {score:.2f}

Is this a genuine conflict, or just natural evolution / complementary information?"""


# ---------------------------------------------------------------------------
# Prompt and response handling
# ---------------------------------------------------------------------------


def build_messages(candidate: Candidate) -> list[dict[str, str]]:
    """System + user messages asking the judge about one candidate."""
    user_prompt = _USER_PROMPT.format(
        older_content=candidate.older_content,
        newer_content=candidate.newer_content,
        signals="\n".join(f"- {signal}" for signal in candidate.signals),
        score=candidate.heuristic_score,
    )
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": user_prompt},
    ]


def parse_judgment(raw: str) -> Judgment:
    """Parse the judge's JSON verdict.

    Args:
        raw: The raw judge text (may contain markdown fencing).

    Returns:
        The validated Judgment.

    Raises:
        ValueError: If the text is not a JSON object matching the verdict shape.
            ``json.JSONDecodeError`` and pydantic's ``ValidationError`` are both
            ``ValueError`` subclasses.
    """
    # Strip markdown code fences if present
    cleaned = re.sub(r"^```(?:json)?\s*|\s*```$", "", raw.strip(), flags=re.MULTILINE)
    parsed = json.loads(cleaned)
    if not isinstance(parsed, dict):
        raise ValueError(f"expected a JSON object, got {type(parsed).__name__}")
    return Judgment.model_validate(parsed)


def conflict_from_judgment(candidate: Candidate, judgment: Judgment, completion: Completion) -> Conflict:
    return Conflict(
        type=judgment.type,
        severity=judgment.severity,
        older_record_id=candidate.older_record_id,
        newer_record_id=candidate.newer_record_id,
        older_topic_id=candidate.older_topic_id,
        newer_topic_id=candidate.newer_topic_id,
        older_content=candidate.older_content,
        newer_content=candidate.newer_content,
        analysis=judgment.analysis,
        recommendation=judgment.recommendation,
        metadata=ConflictMetadata(
            model_used=completion.model,
            provider_used=completion.provider_type,
            confidence_score=judgment.confidence_score,
            heuristic_score=candidate.heuristic_score,
            tokens_used=completion.total_tokens,
            signals=list(candidate.signals),
        ),
    )


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------


async def verify_candidate(
    candidate: Candidate,
    judge: JudgeService,
    *,
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
    timeout: float | None = DEFAULT_TIMEOUT_SECONDS,
    temperature: float = _JUDGE_TEMPERATURE,
    max_tokens: int = _JUDGE_MAX_TOKENS,
) -> Conflict | None:
    """Ask the judge about one candidate.

    Returns:
        The Conflict when the judge confirms it with enough confidence, else
        None. Never raises: every failure is logged and becomes None.
    """
    try:
        completion = await asyncio.wait_for(
            judge.complete(
                build_messages(candidate),
                temperature=temperature,
                max_tokens=max_tokens,
                json_mode=True,
            ),
            timeout=timeout,
        )
        judgment = parse_judgment(completion.content)
    except asyncio.TimeoutError:
        logger.warning(
            "Verification: judge call timed out after %ss — skipping candidate %s → %s",
            timeout,
            candidate.older_record_id,
            candidate.newer_record_id,
        )
        return None
    except (ValueError, ValidationError) as exc:
        logger.warning("Verification: malformed judge response — %s", exc)
        return None
    except Exception as exc:
        logger.warning("Verification: judge call failed — %s", exc)
        return None

    if not judgment.is_conflict or judgment.confidence_score < confidence_threshold:
        logger.debug(
            "Verification: discarded candidate (is_conflict=%s, confidence=%.2f)",
            judgment.is_conflict,
            judgment.confidence_score,
        )
        return None

    return conflict_from_judgment(candidate, judgment, completion)


async def verify_conflicts(
    candidates: list[Candidate],
    judge: JudgeService | None,
    *,
    max_candidates: int = 20,
    batch_size: int = DEFAULT_BATCH_SIZE,
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
    timeout: float | None = DEFAULT_TIMEOUT_SECONDS,
    temperature: float = _JUDGE_TEMPERATURE,
    max_tokens: int = _JUDGE_MAX_TOKENS,
) -> list[Conflict]:
    """Verify the top candidates with the judge, in bounded-concurrency batches.

    Args:
        candidates:           Candidates ranked by heuristic score, best first.
        judge:                The judgment service, or None when absent.
        max_candidates:       Only the first N candidates are verified.
        batch_size:           Number of judge calls in flight at once.
        confidence_threshold: Minimum judge confidence to accept a conflict.
        timeout:              Per-call timeout in seconds (None disables it).

    Returns:
        Confirmed Conflicts, in candidate order. Empty when no judge is
        available. Nothing is persisted here.
    """
    if not candidates:
        return []
    if judge is None or not judge.has_enabled_provider():
        logger.warning("Verification: no judge provider configured — skipping AI verification")
        return []

    to_verify = candidates[:max_candidates]
    batch_size = max(1, batch_size)
    verified: list[Conflict] = []

    for start in range(0, len(to_verify), batch_size):
        batch = to_verify[start:start + batch_size]
        results = await asyncio.gather(
            *(
                verify_candidate(
                    candidate,
                    judge,
                    confidence_threshold=confidence_threshold,
                    timeout=timeout,
                    temperature=temperature,
                    max_tokens=max_tokens,
                )
                for candidate in batch
            ),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, Conflict):
                verified.append(result)
            elif isinstance(result, BaseException):
                logger.warning("Verification: candidate failed — %s", result)

    logger.info(
        "Verification: %d of %d candidates confirmed by judge",
        len(verified),
        len(to_verify),
    )
    return verified


# ---------------------------------------------------------------------------
# Heuristic-only acceptance
# ---------------------------------------------------------------------------


def build_heuristic_conflicts(
    candidates: list[Candidate],
    *,
    accept_threshold: float = DEFAULT_ACCEPT_THRESHOLD,
    high_threshold: float = DEFAULT_HIGH_SEVERITY_THRESHOLD,
) -> list[Conflict]:
    """Accept candidates on heuristic score alone (no judge available).

    Only candidates scoring at least *accept_threshold* are kept. Severity is
    ``high`` at *high_threshold* and above, ``medium`` otherwise; the type is
    always ``approach_conflict`` and the confidence mirrors the heuristic score.
    """
    conflicts = []
    for candidate in candidates:
        if candidate.heuristic_score < accept_threshold:
            continue
        severity = Severity.HIGH if candidate.heuristic_score >= high_threshold else Severity.MEDIUM
        conflicts.append(Conflict(
            type=ConflictType.APPROACH,
            severity=severity,
            older_record_id=candidate.older_record_id,
            newer_record_id=candidate.newer_record_id,
            older_topic_id=candidate.older_topic_id,
            newer_topic_id=candidate.newer_topic_id,
            older_content=candidate.older_content,
            newer_content=candidate.newer_content,
            analysis=(
                "Heuristic analysis detected potential conflict based on: "
                + "; ".join(candidate.signals)
            ),
            recommendation=_HEURISTIC_RECOMMENDATION,
            metadata=ConflictMetadata(
                model_used=None,
                confidence_score=candidate.heuristic_score,
                heuristic_score=candidate.heuristic_score,
                tokens_used=0,
                signals=list(candidate.signals),
            ),
        ))
    return conflicts
