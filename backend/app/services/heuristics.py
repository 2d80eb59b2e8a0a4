"""
Keyword and pattern heuristics used by the routing pipeline.

All three checks are pure functions of their arguments and a RoutingRules
table; they do no I/O. Scores are rounded to 4 decimals so that sums of
weights compare cleanly against the thresholds.
"""

import re
from dataclasses import dataclass
from typing import Optional

from app.services.routing_rules import RoutingRules, get_routing_rules

# Heuristic-level spam flag. The combiner applies its own, stricter threshold.
SPAM_FLAG_THRESHOLD = 0.5
INTENT_THRESHOLD = 0.4

_LINK_RE = re.compile(r"https?://")


@dataclass(frozen=True)
class SpamCheck:
    is_spam: bool
    confidence: float


@dataclass(frozen=True)
class ScopeCheck:
    is_out_of_scope: bool
    reason: str


@dataclass(frozen=True)
class IntentCheck:
    has_intent: bool
    confidence: float


def _clamp(score: float) -> float:
    return round(min(max(score, 0.0), 1.0), 4)


def _sender_domain(sender: str) -> str:
    """Return the lower-cased domain of an address, or '' when there is none."""
    _, _, domain = sender.strip().rpartition("@")
    return domain.rstrip(">").lower()


def check_spam(
    subject: str,
    body: str,
    sender: str,
    rules: Optional[RoutingRules] = None,
) -> SpamCheck:
    """
    Score an email against the weighted spam indicators.

    Score components:
      - weight * match count for every indicator (on subject + body)
      - flat penalty when there are more than ``spam_link_limit`` links
      - flat penalty for an all-caps subject longer than the minimum length
      - flat penalty when the sender's domain ends in a suspicious TLD

    confidence is the score capped at 1.0; is_spam is confidence > 0.5.
    """
    rules = rules or get_routing_rules()
    text = f"{subject} {body}"

    score = 0.0
    for indicator in rules.spam_indicators:
        matches = indicator.count_matches(text)
        if matches:
            score += indicator.weight * matches

    if len(_LINK_RE.findall(text)) > rules.spam_link_limit:
        score += rules.spam_link_penalty

    if subject == subject.upper() and len(subject) > rules.spam_caps_subject_min_length:
        score += rules.spam_caps_penalty

    domain = _sender_domain(sender)
    if domain and any(domain.endswith(tld.lower()) for tld in rules.suspicious_tlds):
        score += rules.spam_tld_penalty

    confidence = _clamp(score)
    return SpamCheck(is_spam=confidence > SPAM_FLAG_THRESHOLD, confidence=confidence)


def check_out_of_scope(
    subject: str,
    body: str,
    rules: Optional[RoutingRules] = None,
) -> ScopeCheck:
    """
    Match subject + body against the out-of-scope categories, in order.

    The first category with any keyword contained in the lower-cased text
    wins and its name is returned as ``reason``.
    """
    rules = rules or get_routing_rules()
    text = f"{subject} {body}".lower()

    for category in rules.scope_categories:
        if any(kw in text for kw in category.keywords):
            return ScopeCheck(is_out_of_scope=True, reason=category.name)

    return ScopeCheck(is_out_of_scope=False, reason="")


def check_quotation_intent(
    subject: str,
    body: str,
    has_attachments: bool,
    rules: Optional[RoutingRules] = None,
) -> IntentCheck:
    """
    Score quotation intent from keyword hits plus an attachment bonus.

    Keywords are matched as substrings (``piezas`` also matches inside
    longer words). has_intent is confidence >= 0.4.
    """
    rules = rules or get_routing_rules()
    text = f"{subject} {body}".lower()

    score = sum(kw.weight for kw in rules.intent_keywords if kw.word in text)
    if has_attachments:
        score += rules.intent_attachment_bonus

    confidence = _clamp(score)
    return IntentCheck(has_intent=confidence >= INTENT_THRESHOLD, confidence=confidence)
