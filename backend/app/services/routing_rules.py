"""
Declarative rule tables for the routing heuristics.

The spam indicators, out-of-scope categories and quotation keywords are
plain data. DEFAULT_ROUTING_RULES holds the tuned defaults; a JSON file
with the same shape can replace them via ROUTING_RULES_FILE.

Rules are loaded once and kept in a RoutingRulesCache with an explicit TTL,
so an edited rules file is picked up without a restart. Call
invalidate_routing_rules() to force a reload.

Environment variables
---------------------
ROUTING_RULES_FILE          Path to a JSON rules file (default: built-in rules).
ROUTING_RULES_TTL_SECONDS   How long a loaded rule set stays fresh (default: 300).
"""

import logging
import os
import re
import threading
import time
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Callable, List, Optional

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

_DEFAULT_TTL_SECONDS = 300.0


@lru_cache(maxsize=256)
def compile_pattern(pattern: str) -> re.Pattern:
    """Compile a rule pattern case-insensitively. Cached across rule reloads."""
    return re.compile(pattern, re.IGNORECASE)


# ---------------------------------------------------------------------------
# Rule models
# ---------------------------------------------------------------------------

class SpamIndicator(BaseModel):
    """A weighted regex. Each match adds ``weight`` to the spam score."""
    model_config = {"frozen": True}

    name: str
    pattern: str
    weight: float = Field(gt=0, le=1)

    @field_validator("pattern")
    @classmethod
    def validate_pattern(cls, v: str) -> str:
        try:
            compile_pattern(v)
        except re.error as exc:
            raise ValueError(f"invalid regex {v!r}: {exc}")
        return v

    def count_matches(self, text: str) -> int:
        return sum(1 for _ in compile_pattern(self.pattern).finditer(text))


class ScopeCategory(BaseModel):
    """An out-of-scope category. Keywords are matched as lower-case substrings."""
    model_config = {"frozen": True}

    name: str
    keywords: List[str] = Field(min_length=1)

    @field_validator("keywords")
    @classmethod
    def lowercase_keywords(cls, v: List[str]) -> List[str]:
        return [kw.lower() for kw in v]


class IntentKeyword(BaseModel):
    model_config = {"frozen": True}

    word: str
    weight: float = Field(gt=0, le=1)

    @field_validator("word")
    @classmethod
    def lowercase_word(cls, v: str) -> str:
        return v.lower()


class RoutingRules(BaseModel):
    """Complete rule set consumed by app.services.heuristics."""
    model_config = {"frozen": True}

    spam_indicators: List[SpamIndicator]
    spam_link_limit: int = 5
    spam_link_penalty: float = 0.2
    spam_caps_subject_min_length: int = 10
    spam_caps_penalty: float = 0.15
    suspicious_tlds: List[str] = Field(default_factory=list)
    spam_tld_penalty: float = 0.2

    # Order matters: the first category with a matching keyword wins.
    scope_categories: List[ScopeCategory]

    intent_keywords: List[IntentKeyword]
    intent_attachment_bonus: float = 0.4


DEFAULT_ROUTING_RULES = RoutingRules(
    spam_indicators=[
        SpamIndicator(name="click_here", pattern=r"click (here|aqu[ií])", weight=0.2),
        SpamIndicator(name="limited_offer", pattern=r"oferta limitada", weight=0.25),
        SpamIndicator(name="winner", pattern=r"ganador|ganaste|felicidades", weight=0.3),
        SpamIndicator(name="free", pattern=r"100% gratis", weight=0.3),
        SpamIndicator(name="blacklisted", pattern=r"(viagra|casino|lottery|lotería)", weight=0.5),
        SpamIndicator(name="increase_your", pattern=r"aumenta (tu|tus)", weight=0.15),
        SpamIndicator(name="make_money", pattern=r"gana dinero", weight=0.25),
    ],
    suspicious_tlds=[".xyz", ".top", ".gq", ".ml", ".cf"],
    scope_categories=[
        ScopeCategory(name="RRHH", keywords=["nómina", "nomina", "salario", "sueldo"]),
        ScopeCategory(
            name="Contabilidad",
            keywords=["factura", "pago", "transferencia", "invoice", "payment"],
        ),
        ScopeCategory(
            name="Legal",
            keywords=["contrato", "despido", "baja laboral", "finiquito"],
        ),
        ScopeCategory(
            name="IT Support",
            keywords=["soporte técnico", "incidencia", "error sistema", "bug"],
        ),
        ScopeCategory(
            name="Marketing",
            keywords=["marketing", "publicidad", "anuncio", "campaña"],
        ),
    ],
    intent_keywords=[
        IntentKeyword(word="presupuesto", weight=0.3),
        IntentKeyword(word="cotización", weight=0.3),
        IntentKeyword(word="cotizacion", weight=0.3),
        IntentKeyword(word="precio", weight=0.15),
        IntentKeyword(word="coste", weight=0.15),
        IntentKeyword(word="mecanizar", weight=0.25),
        IntentKeyword(word="fabricar", weight=0.2),
        IntentKeyword(word="piezas", weight=0.15),
        IntentKeyword(word="unidades", weight=0.1),
        IntentKeyword(word="cantidad", weight=0.1),
        IntentKeyword(word="material", weight=0.1),
        IntentKeyword(word="aluminio", weight=0.15),
        IntentKeyword(word="acero", weight=0.15),
        IntentKeyword(word="planos", weight=0.2),
        IntentKeyword(word="especificaciones", weight=0.15),
        IntentKeyword(word="tolerancias", weight=0.2),
    ],
)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def load_routing_rules(path: Optional[str] = None) -> RoutingRules:
    """
    Load the rule set.

    Priority:
      1. path argument
      2. ROUTING_RULES_FILE env var
      3. DEFAULT_ROUTING_RULES

    Raises pydantic.ValidationError when the file does not describe a valid
    rule set, and OSError when it cannot be read.
    """
    resolved = path or os.getenv("ROUTING_RULES_FILE", "").strip()
    if not resolved:
        return DEFAULT_ROUTING_RULES

    raw = Path(resolved).read_text(encoding="utf-8")
    rules = RoutingRules.model_validate_json(raw)
    logger.info(f"Loaded routing rules from {resolved}")
    return rules


# ---------------------------------------------------------------------------
# TTL cache
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CachedRules:
    """A loaded rule set and the monotonic time it was loaded at."""
    rules: RoutingRules
    loaded_at: float
    ttl_seconds: float

    def is_fresh(self, now: float) -> bool:
        return now - self.loaded_at < self.ttl_seconds


class RoutingRulesCache:
    """
    Holds one rule set for ``ttl_seconds``.

    get() reloads through ``loader`` once the entry has expired or after
    invalidate() has been called.
    """

    def __init__(
        self,
        loader: Callable[[], RoutingRules],
        ttl_seconds: float = _DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.loader = loader
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entry: Optional[CachedRules] = None
        self._lock = threading.Lock()

    def get(self) -> RoutingRules:
        with self._lock:
            now = self._clock()
            if self._entry is not None and self._entry.is_fresh(now):
                return self._entry.rules

            rules = self.loader()
            self._entry = CachedRules(rules=rules, loaded_at=now, ttl_seconds=self.ttl_seconds)
            return rules

    def invalidate(self) -> None:
        with self._lock:
            self._entry = None
        logger.debug("Routing rules cache invalidated")


def _ttl_from_env() -> float:
    raw = os.getenv("ROUTING_RULES_TTL_SECONDS", "").strip()
    if not raw:
        return _DEFAULT_TTL_SECONDS
    try:
        return float(raw)
    except ValueError:
        logger.warning(
            f"Ignoring invalid ROUTING_RULES_TTL_SECONDS={raw!r}; "
            f"using {_DEFAULT_TTL_SECONDS:.0f}s"
        )
        return _DEFAULT_TTL_SECONDS


rules_cache = RoutingRulesCache(loader=load_routing_rules, ttl_seconds=_ttl_from_env())


def get_routing_rules() -> RoutingRules:
    return rules_cache.get()


def invalidate_routing_rules() -> None:
    rules_cache.invalidate()
