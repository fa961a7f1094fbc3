"""
Client fingerprint matching.

A ``ClientDetector`` answers two questions about a request: which stored
sessions look like the same client, and whether the request looks automated.
Strategies are interchangeable; the resolution middleware only sees the
protocol.
"""

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional, Protocol, Tuple, runtime_checkable

from starlette.requests import HTTPConnection

from sessionkeeper.core.schemas.session import SessionPayload
from sessionkeeper.core.utils.serialization import JsonFieldAdapter
from sessionkeeper.sessions.credentials import extract_session_id
from sessionkeeper.sessions.entity import Session, SessionConfig
from sessionkeeper.sessions.payload_factory import SessionPayloadFactory
from sessionkeeper.sessions.repository import SessionRepository

logger = logging.getLogger(__name__)

AUTOMATION_PATTERN = re.compile(
    r"bot|crawl|spider|curl|wget|python-requests|httpx|aiohttp|headless|phantomjs|selenium|scrapy",
    re.IGNORECASE,
)
MAX_FORWARDED_HOPS = 5

# Similarity weights for the scored strategy; they sum to 1.0
SCORE_WEIGHTS: Dict[str, float] = {
    "ip": 0.4,
    "user_agent": 0.3,
    "accept_language": 0.1,
    "accept_encoding": 0.05,
    "sec_ch_ua": 0.1,
    "sec_ch_ua_platform": 0.05,
}


@dataclass(frozen=True)
class ClientIdentity:
    """A stored session that looks like the requesting client."""

    id: str
    ip_address: str
    user_agent: Optional[str]
    attributes: Dict[str, str] = field(default_factory=dict)
    score: float = 1.0


@runtime_checkable
class ClientDetector(Protocol):
    def find_similar_clients(
        self, request: HTTPConnection, include_current: bool = False
    ) -> List[ClientIdentity]: ...

    def is_request_suspicious(self, request: HTTPConnection) -> bool: ...


def is_suspicious_payload(payload: SessionPayload) -> bool:
    """Flag fingerprints that are missing, automated or proxy-chained"""
    if not payload.user_agent:
        return True
    if AUTOMATION_PATTERN.search(payload.user_agent):
        return True
    if payload.x_forwarded_for:
        hops = [hop for hop in payload.x_forwarded_for.split(",") if hop.strip()]
        if len(hops) > MAX_FORWARDED_HOPS:
            return True
    return False


def _identity(session: Session, stored: SessionPayload, score: float = 1.0) -> ClientIdentity:
    attributes = stored.model_dump(exclude={"ip", "user_agent"}, exclude_none=True)
    return ClientIdentity(
        id=session.id,
        ip_address=stored.ip,
        user_agent=stored.user_agent,
        attributes=attributes,
        score=score,
    )


class _StoredFingerprints:
    """Reads live sessions and their decoded payloads for a strategy."""

    def __init__(
        self,
        repository: SessionRepository,
        config: SessionConfig,
        payload_factory: SessionPayloadFactory,
        adapter: JsonFieldAdapter,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.repository = repository
        self.config = config
        self.payload_factory = payload_factory
        self.adapter = adapter
        self._clock = clock or (lambda: int(time.time()))

    def current(self, request: HTTPConnection) -> SessionPayload:
        return self.payload_factory.create_from_request(request)

    def iter_candidates(
        self, request: HTTPConnection, include_current: bool
    ) -> Iterator[Tuple[Session, SessionPayload]]:
        # One find_all() per call; payloads live in an opaque text column
        now = self._clock()
        exclude = None if include_current else extract_session_id(request, self.config.cookie_name)
        default = self.payload_factory.create_default()
        for session in self.repository.find_all():
            if session.id == exclude or not session.is_valid(now):
                continue
            stored = self.adapter.try_deserialize(session.payload, SessionPayload, default)
            # Undecodable payloads fall back to the default and must never match
            if stored is default:
                continue
            yield session, stored

    def is_request_suspicious(self, request: HTTPConnection) -> bool:
        return is_suspicious_payload(self.current(request))


class ExactMatchClientDetector:
    """Matches sessions whose stored IP and user-agent equal the request's.

    Most recently updated sessions come first. Each lookup lists every stored
    session and decodes the payload of each live one, so the cost grows with
    the table; keep the sweep running when fingerprinting is on.
    """

    def __init__(self, fingerprints: _StoredFingerprints):
        self._fingerprints = fingerprints

    def find_similar_clients(
        self, request: HTTPConnection, include_current: bool = False
    ) -> List[ClientIdentity]:
        current = self._fingerprints.current(request)
        if not current.user_agent:
            return []

        matches = [
            (session, stored)
            for session, stored in self._fingerprints.iter_candidates(request, include_current)
            if stored.ip == current.ip and stored.user_agent == current.user_agent
        ]
        matches.sort(key=lambda pair: pair[0].updated_at, reverse=True)
        limit = self._fingerprints.config.fingerprint_max_candidates
        return [_identity(session, stored) for session, stored in matches[:limit]]

    def is_request_suspicious(self, request: HTTPConnection) -> bool:
        return self._fingerprints.is_request_suspicious(request)


class ScoredClientDetector:
    """Weighted attribute similarity with a minimum score.

    Sorted by score, then by most recent update. Scans the same full
    candidate list as ``ExactMatchClientDetector``.
    """

    def __init__(self, fingerprints: _StoredFingerprints, weights: Optional[Dict[str, float]] = None):
        self._fingerprints = fingerprints
        self.weights = dict(weights or SCORE_WEIGHTS)

    def score(self, current: SessionPayload, stored: SessionPayload) -> float:
        total = 0.0
        for attribute, weight in self.weights.items():
            value = getattr(current, attribute)
            if value is not None and value == getattr(stored, attribute):
                total += weight
        return round(total, 4)

    def find_similar_clients(
        self, request: HTTPConnection, include_current: bool = False
    ) -> List[ClientIdentity]:
        current = self._fingerprints.current(request)
        min_score = self._fingerprints.config.fingerprint_min_score

        scored = []
        for session, stored in self._fingerprints.iter_candidates(request, include_current):
            value = self.score(current, stored)
            if value >= min_score:
                scored.append((value, session, stored))

        scored.sort(key=lambda item: (item[0], item[1].updated_at), reverse=True)
        limit = self._fingerprints.config.fingerprint_max_candidates
        return [_identity(session, stored, value) for value, session, stored in scored[:limit]]

    def is_request_suspicious(self, request: HTTPConnection) -> bool:
        return self._fingerprints.is_request_suspicious(request)


def build_client_detector(
    repository: SessionRepository,
    config: SessionConfig,
    payload_factory: SessionPayloadFactory,
    adapter: JsonFieldAdapter,
    clock: Optional[Callable[[], int]] = None,
) -> ClientDetector:
    """Create the detector selected by ``config.fingerprint_strategy``"""
    fingerprints = _StoredFingerprints(repository, config, payload_factory, adapter, clock)
    if config.fingerprint_strategy == "scored":
        return ScoredClientDetector(fingerprints)
    if config.fingerprint_strategy != "exact":
        logger.warning("Unknown fingerprint strategy %r, using exact matching", config.fingerprint_strategy)
    return ExactMatchClientDetector(fingerprints)
