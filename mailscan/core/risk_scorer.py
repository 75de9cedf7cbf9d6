from typing import Iterable, List, Optional, Set
import logging

from mailscan.config import settings
from mailscan.core.url_utils import parse_link, is_ip_literal, host_ends_with
from mailscan.schemas import (
    AnalysisResult,
    EmailMetadata,
    Flag,
    RiskLevel,
    UNKNOWN_SENDER,
    NO_REPLY_TO,
)

logger = logging.getLogger(__name__)


class RiskScorer:
    def __init__(self,
                 sensitive_domains: Optional[Iterable[str]] = None,
                 high_threshold: Optional[int] = None,
                 medium_threshold: Optional[int] = None,
                 excessive_link_count: Optional[int] = None):
        """
        Stateless between calls: everything an analysis accumulates lives
        inside analyze(), so one scorer can be shared across threads.
        """
        # Points per check
        self.weights = {
            'reply_to_mismatch': 25,
            'sensitive_link_mismatch': 10,
            'suspicious_keyword': 15,
            'url_shortener': 20,
            'ip_literal': 30,
            'insecure_link': 10,
            'excessive_links': 5,
        }

        # Level thresholds, inclusive lower bounds
        self.thresholds = {
            'high': settings.HIGH_RISK_THRESHOLD if high_threshold is None else high_threshold,
            'medium': settings.MEDIUM_RISK_THRESHOLD if medium_threshold is None else medium_threshold,
        }

        self.max_links = settings.EXCESSIVE_LINK_COUNT if excessive_link_count is None else excessive_link_count

        if sensitive_domains is None:
            sensitive_domains = settings.SENSITIVE_DOMAINS
        self.sensitive_domains = {d.lower() for d in sensitive_domains}

        # Tested in this order, first hit wins
        self.suspicious_keywords = (
            'verify', 'login', 'secure', 'update', 'account', 'support', 'unlock',
        )

        self.url_shorteners = {
            'bit.ly', 'goo.gl', 'tinyurl.com', 'ow.ly', 't.co', 'is.gd', 'buff.ly',
        }

    def analyze(self, metadata: EmailMetadata) -> AnalysisResult:
        """
        Run every check over one email's metadata and build the verdict.

        Order of flags: reply-to mismatch, sensitive-domain links, the
        per-link checks in link order, then the link count check.
        """
        flags: List[Flag] = []

        mismatch = self._check_reply_to_mismatch(metadata)
        if mismatch:
            flags.append(mismatch)

        sensitive = self._check_sensitive_domain_links(metadata)
        if sensitive:
            flags.append(sensitive)

        flags.extend(self._check_links(metadata.links))

        excessive = self._check_link_count(metadata.links)
        if excessive:
            flags.append(excessive)

        risk_score = sum(flag.points for flag in flags)
        risk_level = self._determine_level(risk_score)

        logger.debug(f"Scored sender={metadata.sender_domain}: {risk_score} ({risk_level.value}), {len(flags)} flags")

        return AnalysisResult(
            sender_domain=metadata.sender_domain or UNKNOWN_SENDER,
            reply_to_domain=metadata.reply_to_domain or NO_REPLY_TO,
            links=metadata.links,
            risk_score=risk_score,
            risk_level=risk_level,
            flags=tuple(flags),
        )

    async def analyze_async(self, metadata: EmailMetadata) -> AnalysisResult:
        """Same as analyze(); no I/O is awaited."""
        return self.analyze(metadata)

    def _check_reply_to_mismatch(self, metadata: EmailMetadata) -> Optional[Flag]:
        sender = metadata.sender_domain
        reply_to = metadata.reply_to_domain
        if not sender or not reply_to:
            return None
        if sender.lower() == reply_to.lower():
            return None
        return Flag(
            description="Reply-To domain differs from sender domain",
            evidence=f"sender={sender} replyTo={reply_to}",
            points=self.weights['reply_to_mismatch'],
        )

    def _check_sensitive_domain_links(self, metadata: EmailMetadata) -> Optional[Flag]:
        """
        Mail from a sensitive sender (payment providers) should only link
        back to that sender. Suffix match, so sibling domains sharing the
        suffix slip through.
        """
        sender = metadata.sender_domain
        if not sender or sender.lower() not in self.sensitive_domains:
            return None

        for href in metadata.links:
            parsed = parse_link(href)
            if parsed is None:
                continue
            if not host_ends_with(parsed.hostname, sender):
                domain = sender.lower()
                return Flag(
                    description=f"Links do not point to {domain}",
                    evidence=f"Email from {domain} contains a link to another domain",
                    points=self.weights['sensitive_link_mismatch'],
                )
        return None

    def _check_links(self, links: Iterable[str]) -> List[Flag]:
        """
        Single pass over the links. Each check has its own guard and fires
        at most once; one link may trip several checks.
        """
        flags = []
        fired: Set[str] = set()

        for href in links:
            parsed = parse_link(href)
            if parsed is None:
                continue
            hostname = parsed.hostname

            if 'suspicious_keyword' not in fired:
                keyword = self._match_keyword(hostname)
                if keyword:
                    fired.add('suspicious_keyword')
                    flags.append(Flag(
                        description="Suspicious keyword in link domain",
                        evidence=f"{hostname} contains '{keyword}'",
                        points=self.weights['suspicious_keyword'],
                    ))

            if 'url_shortener' not in fired and hostname in self.url_shorteners:
                fired.add('url_shortener')
                flags.append(Flag(
                    description="Link uses a URL shortener",
                    evidence=hostname,
                    points=self.weights['url_shortener'],
                ))

            if 'ip_literal' not in fired and is_ip_literal(hostname):
                fired.add('ip_literal')
                flags.append(Flag(
                    description="Link points to a raw IP address",
                    evidence=href,
                    points=self.weights['ip_literal'],
                ))

            if 'insecure_link' not in fired and parsed.scheme == 'http':
                fired.add('insecure_link')
                flags.append(Flag(
                    description="Link does not use HTTPS",
                    evidence=href,
                    points=self.weights['insecure_link'],
                ))

        return flags

    def _match_keyword(self, hostname: str) -> Optional[str]:
        hostname = hostname.lower()
        for keyword in self.suspicious_keywords:
            if keyword in hostname:
                return keyword
        return None

    def _check_link_count(self, links) -> Optional[Flag]:
        # Raw count: duplicates and unparseable hrefs included
        count = len(links)
        if count <= self.max_links:
            return None
        return Flag(
            description="Excessive number of links",
            evidence=f"Found {count} links",
            points=self.weights['excessive_links'],
        )

    def _determine_level(self, risk_score: int) -> RiskLevel:
        if risk_score >= self.thresholds['high']:
            return RiskLevel.HIGH
        elif risk_score >= self.thresholds['medium']:
            return RiskLevel.MEDIUM
        else:
            return RiskLevel.LOW
