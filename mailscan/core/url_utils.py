import re
from typing import Iterable, List, NamedTuple, Optional
from urllib.parse import urlsplit

# Absolute URLs only, the way a browser resolves an href without a base
SCHEME_PATTERN = re.compile(r'^[a-zA-Z][a-zA-Z0-9+.\-]*:')

# Schemes that are meaningless without a host
SPECIAL_SCHEMES = {'http', 'https', 'ftp', 'ws', 'wss'}

# Dotted quad shape only, 999.999.999.999 still counts
IPV4_PATTERN = re.compile(r'^\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}$')


class ParsedLink(NamedTuple):
    href: str
    scheme: str
    hostname: str


def parse_link(href: str) -> Optional[ParsedLink]:
    """
    Parse an href as an absolute URL.

    Returns None instead of raising when the href is relative, has no
    scheme, or is missing a host for http(s)/ftp/ws(s). The hostname is
    lower-cased; non-special schemes (javascript:, data:) parse with an
    empty hostname.

    Like a browser, http(s)/ftp/ws(s) hrefs treat backslashes as slashes
    and need no "//": http:example.com and https:\\evil.com both have a host.
    """
    if not isinstance(href, str):
        return None

    candidate = href.strip()
    match = SCHEME_PATTERN.match(candidate)
    if not candidate or not match:
        return None

    if match.group(0)[:-1].lower() in SPECIAL_SCHEMES:
        candidate = _normalize_special(candidate, len(match.group(0)))

    try:
        parts = urlsplit(candidate)
        hostname = parts.hostname or ''
    except ValueError:
        # Unbalanced IPv6 brackets and the like
        return None

    scheme = parts.scheme.lower()
    if scheme in SPECIAL_SCHEMES and not hostname:
        return None
    if any(ch.isspace() for ch in hostname):
        return None

    return ParsedLink(href=href, scheme=scheme, hostname=hostname.lower())


def is_ip_literal(hostname: str) -> bool:
    return bool(IPV4_PATTERN.match(hostname or ''))


def host_ends_with(hostname: str, domain: str) -> bool:
    """Plain suffix match, so notpaypal.com ends with paypal.com."""
    return hostname.lower().endswith(domain.lower())


def link_hostnames(links: Iterable[str]) -> List[str]:
    """Hostnames of the parseable links, in order. Failures and empty hosts are dropped."""
    hostnames = []
    for href in links:
        parsed = parse_link(href)
        if parsed and parsed.hostname:
            hostnames.append(parsed.hostname)
    return hostnames


def domain_from_address(address: Optional[str]) -> Optional[str]:
    """Domain part of an email address, handling 'Name <user@domain>' forms."""
    if not address or '@' not in address:
        return None
    domain = address.rsplit('@', 1)[1].split('>')[0].strip()
    return domain or None


def _normalize_special(candidate: str, scheme_end: int) -> str:
    """Rewrite scheme:[/\\]*rest as scheme://rest, backslashes before ?/# becoming slashes."""
    rest = candidate[scheme_end:]
    cut = len(rest)
    for marker in ('?', '#'):
        index = rest.find(marker)
        if index != -1:
            cut = min(cut, index)
    head = rest[:cut].replace('\\', '/').lstrip('/')
    return f"{candidate[:scheme_end - 1]}://{head}{rest[cut:]}"
