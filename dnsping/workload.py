"""
Workload generation for dnsping.

Loads the ranked list of domains to probe and builds cache-busting
query names:
- Domains come from a ranked `rank,name` list (Alexa/Tranco top-1M format)
- Each probe prepends a fresh random label so no resolver can answer
  from its cache
"""

import logging
import random
import string
from pathlib import Path
from typing import Optional, Union

from .models import DEFAULT_DOMAIN_COUNT, DomainList, DomainListError


logger = logging.getLogger(__name__)

LABEL_ALPHABET = string.ascii_lowercase + string.ascii_uppercase + string.digits
MIN_LABEL_LENGTH = 6
MAX_LABEL_LENGTH = 12

# Process-wide random source, seeded from the OS
_rng = random.Random()


def _parse_ranked_line(line: str) -> tuple[str, str]:
    """Split a `rank,name` line into its rank and domain name."""
    rank, sep, name = line.partition(",")
    if not sep:
        # Unranked line, take it whole
        return "", line.strip()
    return rank.strip(), name.strip()


def load_top_domains(
    path: Union[str, Path],
    count: int = DEFAULT_DOMAIN_COUNT,
) -> DomainList:
    """
    Read the first `count` domains from a ranked list.

    Domains are returned in file order, without deduplication or
    validation. Blank lines are not entries.

    Args:
        path: File with one `rank,name` pair per line
        count: Number of domains to read (non-positive means the default)

    Returns:
        DomainList, flagged partial when the file held fewer than `count`

    Raises:
        DomainListError: If the file cannot be read or holds no domains
    """
    if count <= 0:
        count = DEFAULT_DOMAIN_COUNT

    path = Path(path)
    domains: list[str] = []

    try:
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                if len(domains) >= count:
                    break
                if not line.strip():
                    continue
                rank, name = _parse_ranked_line(line)
                logger.debug("rank: %s name: %s", rank, name)
                domains.append(name)
    except OSError as e:
        raise DomainListError(
            f"file {path} does not exist or cannot be read "
            f"({e.strerror or e}). Please provide a valid file with domain names"
        ) from e
    except UnicodeDecodeError as e:
        raise DomainListError(
            f"file {path} is not valid UTF-8 ({e.reason} at byte {e.start}). "
            "Please provide a valid file with domain names"
        ) from e

    if not domains:
        raise DomainListError(f"no domains found in {path}")

    result = DomainList(domains=domains, requested=count)
    if result.is_partial:
        logger.warning(
            "found only %d domains (instead of %d)", len(domains), count
        )

    return result


def generate_random_label(rng: Optional[random.Random] = None) -> str:
    """Generate a random label of 6 to 12 alphanumeric characters."""
    rng = rng or _rng
    length = rng.randint(MIN_LABEL_LENGTH, MAX_LABEL_LENGTH)
    return "".join(rng.choice(LABEL_ALPHABET) for _ in range(length))


def make_query_name(domain: str, rng: Optional[random.Random] = None) -> str:
    """Prepend a random label to `domain` to bypass resolver caches."""
    return f"{generate_random_label(rng)}.{domain}"
