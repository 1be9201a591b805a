"""
Core DNS probing engine.

Issues one cache-busting recursive query per probe through the system's
default resolver and reads the library-reported round-trip time.
"""

import logging
import random
from datetime import datetime, timezone
from typing import Callable, Optional

import dns.exception
import dns.message
import dns.query
import dns.rdataclass
import dns.rdatatype
import dns.resolver

from .models import NoResponse, ProbeError, ProbeSample, ResolverUnavailable
from .workload import make_query_name


logger = logging.getLogger(__name__)


def _nameserver_target(
    nameserver,
    default_port: int,
) -> tuple[str, int]:
    """Address and port of a configured nameserver."""
    # Recent dnspython releases hold Nameserver objects, older ones plain IPs
    address = getattr(nameserver, "address", nameserver)
    port = getattr(nameserver, "port", default_port)
    return str(address), int(port)


class DNSProber:
    """
    Measures resolution latency for a domain.

    Every probe queries a random, normally non-existent name below the
    domain, so the answer always has to come from the authoritative
    servers rather than a cache.
    """

    def __init__(
        self,
        verbose: bool = False,
        rng: Optional[random.Random] = None,
        resolver_factory: Optional[Callable[[], dns.resolver.Resolver]] = None,
    ):
        """
        Initialize the prober.

        Args:
            verbose: Inspect each response for A records (diagnostic only)
            rng: Random source for query labels (process-wide if None)
            resolver_factory: Builds a resolver from local configuration
        """
        self.verbose = verbose
        self.rng = rng
        self.resolver_factory = resolver_factory or dns.resolver.Resolver

    def _load_resolver(self, domain: str) -> dns.resolver.Resolver:
        """Read the local resolver configuration (resolv.conf)."""
        try:
            resolver = self.resolver_factory()
        except (dns.resolver.NoResolverConfiguration, OSError) as e:
            raise ResolverUnavailable(
                domain,
                f"could not find local resolver to probe for domain {domain}: {e}",
            ) from e

        if not resolver.nameservers:
            raise ResolverUnavailable(
                domain,
                f"could not find local resolver to probe for domain {domain}",
            )
        return resolver

    def _create_query_message(self, qname: str) -> dns.message.Message:
        """Create a recursive A/IN query (RD is set by make_query)."""
        return dns.message.make_query(
            qname,
            dns.rdatatype.A,
            dns.rdataclass.IN,
        )

    def _send(
        self,
        message: dns.message.Message,
        resolver: dns.resolver.Resolver,
        domain: str,
    ) -> dns.message.Message:
        """Send the query to each configured nameserver until one answers."""
        last_error: Optional[Exception] = None

        for nameserver in resolver.nameservers:
            address, port = _nameserver_target(nameserver, resolver.port)
            # A TCP fallback closed by the server surfaces as EOFError
            try:
                response, _ = dns.query.udp_with_fallback(
                    message,
                    address,
                    timeout=resolver.timeout,
                    port=port,
                )
                return response
            except (dns.exception.DNSException, OSError, EOFError) as e:
                logger.debug("nameserver %s gave no answer: %s", address, e)
                last_error = e

        raise NoResponse(domain, f"could not probe domain {domain}: {last_error}")

    def _report_answer(self, qname: str, response: dns.message.Message) -> bool:
        """Log whether the random name resolved (wildcard DNS check)."""
        records = [
            rrset for rrset in response.answer
            if rrset.rdtype == dns.rdatatype.A
        ]
        if not records:
            # Expected, the random label should not exist
            logger.debug("Name %s does not exist", qname)
            return False

        logger.debug("Name %s exists", qname)
        for rrset in records:
            for address in sorted(rdata.to_text() for rdata in rrset):
                logger.debug("  %s %s A %s", rrset.name, rrset.ttl, address)
        return True

    def probe(self, domain: str) -> ProbeSample:
        """
        Probe the nameservers of a single domain.

        Args:
            domain: Domain to measure

        Returns:
            ProbeSample with integer millisecond latency and receipt time (naive UTC)

        Raises:
            ResolverUnavailable: If no local resolver is configured
            NoResponse: If no nameserver answered
            ProbeError: If the domain cannot form a valid query name
        """
        qname = make_query_name(domain, self.rng)
        logger.info("Probing nameserver for domain %s with name %s", domain, qname)

        resolver = self._load_resolver(domain)
        try:
            message = self._create_query_message(qname)
        except dns.exception.DNSException as e:
            raise ProbeError(domain, f"invalid query name {qname}: {e}") from e
        response = self._send(message, resolver, domain)
        timestamp = datetime.now(timezone.utc).replace(tzinfo=None, microsecond=0)

        latency_ms = max(int(response.time * 1000), 0)
        logger.info("Latency for domain %s: %d milliseconds", domain, latency_ms)

        answer_exists = False
        if self.verbose:
            answer_exists = self._report_answer(qname, response)

        return ProbeSample(
            domain=domain,
            timestamp=timestamp,
            latency_ms=latency_ms,
            qname=qname,
            answer_exists=answer_exists,
        )
