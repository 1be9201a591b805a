from __future__ import annotations

from datetime import datetime
from typing import Optional

import dns.exception
import dns.message
import dns.rdata
import dns.rdataclass
import dns.rdatatype

from dnsping.models import ProbeSample


class FakeResolver:
    """Stands in for dns.resolver.Resolver built from resolv.conf."""

    nameservers: list = ["192.0.2.53"]
    port = 53
    timeout = 2.0


class FakeNetwork:
    """Replacement for dns.query.udp_with_fallback that never touches the wire."""

    def __init__(self, rtt: float = 0.0425, fail_for: tuple[str, ...] = ()):
        self.rtt = rtt
        self.fail_for = set(fail_for)
        self.queries: list[tuple[str, str, int]] = []
        self.answer_address: Optional[str] = None
        self.error: Exception = dns.exception.Timeout()

    def __call__(self, message, where, timeout=None, port=53, **kwargs):
        qname = message.question[0].name.to_text(omit_final_dot=True)
        self.queries.append((qname, where, port))
        if where in self.fail_for:
            raise self.error

        response = dns.message.make_response(message)
        if self.answer_address:
            rrset = response.find_rrset(
                response.answer,
                message.question[0].name,
                dns.rdataclass.IN,
                dns.rdatatype.A,
                create=True,
            )
            rrset.add(
                dns.rdata.from_text(dns.rdataclass.IN, dns.rdatatype.A, self.answer_address),
                300,
            )
        response.time = self.rtt
        return response, False


def make_sample(domain: str, latency: int, second: int = 0) -> ProbeSample:
    return ProbeSample(
        domain=domain,
        timestamp=datetime(2024, 5, 1, 12, 0, second),
        latency_ms=latency,
    )


def write_domains(path, names) -> str:
    path.write_text("".join(f"{rank},{name}\n" for rank, name in enumerate(names, 1)))
    return str(path)
