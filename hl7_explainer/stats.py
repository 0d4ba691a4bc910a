"""Read-only usage report over the quota ledger."""

from hl7_explainer.ledger import LedgerSnapshot
from hl7_explainer.models import StatsResponse


def estimate_cost(total_tokens: int, price_per_million_tokens: float) -> float:
    """Estimated spend in USD for total_tokens at a flat per-million price."""
    return (total_tokens / 1_000_000) * price_per_million_tokens


def build_report(
    snapshot: LedgerSnapshot, price_per_million_tokens: float
) -> StatsResponse:
    """Turn a ledger snapshot into the /stats response body."""
    return StatsResponse(
        total_requests=snapshot.total_requests,
        failures=snapshot.failures,
        total_tokens=snapshot.total_tokens,
        country_counts=snapshot.country_counts,
        estimated_cost_usd=estimate_cost(
            snapshot.total_tokens, price_per_million_tokens
        ),
    )
