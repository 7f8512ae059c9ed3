"""
Commission & Payout Calculator

Pure functions over final booking state:
- platform commission and technician payout for a final cost
- payout split across team members by role weight
- per-service impact of a pricing change
"""

import math
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Mapping, Optional, Sequence, Union

from loguru import logger

from dispatch_engine.config.constants import DEFAULT_ROLE_COMMISSION_RATES, FALLBACK_ROLE_COMMISSION_RATE
from dispatch_engine.config.settings import CommissionRates, settings
from dispatch_engine.models.domain import (
    Booking,
    BookingStatus,
    ServicePricing,
    ServiceType,
    Team,
    TeamRole,
    Technician,
    TechnicianLevel,
)
from dispatch_engine.models.results import CommissionSplit, PricingImpact, Settlement
from dispatch_engine.utils.errors import NotSettleable
from dispatch_engine.utils.money import format_signed_amount, round_currency, to_decimal

_CENT = Decimal("0.01")

PriceTable = Union[ServicePricing, Mapping[ServiceType, float]]

# Commission role for each technician level when the member is not the team lead
_ROLE_FOR_LEVEL: Dict[TechnicianLevel, str] = {
    TechnicianLevel.TRAINEE: "trainee",
    TechnicianLevel.JUNIOR: "junior",
    TechnicianLevel.TECHNICIAN: "technician",
    TechnicianLevel.SENIOR: "senior",
    TechnicianLevel.LEAD: "lead",
    TechnicianLevel.SUPERVISOR: "lead",
}


@dataclass(frozen=True)
class PayoutMember:
    """A team member taking part in a payout split"""
    technician_id: str
    name: str = ""
    role: str = "technician"


def settle(
    final_cost: float,
    platform_commission_rate: Optional[float] = None,
    commission_rates: Optional[CommissionRates] = None,
) -> Settlement:
    """
    Split a final cost into platform commission and technician payout.

    Commission is rounded to cents; the payout is the exact remainder, so
    commission + payout always equals the final cost.

    Args:
        final_cost: Non-negative amount charged to the customer
        platform_commission_rate: Rate in [0, 1]; overrides ``commission_rates``
        commission_rates: Injected rate configuration; defaults to the configured rates

    Example:
        >>> settle(450.0, 0.10)
        Settlement(final_cost=450.0, platform_commission_rate=0.1, platform_commission=45.0, technician_payout=405.0)
    """
    rate = platform_commission_rate
    if rate is None:
        rate = _rates(commission_rates).platform_commission_rate
    if final_cost is None or not math.isfinite(final_cost) or final_cost < 0:
        raise ValueError(f"final_cost must be a finite non-negative amount, got {final_cost}")
    if not 0.0 <= rate <= 1.0:
        raise ValueError(f"platform_commission_rate must be between 0 and 1, got {rate}")

    cost = to_decimal(final_cost)
    commission = (cost * to_decimal(rate)).quantize(_CENT, rounding=ROUND_HALF_UP)
    payout = cost - commission

    return Settlement(
        final_cost=float(cost),
        platform_commission_rate=rate,
        platform_commission=float(commission),
        technician_payout=float(payout),
    )


def settle_booking(
    booking: Booking,
    platform_commission_rate: Optional[float] = None,
    commission_rates: Optional[CommissionRates] = None,
) -> Settlement:
    """Settle a completed booking; raises NotSettleable without a final cost."""
    if booking.status != BookingStatus.COMPLETED or booking.final_cost is None:
        raise NotSettleable(
            f"Booking {booking.id} is '{booking.status.value}' without a final cost; only completed bookings settle"
        )
    settlement = settle(booking.final_cost, platform_commission_rate, commission_rates)
    logger.debug(
        f"Settled booking {booking.id}: commission {settlement.platform_commission:.2f}, "
        f"payout {settlement.technician_payout:.2f}"
    )
    return settlement


def split_team_payout(
    technician_payout: float,
    members: Sequence[PayoutMember],
    rates: Optional[Mapping[str, float]] = None,
) -> List[CommissionSplit]:
    """
    Split a payout across team members by role weight.

    percentage_i = rate_i / sum(rates) * 100. Amounts are rounded to cents
    and the rounding remainder goes to the highest-weighted member (first
    one on ties) so the amounts add up to the payout exactly.

    Args:
        technician_payout: Amount to distribute
        members: Members with their commission roles
        rates: Role weights; defaults to lead .40, senior .30,
            technician .25, junior .20, trainee .10 (unknown roles .25)

    Returns:
        One CommissionSplit per member, in input order
    """
    if not members:
        return []
    if technician_payout < 0:
        raise ValueError(f"technician_payout must be non-negative, got {technician_payout}")

    table = DEFAULT_ROLE_COMMISSION_RATES if rates is None else rates
    weights = [to_decimal(table.get(member.role, FALLBACK_ROLE_COMMISSION_RATE)) for member in members]
    if any(weight < 0 for weight in weights):
        raise ValueError("Role commission rates must be non-negative")

    total_weight = sum(weights, Decimal(0))
    if total_weight == 0:
        # Degenerate table: split evenly
        weights = [Decimal(1)] * len(members)
        total_weight = Decimal(len(members))

    payout = to_decimal(technician_payout).quantize(_CENT, rounding=ROUND_HALF_UP)
    amounts = [(payout * weight / total_weight).quantize(_CENT, rounding=ROUND_HALF_UP) for weight in weights]

    remainder = payout - sum(amounts, Decimal(0))
    if remainder:
        top = max(range(len(weights)), key=lambda i: (weights[i], -i))
        amounts[top] += remainder

    return [
        CommissionSplit(
            technician_id=member.technician_id,
            technician_name=member.name,
            role=member.role,
            percentage=round(float(weight / total_weight * 100), 2),
            amount=float(amount),
        )
        for member, weight, amount in zip(members, weights, amounts)
    ]


def split_for_team(
    technician_payout: float,
    team: Team,
    technicians: Mapping[str, Technician],
    rates: Optional[Mapping[str, float]] = None,
) -> List[CommissionSplit]:
    """
    Split a payout across a registered team.

    The team lead takes the ``lead`` role; other members take the role of
    their technician level.
    """
    members = []
    for member in team.members:
        technician = technicians.get(member.technician_id)
        level = technician.level if technician is not None else member.level
        is_lead = member.technician_id == team.lead_technician_id or member.role == TeamRole.LEAD
        members.append(
            PayoutMember(
                technician_id=member.technician_id,
                name=member.name or (technician.name if technician is not None else ""),
                role="lead" if is_lead else _ROLE_FOR_LEVEL[level],
            )
        )
    return split_team_payout(technician_payout, members, rates)


def pricing_impact(
    old: PriceTable,
    new: PriceTable,
    technician_payout_rate: Optional[float] = None,
    commission_rates: Optional[CommissionRates] = None,
) -> List[PricingImpact]:
    """
    Per-service impact of a pricing change; unchanged services are omitted.

    Example:
        installation 500 -> 600 gives change_percentage 20.0,
        customer_impact "+GHC 100.00 (+20.0%)" and technician_impact 90.0
    """
    config = _rates(commission_rates)
    rate = config.technician_payout_rate if technician_payout_rate is None else technician_payout_rate
    currency = config.currency_code
    old_prices = _price_map(old)
    new_prices = _price_map(new)

    impacts = []
    for service_type in ServiceType:
        old_price = old_prices[service_type]
        new_price = new_prices[service_type]
        change = round_currency(new_price - old_price)
        if change == 0:
            continue

        percentage = round(change / old_price * 100, 1) if old_price else None
        customer = format_signed_amount(change, currency)
        if percentage is not None:
            customer = f"{customer} ({percentage:+.1f}%)"
        technician_change = round_currency(change * rate)

        impacts.append(
            PricingImpact(
                service_type=service_type,
                old_price=old_price,
                new_price=new_price,
                change_amount=change,
                change_percentage=percentage,
                customer_impact=customer,
                technician_impact=technician_change,
                technician_impact_label=f"{format_signed_amount(technician_change, currency)} per job",
            )
        )
    return impacts


def _rates(rates: Optional[CommissionRates]) -> CommissionRates:
    return rates if rates is not None else CommissionRates.from_settings(settings)


def _price_map(prices: PriceTable) -> Dict[ServiceType, float]:
    if isinstance(prices, ServicePricing):
        return dict(prices.prices)
    return ServicePricing(prices=dict(prices)).prices
