"""
Mess configuration and member profile - read-only inputs of the dues engine
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple, Union

from mymess.utils.money import ZERO, non_negative, to_decimal

logger = logging.getLogger(__name__)

PlanValue = Union[int, float, Decimal, str, None]


class MalformedMessConfig(ValueError):
    """Mess payload that cannot identify a mess"""
    pass


@dataclass(frozen=True)
class MessConfig:
    """
    Owner-controlled subscription terms of a mess

    subscription_plan is overloaded: <= 100 is a day count, > 100 is a total
    amount (see mymess.domain.subscription_plan). joined_users is the ground
    truth for membership, independent of payment history.
    """
    id: str
    name: Optional[str]
    owner_email: Optional[str]
    price_per_meal: Decimal
    subscription_plan: PlanValue
    joined_users: Tuple[str, ...]
    warnings: Tuple[str, ...] = field(default=(), compare=False)

    @staticmethod
    def from_payload(data: Dict[str, Any]) -> "MessConfig":
        """
        Build a mess config from GET /mess/getById or /mess/getByEmail

        Shape problems in pricePerMeal or joinedUsers are absorbed (0 / empty
        roster) and reported in ``warnings``.

        Raises:
            MalformedMessConfig: not an object, or no mess id
        """
        if not isinstance(data, dict):
            raise MalformedMessConfig(f"Mess payload is not an object: {type(data).__name__}")

        mess_id = data.get("id")
        if mess_id is None or str(mess_id).strip() == "":
            raise MalformedMessConfig("Mess payload has no id")

        warnings: List[str] = []

        raw_price = data.get("pricePerMeal")
        price = to_decimal(raw_price, default=None)
        if price is None:
            if raw_price is not None:
                warnings.append(f"unreadable pricePerMeal {raw_price!r}")
            price = ZERO
        elif price < ZERO:
            warnings.append(f"negative pricePerMeal {raw_price!r}")
            price = non_negative(price)

        joined_users, roster_warnings = _parse_roster(data.get("joinedUsers"))
        warnings.extend(roster_warnings)

        for warning in warnings:
            logger.warning("Mess %s: %s", mess_id, warning)

        return MessConfig(
            id=str(mess_id),
            name=data.get("messName") or data.get("name"),
            owner_email=data.get("email") or data.get("contact"),
            price_per_meal=price,
            subscription_plan=data.get("subscriptionPlan"),
            joined_users=joined_users,
            warnings=tuple(warnings),
        )

    def has_subscription_plan(self) -> bool:
        """
        Whether the mess carries a usable plan value

        None, 0 and blank strings mean "not configured", so the member's
        own plan gets a chance.
        """
        plan = self.subscription_plan
        if plan is None or isinstance(plan, bool):
            return False
        if isinstance(plan, str):
            return bool(plan.strip())
        return plan != 0


def _parse_roster(raw: Any) -> Tuple[Tuple[str, ...], List[str]]:
    """Ordered, de-duplicated member emails"""
    if raw is None:
        return (), []
    if not isinstance(raw, list):
        return (), [f"joinedUsers is not a list ({type(raw).__name__})"]

    seen: Dict[str, None] = {}
    warnings: List[str] = []
    for item in raw:
        if isinstance(item, str) and item.strip():
            seen.setdefault(item.strip(), None)
        else:
            warnings.append(f"ignored roster entry {item!r}")
    return tuple(seen), warnings


@dataclass(frozen=True)
class MemberProfile:
    """
    User profile as returned by GET /byEmail/{email}

    subscription_plan is the member's own plan descriptor ("Monthly",
    "Bimonthly", a number or a numeric string).
    """
    email: str
    name: Optional[str] = None
    subscription_plan: PlanValue = None

    @staticmethod
    def from_payload(email: str, data: Any) -> "MemberProfile":
        """Lenient: anything that is not an object becomes an empty profile"""
        if not isinstance(data, dict):
            return MemberProfile(email=email)
        name = data.get("name")
        return MemberProfile(
            email=data.get("email") or email,
            name=name if isinstance(name, str) and name.strip() else None,
            subscription_plan=data.get("subscriptionPlan"),
        )

    def has_subscription_plan(self) -> bool:
        plan = self.subscription_plan
        if plan is None or isinstance(plan, bool):
            return False
        if isinstance(plan, str):
            return bool(plan.strip())
        return True
