from dataclasses import dataclass

from tokenmeter.clock import LONG_CYCLE, SHORT_CYCLE

# Max 5x subscription: 44,000 base tokens x 5 per 5 hour window
DEFAULT_DAILY_BUDGET = 220_000


@dataclass(frozen=True, slots=True)
class SuggestedBudgets:
    daily_token_budget: "int"
    weekly_token_budget: "int"
    source_description: "str"


def suggest_budgets(daily_budget: "int" = DEFAULT_DAILY_BUDGET) -> "SuggestedBudgets":
    """
    suggests token limits for users who haven't configured any. The
    weekly limit is the daily one scaled by the number of short
    cycles in a long one (168h / 5h = 33.6).
    """
    cycles_per_week = LONG_CYCLE / SHORT_CYCLE
    weekly = int(round(daily_budget * cycles_per_week))
    return SuggestedBudgets(
        daily_token_budget=daily_budget,
        weekly_token_budget=weekly,
        source_description=(
            f"default: daily(5h)={daily_budget:,}; "
            f"weekly(7d)=daily*{cycles_per_week:g}"
        ),
    )
