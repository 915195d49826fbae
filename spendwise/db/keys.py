"""Cache key layout. Every key is scoped to a single user."""


def collection(name: str, user_id: str) -> str:
    return f"{name}:{user_id}"


def transactions_generation(user_id: str) -> str:
    return f"transactions:{user_id}:generation"


def transactions_listing(user_id: str, generation: int, signature: str) -> str:
    return f"transactions:{user_id}:v{generation}:{signature}"


def monthly_report(user_id: str, year: int, month: int) -> str:
    return f"report:monthly:{user_id}:{year}-{month}"


def annual_report(user_id: str, year: int) -> str:
    return f"report:annual:{user_id}:{year}"


def spending_insights(user_id: str) -> str:
    return f"insights:spending:{user_id}"


def budget_analysis(user_id: str) -> str:
    return f"insights:budget:{user_id}"


def savings_opportunities(user_id: str) -> str:
    return f"insights:savings:{user_id}"


def financial_health(user_id: str) -> str:
    return f"analytics:health:{user_id}"


def predictions(user_id: str) -> str:
    return f"analytics:predictions:{user_id}"


def notifications(user_id: str) -> str:
    return f"notifications:{user_id}"
