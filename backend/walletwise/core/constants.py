TX_KINDS = ("income", "expense")

EXPENSE_CATEGORIES = (
    "food",
    "transport",
    "shopping",
    "entertainment",
    "education",
    "healthcare",
    "housing",
)
INCOME_CATEGORIES = (
    "pocket_money",
    "salary",
    "freelance",
    "gift",
    "investment",
)
CATEGORIES = EXPENSE_CATEGORIES + INCOME_CATEGORIES + ("other",)

PAYMENT_METHODS = ("cash", "card", "upi", "online")
MOODS = ("happy", "stressed", "bored", "sad", "calm", "neutral")
