from budget_book.models import Category, TransactionType

DEFAULT_CATEGORIES: tuple[Category, ...] = (
    Category(id="cat_1", name="급여", type=TransactionType.INCOME, color="#10B981", icon="💰"),
    Category(id="cat_2", name="부수입", type=TransactionType.INCOME, color="#34D399", icon="💵"),
    Category(id="cat_3", name="기타수입", type=TransactionType.INCOME, color="#6EE7B7", icon="📈"),
    Category(id="cat_4", name="식비", type=TransactionType.EXPENSE, color="#EF4444", icon="🍔"),
    Category(id="cat_5", name="교통비", type=TransactionType.EXPENSE, color="#F87171", icon="🚗"),
    Category(id="cat_6", name="쇼핑", type=TransactionType.EXPENSE, color="#FCA5A5", icon="🛍️"),
    Category(id="cat_7", name="문화생활", type=TransactionType.EXPENSE, color="#FB923C", icon="🎬"),
    Category(id="cat_8", name="의료", type=TransactionType.EXPENSE, color="#FBBF24", icon="🏥"),
    Category(id="cat_9", name="교육", type=TransactionType.EXPENSE, color="#A78BFA", icon="📚"),
    Category(id="cat_10", name="기타지출", type=TransactionType.EXPENSE, color="#94A3B8", icon="💸"),
)


def default_categories() -> list[Category]:
    return [category.model_copy() for category in DEFAULT_CATEGORIES]
