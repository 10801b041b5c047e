COLLECTION = "healthtips"

DEFAULT_SOURCE = "Healthcare Plus Medical Team"

FALLBACK_TIP = {
    "id": "fallback",
    "content": "Stay healthy and drink plenty of water!",
    "category": "general",
    "source": "Healthcare Plus",
    "tags": [],
}

DEFAULT_TIPS = [
    {
        "content": "An apple a day keeps the doctor away - they're packed with fiber and antioxidants!",
        "category": "nutrition",
        "tags": ["fruits", "antioxidants", "fiber"],
    },
    {
        "content": "Bananas are rich in potassium, vital for heart health and muscle function.",
        "category": "nutrition",
        "tags": ["potassium", "heart health", "muscles"],
    },
    {
        "content": "Drinking 8 glasses of water daily helps maintain proper body function.",
        "category": "general",
        "tags": ["hydration", "water", "wellness"],
    },
    {
        "content": "Regular exercise for 30 minutes a day can reduce the risk of chronic diseases.",
        "category": "exercise",
        "tags": ["exercise", "prevention", "fitness"],
    },
    {
        "content": "Getting 7-9 hours of sleep each night is essential for physical and mental health.",
        "category": "mental-health",
        "tags": ["sleep", "mental health", "rest"],
    },
]


def new_tip_fields(content, category, tags=None, source=None):
    return {
        "content": content,
        "category": category,
        "tags": list(tags or []),
        "source": source or DEFAULT_SOURCE,
        "is_active": True,
        "views": 0,
        "last_displayed": None,
    }
