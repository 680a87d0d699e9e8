"""
Predefined interest categories offered on the content sources page.

A category source is fetched through a Google News topic search feed
built from the category's query terms.
"""

from dataclasses import dataclass
from urllib.parse import quote_plus

GOOGLE_NEWS_SEARCH_FEED = (
    "https://news.google.com/rss/search?q={query}&hl=en-US&gl=US&ceid=US:en"
)


@dataclass(frozen=True)
class Category:
    """One predefined interest category."""

    id: str
    name: str
    description: str
    query: str

    @property
    def feed_url(self) -> str:
        return GOOGLE_NEWS_SEARCH_FEED.format(query=quote_plus(self.query))


PREDEFINED_CATEGORIES = [
    Category("technology", "Technology", "Latest tech news, gadgets, and innovations", "technology"),
    Category("business", "Business", "Business news, entrepreneurship, and insights", "business"),
    Category("science", "Science", "Scientific discoveries, research, and breakthroughs", "science research"),
    Category("health", "Health & Wellness", "Health tips, fitness, and medical news", "health wellness"),
    Category("education", "Education", "Learning resources and educational content", "education"),
    Category("entertainment", "Entertainment", "Movies, TV shows, and pop culture", "entertainment"),
    Category("sports", "Sports", "Sports news, highlights, and athlete updates", "sports"),
    Category("politics", "Politics", "Political news, analysis, and world events", "politics"),
    Category("finance", "Finance", "Financial markets, investing, and money management", "finance markets"),
    Category("lifestyle", "Lifestyle", "Lifestyle tips, fashion, and personal development", "lifestyle"),
    Category("travel", "Travel", "Travel guides, destinations, and adventure content", "travel"),
    Category("food", "Food & Cooking", "Recipes, restaurant reviews, and culinary content", "food cooking"),
    Category("gaming", "Gaming", "Video games, esports, and gaming news", "video games"),
    Category("art", "Arts & Culture", "Art, music, literature, and cultural content", "arts culture"),
    Category("environment", "Environment", "Climate change, sustainability, and green living", "climate environment"),
    Category("psychology", "Psychology", "Mental health, psychology, and self-improvement", "psychology"),
    Category("history", "History", "Historical events, documentaries, and archives", "history"),
    Category("philosophy", "Philosophy", "Philosophical discussions and thought-provoking content", "philosophy"),
    Category("diy", "DIY & Crafts", "Do-it-yourself projects, crafts, and tutorials", "diy crafts"),
    Category("parenting", "Parenting", "Parenting tips, family content, and child development", "parenting"),
]


def find_category(value: str | None) -> Category | None:
    """
    Look up a category by id or display name (case-insensitive).

    Args:
        value: Category id ("technology") or name ("Health & Wellness")

    Returns:
        Matching Category or None
    """
    if not value:
        return None

    needle = value.strip().lower()
    for category in PREDEFINED_CATEGORIES:
        if needle in (category.id, category.name.lower()):
            return category
    return None
