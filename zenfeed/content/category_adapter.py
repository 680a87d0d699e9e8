"""
Interest category adapter.

A category source names one of the predefined categories (by id in
`username` or by display name in `name`) and is served from a Google News
topic search feed.
"""

from zenfeed.config.categories import Category, find_category
from zenfeed.content.rss_adapter import FeedAdapter
from zenfeed.content.schemas import ContentSource, Platform


class CategoryAdapter(FeedAdapter):
    """News headlines for a predefined interest category."""

    @property
    def platform(self) -> Platform:
        return Platform.CATEGORY

    def resolve_category(self, source: ContentSource) -> Category | None:
        # username holds the category id when set by the sources page
        return find_category(source.username) or find_category(source.name)

    def _check_fields(self, source: ContentSource) -> None:
        if not source.username and not source.name:
            raise self._invalid("Category source requires a category name", source)
        if self.resolve_category(source) is None:
            raise self._invalid(
                f"Unknown category: {source.username or source.name}",
                source,
            )

    def feed_url(self, source: ContentSource) -> str:
        category = self.resolve_category(source)
        if category is None:
            raise self._invalid(f"Unknown category: {source.username or source.name}", source)
        return category.feed_url

    def _feed_info(self, feed, source):
        info = super()._feed_info(feed, source)
        category = self.resolve_category(source)
        return info.model_copy(
            update={
                "name": category.name,
                "description": category.description,
            }
        )
