from django.db.models import Count, QuerySet
from ninja_extra import api_controller, route
from ninja_extra.pagination import PageNumberPaginationExtra, PaginatedResponseSchema, paginate
from ninja_extra.searching import Searching, searching

from common.models import Tag
from common.schema import TagSchema

from .base import UserAwareController


@api_controller("/tags", tags=["Tags"])
class TagController(UserAwareController):
    @route.get("/", url_name="list_tags", response=PaginatedResponseSchema[TagSchema])
    @paginate(PageNumberPaginationExtra, page_size=50)
    @searching(Searching, search_fields=["name", "description"])
    def list_tags(self) -> QuerySet[Tag]:
        """Browse and search the tags attached to events.

        Most used tags come first. Supports autocomplete via the 'search' query parameter
        (e.g. /api/tags/?search=py).
        """
        return Tag.objects.annotate(usage=Count("assignments")).order_by("-usage", "name")
