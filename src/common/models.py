import typing as t
import uuid

from django.contrib.contenttypes.fields import GenericForeignKey, GenericRelation
from django.contrib.contenttypes.models import ContentType
from django.db import models


class TimeStampedModel(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True, db_index=True)

    class Meta:
        abstract = True

    def save(self, *args: t.Any, **kwargs: t.Any) -> None:
        """Validate with full_clean before every save, so model constraints hold outside forms too."""
        self.full_clean()
        super().save(*args, **kwargs)


class Tag(TimeStampedModel):
    """A free-form label. Names are unique and matched case-insensitively when tagging."""

    name = models.CharField(max_length=64, unique=True, db_index=True)
    description = models.TextField(blank=True, null=True)
    color = models.CharField(max_length=7, blank=True, null=True, help_text="Hex color (e.g. #FF0099)")

    def clean(self) -> None:
        """Strip whitespace from the name."""
        if self.name:
            self.name = self.name.strip()

    def __str__(self) -> str:
        return self.name


class TagAssignment(TimeStampedModel):
    tag = models.ForeignKey(Tag, on_delete=models.CASCADE, related_name="assignments")
    content_type = models.ForeignKey(ContentType, on_delete=models.CASCADE)
    object_id = models.UUIDField()
    content_object = GenericForeignKey("content_type", "object_id")

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["tag", "content_type", "object_id"], name="unique_tag_assignment"),
        ]
        indexes = [
            models.Index(fields=["content_type", "object_id"], name="idx_tagassignment_target"),
        ]

    def __str__(self) -> str:
        return f"{self.tag} -> {self.content_object}"


def _clean_names(names: t.Iterable[str]) -> dict[str, str]:
    """Blank-free names keyed by their lowercase form; the first spelling wins."""
    cleaned: dict[str, str] = {}
    for name in names:
        name = name.strip()
        if name:
            cleaned.setdefault(name.lower(), name)
    return cleaned


class TaggableMixin(models.Model):
    """Gives a model a set of tags.

    Tags are shared between all taggable models. Assignments are removed along with the
    tagged row through the generic relation.
    """

    tags = GenericRelation(
        TagAssignment,
        related_query_name="%(class)s",
        content_type_field="content_type",
        object_id_field="object_id",
    )

    class Meta:
        abstract = True

    def tag_names(self) -> list[str]:
        """The names of this object's tags, sorted."""
        return sorted(self.tags.values_list("tag__name", flat=True))

    def add_tags(self, *names: str) -> None:
        """Attach tags, creating the missing ones. Already attached tags are left alone."""
        from common.utils import get_or_create_with_race_protection

        content_type = ContentType.objects.get_for_model(self.__class__)
        for name in _clean_names(names).values():
            tag, _ = get_or_create_with_race_protection(Tag, models.Q(name__iexact=name), {"name": name})
            TagAssignment.objects.get_or_create(tag=tag, content_type=content_type, object_id=self.pk)

    def remove_tags(self, *names: str) -> None:
        """Detach tags by name, ignoring case. The tags themselves stay."""
        query = models.Q()
        for lowered in _clean_names(names):
            query |= models.Q(tag__name__iexact=lowered)
        if query:
            self.tags.filter(query).delete()

    def set_tags(self, *names: str) -> None:
        """Make ``names`` the exact tag set, touching only the assignments that change."""
        wanted = _clean_names(names)
        current = {name.lower(): name for name in self.tag_names()}
        self.remove_tags(*(current[key] for key in current.keys() - wanted.keys()))
        self.add_tags(*(wanted[key] for key in wanted.keys() - current.keys()))

    def clear_tags(self) -> None:
        """Detach every tag."""
        self.tags.all().delete()
