from django.db import models, transaction


class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class SequenceCounter(models.Model):
    """Gap-free numbering per prefix (application and admission numbers)."""

    prefix = models.CharField(max_length=20, unique=True)
    last_number = models.PositiveIntegerField(default=0)

    @classmethod
    def next_value(cls, prefix: str) -> int:
        with transaction.atomic():
            counter, _ = cls.objects.select_for_update().get_or_create(prefix=prefix)
            counter.last_number += 1
            counter.save(update_fields=["last_number"])
            return counter.last_number

    @classmethod
    def next_code(cls, prefix: str, width: int = 4) -> str:
        return f"{prefix}{cls.next_value(prefix):0{width}d}"

    def __str__(self):
        return f"{self.prefix}-{self.last_number:04d}"
