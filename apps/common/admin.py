from django.contrib import admin

from .models import SequenceCounter


@admin.register(SequenceCounter)
class SequenceCounterAdmin(admin.ModelAdmin):
    list_display = ("prefix", "last_number")
    search_fields = ("prefix",)
    ordering = ("prefix",)
    readonly_fields = ("prefix", "last_number")
