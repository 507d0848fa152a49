from django.contrib import admin

from .models import ClassCapacity


@admin.register(ClassCapacity)
class ClassCapacityAdmin(admin.ModelAdmin):
    list_display = ("class_name", "section", "total_seats", "filled_seats", "available_seats")
    list_filter = ("class_name",)
    search_fields = ("class_name", "section")
    ordering = ("class_name", "section")
