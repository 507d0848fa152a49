from django.contrib import admin

from .models import ClassWaitlist, WaitlistEntry


@admin.register(WaitlistEntry)
class WaitlistEntryAdmin(admin.ModelAdmin):
    list_display = ("class_name", "position", "application", "status", "offer_expires_at")
    list_filter = ("class_name", "status")
    search_fields = ("application__application_number", "application__student_name")
    ordering = ("class_name", "position")

    # Positions are maintained by the waitlist services only.
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(ClassWaitlist)
class ClassWaitlistAdmin(admin.ModelAdmin):
    list_display = ("class_name",)
    search_fields = ("class_name",)
