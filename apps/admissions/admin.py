from django.contrib import admin

from .models import Application, ApplicationNote, StatusChange


class StatusChangeInline(admin.TabularInline):
    model = StatusChange
    extra = 0
    can_delete = False
    readonly_fields = ("from_status", "to_status", "changed_at", "changed_by", "note")

    def has_add_permission(self, request, obj=None):
        return False


class ApplicationNoteInline(StatusChangeInline):
    model = ApplicationNote
    readonly_fields = ("content", "created_at", "created_by")


@admin.register(Application)
class ApplicationAdmin(admin.ModelAdmin):
    list_display = ("application_number", "student_name", "class_name", "status", "version", "created_at")
    list_filter = ("status", "class_name")
    search_fields = ("application_number", "student_name", "email", "father_name", "mother_name")
    ordering = ("-created_at",)
    # Creation, status moves and deletion go through the admission services.
    readonly_fields = ("application_number", "status", "version", "enrolled_student")
    inlines = [StatusChangeInline, ApplicationNoteInline]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(StatusChange)
class StatusChangeAdmin(admin.ModelAdmin):
    list_display = ("application", "from_status", "to_status", "changed_by", "changed_at")
    list_filter = ("to_status",)
    search_fields = ("application__application_number", "changed_by")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
