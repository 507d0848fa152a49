from django.contrib import admin

from .models import Student


@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = ("admission_number", "name", "class_name", "section", "roll_number", "status")
    list_filter = ("status", "class_name", "section", "blood_group")
    search_fields = ("admission_number", "name", "email", "father_name", "mother_name")
    ordering = ("class_name", "section", "roll_number")
    readonly_fields = ("admission_number", "admission_date", "withdrawn_at")
