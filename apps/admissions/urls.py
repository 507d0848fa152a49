from django.urls import path

from . import views

app_name = "admissions"

urlpatterns = [
    path("", views.application_list, name="application_list"),
    path("stats/", views.application_stats, name="application_stats"),
    path("<uuid:pk>/", views.application_detail, name="application_detail"),
    path("<uuid:pk>/status/", views.application_status, name="application_status"),
    path("<uuid:pk>/notes/", views.application_notes, name="application_notes"),
    path("<uuid:pk>/transitions/", views.application_transitions, name="application_transitions"),
]
