from django.urls import path

from . import views

app_name = "classes"

urlpatterns = [
    path("class-capacity/", views.capacity_list, name="capacity_list"),
    path("class-capacity/summary/", views.capacity_summary, name="capacity_summary"),
]
