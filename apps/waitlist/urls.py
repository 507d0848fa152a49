from django.urls import path

from . import views

app_name = "waitlist"

urlpatterns = [
    path("waitlist/", views.waitlist_list, name="waitlist_list"),
]
