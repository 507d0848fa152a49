from django.urls import path

from . import views

app_name = "students"

urlpatterns = [
    path("next-roll-number/", views.next_roll_number, name="next_roll_number"),
    path("<int:pk>/withdraw/", views.student_withdraw, name="student_withdraw"),
]
