from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView


urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/admissions/", include("apps.waitlist.urls")),
    path("api/admissions/", include("apps.classes.urls")),
    path("api/admissions/", include("apps.admissions.urls")),
    path("api/students/", include("apps.enrollments.urls")),
    path("api/students/", include("apps.students.urls")),
    path("api/schema/", SpectacularAPIView.as_view(), name="schema"),
    path("api/docs/", SpectacularSwaggerView.as_view(url_name="schema"), name="docs"),
]
