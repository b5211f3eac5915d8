from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/", include("finance_app.api.urls")),
    path("api/simulation/", include("pricing.urls")),
]
