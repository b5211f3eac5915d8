from django.urls import path
from . import views

app_name = "pricing"
urlpatterns = [
    path("schedule", views.schedule_view, name="schedule"),
]
