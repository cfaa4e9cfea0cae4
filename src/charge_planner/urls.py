from django.urls import path

from charge_planner import views

urlpatterns = [
    path("api/v1/health", views.health_view, name="health"),
    path("api/v1/trip-plan", views.trip_plan_view, name="trip-plan"),
    path("api/v1/stations/nearby", views.nearby_stations_view, name="nearby-stations"),
]
