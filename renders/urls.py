from django.urls import path
from .views import RenderTriggerView, RenderJobCreateView, RenderJobDetailView

urlpatterns = [
    path("render", RenderTriggerView.as_view(), name="render_trigger"),
    path("jobs/", RenderJobCreateView.as_view(), name="render_job_create"),
    path("jobs/<uuid:job_id>/", RenderJobDetailView.as_view(), name="render_job_detail"),
]
