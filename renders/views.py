import logging

from django.db import DatabaseError, transaction
from rest_framework import status, views
from rest_framework.exceptions import ParseError, UnsupportedMediaType
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from .lifecycle import WorkerRuntime
from .models import RenderJob
from .serializers import (
    RenderJobCreateSerializer,
    RenderJobSerializer,
    RenderTriggerSerializer,
    flatten_errors,
)
from .tasks import outcome_payload, process_render_queue

logger = logging.getLogger(__name__)


class RenderTriggerView(views.APIView):
    """
    Runs the worker once and reports on the job it processed, if any.
    Meant to be hit by a scheduler; every response is a JSON envelope.

    `limit` is validated but only the oldest queued job is processed per
    call. An unreadable body counts as an empty one.
    """
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        try:
            data = request.data
        except (ParseError, UnsupportedMediaType) as e:
            logger.info("Ignoring unreadable /render body: %s", e.detail)
            data = {}

        ser = RenderTriggerSerializer(data=data)
        if not ser.is_valid():
            return Response({"ok": False, "error": flatten_errors(ser.errors)}, status=400)

        try:
            with WorkerRuntime() as manager:
                outcome = manager.run()
        except DatabaseError as e:
            logger.exception("Render worker could not reach the job store")
            return Response({"ok": False, "error": str(e)}, status=500)

        if outcome is None:
            return Response({"ok": True, "message": "no jobs"})

        code = status.HTTP_200_OK if outcome.ok else status.HTTP_500_INTERNAL_SERVER_ERROR
        return Response(outcome_payload(outcome), status=code)


class RenderJobCreateView(views.APIView):
    """
    Queues a render job after checking its params against the job type,
    then nudges the worker once the row is committed.
    """
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        ser = RenderJobCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        job = RenderJob.objects.create(
            job_type=ser.validated_data["job_type"],
            params=ser.validated_data["params"],
        )
        transaction.on_commit(lambda: process_render_queue.delay())
        return Response(RenderJobSerializer(job).data, status=status.HTTP_201_CREATED)


class RenderJobDetailView(views.APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request, job_id):
        try:
            job = RenderJob.objects.get(pk=job_id)
        except RenderJob.DoesNotExist:
            return Response({"detail": "Not found"}, status=404)
        return Response(RenderJobSerializer(job).data)
