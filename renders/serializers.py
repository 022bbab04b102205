from django.conf import settings
from rest_framework import serializers

from . import errors
from .models import RenderJob

DEFAULT_CUT_SECONDS = 30.0


# -----------------------------------------------------
# Per job_type params (tagged by RenderJob.job_type)
# -----------------------------------------------------
class MediaItemParamsSerializer(serializers.Serializer):
    itemId = serializers.CharField()


class AutoCutParamsSerializer(MediaItemParamsSerializer):
    targetDurationSec = serializers.FloatField(required=False, allow_null=True, default=DEFAULT_CUT_SECONDS)

    def validate_targetDurationSec(self, value):
        if value is None:
            return DEFAULT_CUT_SECONDS
        if value <= 0:
            raise serializers.ValidationError("must be greater than 0")
        return value


class ObjectRemoveParamsSerializer(serializers.Serializer):
    src_url = serializers.URLField()
    mask_url = serializers.URLField()


PARAMS_SERIALIZERS = {
    RenderJob.JobType.EXPORT: MediaItemParamsSerializer,
    RenderJob.JobType.AUTO_COLOR: MediaItemParamsSerializer,
    RenderJob.JobType.AUTO_CUT: AutoCutParamsSerializer,
    RenderJob.JobType.SUBTITLES: MediaItemParamsSerializer,
    RenderJob.JobType.OBJECT_REMOVE: ObjectRemoveParamsSerializer,
}


def flatten_errors(detail) -> str:
    if isinstance(detail, dict):
        return "; ".join(f"{k}: {flatten_errors(v)}" for k, v in detail.items())
    if isinstance(detail, list):
        return " ".join(flatten_errors(v) for v in detail)
    return str(detail)


def validate_params(job_type: str, params) -> dict:
    """
    Validate a job's params against the schema for its job_type.
    Raises errors.ValidationError; performs no I/O.
    """
    serializer_class = PARAMS_SERIALIZERS.get(job_type)
    if serializer_class is None:
        raise errors.ValidationError(f"unknown job_type {job_type}")
    if not isinstance(params, dict):
        raise errors.ValidationError(f"invalid params for {job_type}: expected an object")

    ser = serializer_class(data=params)
    if not ser.is_valid():
        raise errors.ValidationError(f"invalid params for {job_type}: {flatten_errors(ser.errors)}")
    return dict(ser.validated_data)


# -----------------------------------------------------
# API
# -----------------------------------------------------
class RenderJobSerializer(serializers.ModelSerializer):
    class Meta:
        model = RenderJob
        fields = [
            "id",
            "job_type",
            "status",
            "progress",
            "params",
            "output_url",
            "logs",
            "created_at",
            "updated_at",
        ]


class RenderJobCreateSerializer(serializers.Serializer):
    job_type = serializers.ChoiceField(choices=RenderJob.JobType.choices)
    params = serializers.DictField(required=False, default=dict)

    def validate(self, attrs):
        try:
            validate_params(attrs["job_type"], attrs["params"])
        except errors.ValidationError as e:
            raise serializers.ValidationError({"params": str(e)})
        return attrs


class RenderTriggerSerializer(serializers.Serializer):
    limit = serializers.IntegerField(required=False, default=1, min_value=1)

    def validate_limit(self, value):
        if value > settings.RENDER_MAX_BATCH:
            raise serializers.ValidationError(f"Ensure this value is less than or equal to {settings.RENDER_MAX_BATCH}.")
        return value
