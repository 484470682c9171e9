"""Validating admission for kubeconfig ConfigMaps."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from .. import metrics
from ..config import DEFAULT_MAX_OBJECT_SIZE
from ..constants import DATA_KEY_KUBECONFIG, KIND_CONFIG_MAP
from ..models import ConfigMap, ReconcileKey
from .base import BaseHandler

OPERATION_CREATE = "CREATE"
OPERATION_UPDATE = "UPDATE"

ADMISSION_REVIEW_API_VERSION = "admission.k8s.io/v1"

STATUS_OK = 200
STATUS_BAD_REQUEST = 400
STATUS_FORBIDDEN = 403
STATUS_INTERNAL_SERVER_ERROR = 500


@dataclass(frozen=True)
class AdmissionRequest:
    uid: str
    operation: str
    object_raw: bytes
    old_object_raw: bytes | None = None
    namespace: str = ""
    name: str = ""


@dataclass(frozen=True)
class AdmissionResponse:
    uid: str
    allowed: bool
    reason: str
    code: int = STATUS_OK

    def to_dict(self) -> dict[str, Any]:
        return {
            "uid": self.uid,
            "allowed": self.allowed,
            "status": {"code": self.code, "message": self.reason},
        }


class AdmissionDecodeError(ValueError):
    """An admission request object could not be decoded as a ConfigMap."""


def decode_config_map(raw: bytes | None) -> ConfigMap:
    """Decode raw JSON bytes of a ConfigMap.

    Raises:
        AdmissionDecodeError: If the bytes are not a ConfigMap object
    """
    if not raw:
        raise AdmissionDecodeError("there is no content to decode")
    try:
        body = json.loads(raw)
    except (UnicodeDecodeError, ValueError) as e:
        raise AdmissionDecodeError(f"couldn't decode object: {e}") from e
    if not isinstance(body, dict):
        raise AdmissionDecodeError("object is not a JSON object")

    metadata = body.get("metadata")
    if metadata is not None and not isinstance(metadata, dict):
        raise AdmissionDecodeError("metadata must be an object")
    data = body.get("data")
    if data is not None and (
        not isinstance(data, dict) or not all(isinstance(v, str) for v in data.values())
    ):
        raise AdmissionDecodeError("data must be a map of strings")
    return ConfigMap.from_body(body)


def required_field_errors(config_map: ConfigMap) -> list[str]:
    """Return a message for each required field that is unset."""
    errors = []
    if not config_map.data.get(DATA_KEY_KUBECONFIG):
        errors.append(f"data.{DATA_KEY_KUBECONFIG}: Required value: field is required")
    return errors


class ConfigMapValidator(BaseHandler):
    """Rejects kubeconfig ConfigMap writes that are too large or incomplete.

    Requests are handled synchronously without any API calls.
    """

    def __init__(self, max_object_size: int = DEFAULT_MAX_OBJECT_SIZE):
        super().__init__(KIND_CONFIG_MAP)
        self.max_object_size = max_object_size

    def validate(self, request: AdmissionRequest) -> AdmissionResponse:
        """Decide on an admission request. Never raises."""
        try:
            response = self._validate(request)
        except Exception as e:
            self.log_error(
                ReconcileKey(request.namespace, request.name),
                "admission request failed",
                error=e,
                reason="AdmissionError",
            )
            response = AdmissionResponse(request.uid, False, str(e), STATUS_INTERNAL_SERVER_ERROR)

        if response.allowed:
            metrics.admission_total.labels(result="allowed").inc()
        elif response.code == STATUS_FORBIDDEN:
            metrics.admission_total.labels(result="denied").inc()
        else:
            metrics.admission_total.labels(result="error").inc()
        return response

    def _validate(self, request: AdmissionRequest) -> AdmissionResponse:
        key = ReconcileKey(request.namespace, request.name)

        obj_size = len(request.object_raw)
        if obj_size > self.max_object_size:
            message = f"resource must not have more than {self.max_object_size} bytes"
            self.log_error(
                key,
                "maxObjectSize exceeded",
                reason="MaxObjectSizeExceeded",
                obj_size=obj_size,
                max_obj_size=self.max_object_size,
            )
            return AdmissionResponse(request.uid, False, message, STATUS_BAD_REQUEST)

        try:
            config_map = decode_config_map(request.object_raw)
            if request.operation != OPERATION_CREATE:
                decode_config_map(request.old_object_raw)
        except AdmissionDecodeError as e:
            return AdmissionResponse(request.uid, False, str(e), STATUS_BAD_REQUEST)

        errors = required_field_errors(config_map)
        if errors:
            reason = errors[0]
            self.log_info(key, "admission request denied", event="denied", reason="ValidationFailed", detail=reason)
            return AdmissionResponse(request.uid, False, reason, STATUS_FORBIDDEN)

        return AdmissionResponse(request.uid, True, "allowed to be admitted", STATUS_OK)


def raw_object(obj: Any) -> bytes | None:
    """Compact UTF-8 JSON encoding of an admission object, used for the size check."""
    if obj is None:
        return None
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def admission_request_from_review(review: dict[str, Any]) -> AdmissionRequest:
    """Build an AdmissionRequest from a decoded AdmissionReview."""
    request = review.get("request") or {}
    return AdmissionRequest(
        uid=request.get("uid") or "",
        operation=request.get("operation") or "",
        object_raw=raw_object(request.get("object")) or b"",
        old_object_raw=raw_object(request.get("oldObject")),
        namespace=request.get("namespace") or "",
        name=request.get("name") or "",
    )


def handle_admission_review(validator: ConfigMapValidator, review: dict[str, Any]) -> dict[str, Any]:
    """Answer an ``admission.k8s.io/v1`` AdmissionReview."""
    response = validator.validate(admission_request_from_review(review))
    return {
        "apiVersion": review.get("apiVersion") or ADMISSION_REVIEW_API_VERSION,
        "kind": "AdmissionReview",
        "response": response.to_dict(),
    }
