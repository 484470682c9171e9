"""Tests for the kubeconfig ConfigMap admission webhook."""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from gardenlogin_controller.handlers.configmap_validation import (
    AdmissionDecodeError,
    AdmissionRequest,
    ConfigMapValidator,
    decode_config_map,
    handle_admission_review,
)


def raw_config_map(data: dict | None = None) -> bytes:
    body = {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": {
            "name": "shoot-a.kubeconfig",
            "namespace": "garden-ns1",
            "labels": {"operations.gardener.cloud/role": "kubeconfig"},
        },
    }
    if data is not None:
        body["data"] = data
    return json.dumps(body).encode("utf-8")


def request(object_raw: bytes, operation: str = "CREATE", old_object_raw: bytes | None = None) -> AdmissionRequest:
    return AdmissionRequest(
        uid="uid-1",
        operation=operation,
        object_raw=object_raw,
        old_object_raw=old_object_raw,
        namespace="garden-ns1",
        name="shoot-a.kubeconfig",
    )


@pytest.fixture
def validator():
    return ConfigMapValidator()


class TestConfigMapValidator:
    """Test cases for ConfigMapValidator.validate."""

    def test_allowed(self, validator):
        response = validator.validate(request(raw_config_map({"kubeconfig": "apiVersion: v1"})))

        assert response.allowed
        assert response.code == 200
        assert response.reason == "allowed to be admitted"
        assert response.uid == "uid-1"

    def test_missing_kubeconfig(self, validator):
        response = validator.validate(request(raw_config_map({"other": "x"})))

        assert not response.allowed
        assert response.code == 403
        assert "data.kubeconfig" in response.reason

    def test_empty_kubeconfig(self, validator):
        response = validator.validate(request(raw_config_map({"kubeconfig": ""})))

        assert not response.allowed
        assert response.reason == "data.kubeconfig: Required value: field is required"

    def test_no_data(self, validator):
        response = validator.validate(request(raw_config_map()))

        assert not response.allowed
        assert response.code == 403

    def test_too_large(self):
        validator = ConfigMapValidator(max_object_size=102400)

        response = validator.validate(request(b"x" * 102401))

        assert not response.allowed
        assert response.code == 400
        assert response.reason == "resource must not have more than 102400 bytes"

    def test_size_limit_inclusive(self):
        raw = raw_config_map({"kubeconfig": "cfg"})
        validator = ConfigMapValidator(max_object_size=len(raw))

        assert validator.validate(request(raw)).allowed

    def test_size_checked_before_decoding(self):
        validator = ConfigMapValidator(max_object_size=10)

        response = validator.validate(request(raw_config_map({"kubeconfig": "cfg"})))

        assert "must not have more than 10 bytes" in response.reason

    def test_non_ascii_counted_as_utf8(self, validator):
        review = {
            "request": {
                "uid": "uid-1",
                "operation": "CREATE",
                "object": json.loads(raw_config_map({"kubeconfig": "cfg", "notes": "\u00e9" * 20000})),
            },
        }

        result = handle_admission_review(validator, review)

        # 40000 bytes as UTF-8, 120000 with escaped unicode
        assert result["response"]["allowed"] is True

    def test_undecodable(self, validator):
        response = validator.validate(request(b"{not json"))

        assert not response.allowed
        assert response.code == 400

    def test_update_decodes_old_object(self, validator):
        new = raw_config_map({"kubeconfig": "cfg"})

        assert validator.validate(request(new, "UPDATE", old_object_raw=new)).allowed

        response = validator.validate(request(new, "UPDATE", old_object_raw=b""))
        assert not response.allowed
        assert response.code == 400
        assert response.reason == "there is no content to decode"

    def test_update_old_object_is_not_validated(self, validator):
        old = raw_config_map({"other": "x"})
        new = raw_config_map({"kubeconfig": "cfg"})

        assert validator.validate(request(new, "UPDATE", old_object_raw=old)).allowed

    def test_internal_error(self, validator):
        with patch(
            "gardenlogin_controller.handlers.configmap_validation.required_field_errors",
            side_effect=RuntimeError("boom"),
        ):
            response = validator.validate(request(raw_config_map({"kubeconfig": "cfg"})))

        assert not response.allowed
        assert response.code == 500
        assert response.reason == "boom"


class TestDecodeConfigMap:
    """Test cases for decode_config_map."""

    def test_decodes(self):
        config_map = decode_config_map(raw_config_map({"kubeconfig": "cfg"}))

        assert config_map.name == "shoot-a.kubeconfig"
        assert config_map.kubeconfig == "cfg"

    @pytest.mark.parametrize(
        "raw",
        [
            b"",
            None,
            b"[]",
            b'{"metadata": "x"}',
            b'{"data": {"kubeconfig": 1}}',
            b'{"data": []}',
            b"\xff\xfe",
        ],
    )
    def test_rejects(self, raw):
        with pytest.raises(AdmissionDecodeError):
            decode_config_map(raw)


class TestHandleAdmissionReview:
    """Test cases for the AdmissionReview wrapper."""

    def test_allowed(self, validator):
        review = {
            "apiVersion": "admission.k8s.io/v1",
            "kind": "AdmissionReview",
            "request": {
                "uid": "uid-1",
                "operation": "CREATE",
                "namespace": "garden-ns1",
                "name": "shoot-a.kubeconfig",
                "object": json.loads(raw_config_map({"kubeconfig": "cfg"})),
            },
        }

        result = handle_admission_review(validator, review)

        assert result["kind"] == "AdmissionReview"
        assert result["apiVersion"] == "admission.k8s.io/v1"
        assert result["response"] == {
            "uid": "uid-1",
            "allowed": True,
            "status": {"code": 200, "message": "allowed to be admitted"},
        }

    def test_denied(self, validator):
        review = {
            "request": {
                "uid": "uid-2",
                "operation": "UPDATE",
                "object": json.loads(raw_config_map({})),
                "oldObject": json.loads(raw_config_map({"kubeconfig": "cfg"})),
            },
        }

        result = handle_admission_review(validator, review)

        assert result["response"]["uid"] == "uid-2"
        assert result["response"]["allowed"] is False
        assert result["response"]["status"]["code"] == 403
