"""Tests for base handler functionality."""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from gardenlogin_controller.handlers.base import BaseHandler
from gardenlogin_controller.models import ReconcileKey

KEY = ReconcileKey("garden-ns1", "shoot-a")


class TestBaseHandler:
    """Test cases for BaseHandler class."""

    def test_init(self):
        handler = BaseHandler(kind="Shoot")

        assert handler.kind == "Shoot"
        assert handler.logger is not None

    def test_log_info_is_structured(self, caplog):
        handler = BaseHandler(kind="Shoot")

        with caplog.at_level("INFO"):
            handler.log_info(KEY, "hello", event="created", reason="Reconciled", extra_field=1)

        record = json.loads(caplog.records[-1].getMessage())
        assert record == {
            "controller": "gardenlogin-controller-manager",
            "resource": "Shoot",
            "name": "shoot-a",
            "namespace": "garden-ns1",
            "event": "created",
            "reason": "Reconciled",
            "message": "hello",
            "extra_field": 1,
        }

    def test_log_error_includes_error(self, caplog):
        handler = BaseHandler(kind="Shoot")

        with caplog.at_level("ERROR"):
            handler.log_error(KEY, "failed", error=ValueError("bad"))

        record = json.loads(caplog.records[-1].getMessage())
        assert record["error"] == "bad"
        assert record["error_type"] == "ValueError"


class TestReconcileWithMetrics:
    """Test cases for reconcile_with_metrics."""

    @patch("gardenlogin_controller.handlers.base.metrics")
    def test_success(self, mock_metrics):
        handler = BaseHandler(kind="Shoot")

        assert handler.reconcile_with_metrics(KEY, lambda: "done") == "done"

        mock_metrics.reconcile_total.labels.assert_called_with(result="success")
        mock_metrics.reconcile_duration_seconds.observe.assert_called_once()

    @patch("gardenlogin_controller.handlers.base.metrics")
    def test_error_is_reraised(self, mock_metrics):
        handler = BaseHandler(kind="Shoot")

        def fail():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            handler.reconcile_with_metrics(KEY, fail)

        mock_metrics.error_total.labels.assert_called_with(error_type="RuntimeError")
        mock_metrics.reconcile_total.labels.assert_called_with(result="error")
        mock_metrics.reconcile_duration_seconds.observe.assert_called_once()
