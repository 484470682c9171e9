"""Tests for the kopf handler wiring."""

from __future__ import annotations

import asyncio
import logging
from unittest.mock import Mock, patch

import kopf
import pytest
from conftest import shoot_body
from kopf._core.engines import posting

from gardenlogin_controller import main
from gardenlogin_controller.handlers.configmap_validation import ConfigMapValidator
from gardenlogin_controller.models import Shoot
from gardenlogin_controller.utils.events import emit_kubeconfig_created


def config_map_body(data: dict) -> dict:
    return {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": {"name": "shoot-a.kubeconfig", "namespace": "garden-ns1"},
        "data": data,
    }


class TestValidateConfigMap:
    """Test cases for the validating webhook handler."""

    @pytest.fixture(autouse=True)
    def validator(self):
        with patch.object(main, "_validator", ConfigMapValidator(max_object_size=1024)):
            yield

    def test_allowed(self):
        main.validate_config_map(body=config_map_body({"kubeconfig": "cfg"}), operation="CREATE")

    def test_denied(self):
        with pytest.raises(kopf.AdmissionError) as exc_info:
            main.validate_config_map(body=config_map_body({}), operation="CREATE")

        assert exc_info.value.code == 403
        assert "data.kubeconfig" in str(exc_info.value)

    def test_update_requires_old_object(self):
        with pytest.raises(kopf.AdmissionError) as exc_info:
            main.validate_config_map(body=config_map_body({"kubeconfig": "cfg"}), operation="UPDATE", old=None)

        assert exc_info.value.code == 400

    def test_too_large(self):
        with pytest.raises(kopf.AdmissionError) as exc_info:
            main.validate_config_map(body=config_map_body({"kubeconfig": "x" * 2048}), operation="CREATE")

        assert exc_info.value.code == 400

    def test_non_ascii_size_counted_as_utf8(self):
        body = config_map_body({"kubeconfig": "cfg", "notes": "\u00e9" * 20000})

        with patch.object(main, "_validator", ConfigMapValidator(max_object_size=102400)):
            main.validate_config_map(body=body, operation="CREATE")

    def test_not_initialized(self):
        with patch.object(main, "_validator", None):
            with pytest.raises(kopf.AdmissionError):
                main.validate_config_map(body=config_map_body({}), operation="CREATE")


class TestEventForwarding:
    """Test cases for watch event forwarding."""

    def test_shoot_event(self):
        controller = Mock()
        body = shoot_body()

        with patch.object(main, "_controller", controller):
            main.handle_shoot_event(event={"type": "MODIFIED"}, body=body)

        controller.on_shoot_event.assert_called_once_with("MODIFIED", body)

    def test_ignored_before_startup(self):
        with patch.object(main, "_controller", None):
            main.handle_shoot_event(event={"type": "ADDED"}, body=shoot_body())


class TestConfigure:
    """Test cases for the startup handler."""

    @pytest.fixture
    def settings(self, monkeypatch):
        for name in ("CONTROLLER_CONFIG_FILE", "WEBHOOK_CERT_FILE", "WEBHOOK_KEY_FILE"):
            monkeypatch.delenv(name, raising=False)
        settings = kopf.OperatorSettings()
        with (
            patch.object(main, "_controller", None),
            patch.object(main, "_validator", None),
            patch.object(main, "_health_server", None),
            patch("gardenlogin_controller.main.get_k8s_clients", return_value=(Mock(), Mock())),
            patch("gardenlogin_controller.main.start_health_server"),
            patch("gardenlogin_controller.main.ShootController.start"),
        ):
            main.configure(settings=settings)
            yield settings

    def test_settings(self, settings):
        assert settings.execution.max_workers == 50
        assert settings.posting.level == logging.CRITICAL
        assert main._controller is not None
        assert main._validator.max_object_size == 102400

    def test_events_are_posted(self, settings):
        shoot = Shoot.from_body(shoot_body())

        async def emit() -> int:
            queue = asyncio.Queue()
            posting.settings_var.set(settings)
            posting.event_queue_var.set(queue)
            posting.event_queue_loop_var.set(asyncio.get_running_loop())
            emit_kubeconfig_created(shoot, "shoot-a.kubeconfig")
            return queue.qsize()

        assert asyncio.run(emit()) == 1
