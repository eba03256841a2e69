"""
Tests for application wiring and lifecycle.
"""
import logging
import os
import shutil
import tempfile
import unittest
from unittest.mock import patch

from cvpn_pki_manager.app import PKIManagerApp
from cvpn_pki_manager.main import PKIManagerApplication, main
from cvpn_pki_manager.security.session_manager import AppRoleSessionProvider, TokenSessionProvider

CONFIG = """
[server]
port = 8181
log_mode = development

[vault]
address = http://vault:8200
{auth}

[aws]
client_vpn_endpoint_id = cvpn-endpoint-0123
region = eu-west-1

[template]
config_template_path = {template}

[auth]
github_org = {org}

[scheduler]
enable_crl_rotation = {rotation}
crl_rotation_time = 01:15
"""


class TestPKIManagerApplication(unittest.TestCase):

    def setUp(self):
        self.root = logging.getLogger()
        self.saved_handlers = self.root.handlers[:]
        self.saved_level = self.root.level
        self.temp_dir = tempfile.mkdtemp()
        self.template_path = os.path.join(self.temp_dir, "config.ovpn.tpl")
        with open(self.template_path, 'w') as f:
            f.write("{{ DNSName }}")
        self.config_path = os.path.join(self.temp_dir, "config.properties")
        self.apps = []

    def tearDown(self):
        for app in self.apps:
            app.shutdown()
        for handler in self.root.handlers[:]:
            self.root.removeHandler(handler)
        for handler in self.saved_handlers:
            self.root.addHandler(handler)
        self.root.setLevel(self.saved_level)
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write(self, auth="auth_token = s.token", org="", rotation="true"):
        with open(self.config_path, 'w') as f:
            f.write(CONFIG.format(auth=auth, template=self.template_path, org=org, rotation=rotation))

    def _application(self, **kwargs):
        app = PKIManagerApplication(config_path=self.config_path, install_signal_handlers=False, **kwargs)
        self.apps.append(app)
        return app

    def test_initialize_wires_services(self):
        self._write()
        app = self._application()

        self.assertTrue(app.initialize())

        self.assertTrue(app.is_running())
        self.assertIsInstance(app.session_provider, TokenSessionProvider)
        self.assertIsInstance(app.flask_app, PKIManagerApp)
        self.assertIs(app.issuer.crl_service, app.crl_service)
        self.assertEqual(app.gateway.region, "eu-west-1")
        self.assertTrue(app.scheduler.is_scheduler_running())
        self.assertEqual(self.root.level, logging.DEBUG)

        status = app.get_status()
        self.assertTrue(status['session_ready'])
        self.assertEqual(status['endpoint_id'], "cvpn-endpoint-0123")
        self.assertFalse(status['github_auth_enabled'])
        self.assertIsNotNone(status['next_crl_rotation'])

    def test_rotation_can_be_disabled(self):
        self._write(rotation="false")
        app = self._application()

        self.assertTrue(app.initialize())
        self.assertIsNone(app.scheduler)

    def test_overrides_apply(self):
        self._write()
        app = self._application(overrides={'server.port': 9999})

        self.assertTrue(app.initialize())
        self.assertEqual(app.config.port, 9999)

    @patch.object(AppRoleSessionProvider, 'start')
    def test_approle_provider_is_started(self, mock_start):
        self._write(auth="auth_approle_role_id = r\nauth_approle_secret_id = s")
        app = self._application()

        self.assertTrue(app.initialize())

        self.assertIsInstance(app.session_provider, AppRoleSessionProvider)
        mock_start.assert_called_once()

    def test_github_auth_enabled_by_org(self):
        self._write(org="example")
        app = self._application()

        self.assertTrue(app.initialize())
        self.assertTrue(app.get_status()['github_auth_enabled'])

    def test_invalid_config_fails(self):
        self._write(auth="")
        app = self._application()

        self.assertFalse(app.initialize())
        self.assertFalse(app.is_running())

    def test_missing_config_creates_default(self):
        app = self._application()

        self.assertFalse(app.initialize())
        self.assertTrue(os.path.exists(self.config_path))

    def test_shutdown_stops_scheduler(self):
        self._write()
        app = self._application()
        app.initialize()

        app.shutdown()

        self.assertFalse(app.is_running())
        self.assertFalse(app.scheduler.is_scheduler_running())

    def test_check_config_cli(self):
        self._write()

        with patch('sys.argv', ['cvpn-pki-manager', '--config', self.config_path, '--check-config']):
            with self.assertRaises(SystemExit) as cm:
                main()
        self.assertEqual(cm.exception.code, 0)

    def test_check_config_cli_failure(self):
        self._write(auth="")

        with patch('sys.argv', ['cvpn-pki-manager', '-c', self.config_path, '--check-config']):
            with self.assertRaises(SystemExit) as cm:
                main()
        self.assertEqual(cm.exception.code, 1)


if __name__ == '__main__':
    unittest.main()
