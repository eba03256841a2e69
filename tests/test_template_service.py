"""
Tests for the client config renderer.
"""
import os
import shutil
import tempfile
import unittest

from cvpn_pki_manager.exceptions import TemplateRenderFailure
from cvpn_pki_manager.services.template_service import ConfigRenderer


class TestConfigRenderer(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.template_path = os.path.join(self.temp_dir, "config.ovpn.tpl")

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write(self, content):
        with open(self.template_path, 'w') as f:
            f.write(content)

    def test_renders_all_placeholders(self):
        self._write("remote {{ DNSName }}\n{{ Username }}\n{{ CA }}\n{{ Certificate }}\n{{ PrivateKey }}\n")

        rendered = ConfigRenderer(self.template_path).render(
            dns_name="vpn.example.com", username="alice",
            ca="CA-PEM", certificate="CERT-PEM", private_key="KEY-PEM",
        )

        self.assertEqual(rendered, "remote vpn.example.com\nalice\nCA-PEM\nCERT-PEM\nKEY-PEM\n")

    def test_pem_content_is_not_escaped(self):
        self._write("{{ Certificate }}")

        rendered = ConfigRenderer(self.template_path).render("d", "u", "c", "<cert>&</cert>", "k")

        self.assertEqual(rendered, "<cert>&</cert>")

    def test_missing_template(self):
        with self.assertRaises(TemplateRenderFailure) as cm:
            ConfigRenderer(self.template_path).render("d", "u", "c", "x", "k")
        self.assertEqual(cm.exception.kind, "template_render_failure")

    def test_invalid_template_syntax(self):
        self._write("{{ DNSName ")

        with self.assertRaises(TemplateRenderFailure):
            ConfigRenderer(self.template_path).render("d", "u", "c", "x", "k")

    def test_unknown_placeholder_fails(self):
        self._write("{{ Port }}")

        with self.assertRaises(TemplateRenderFailure):
            ConfigRenderer(self.template_path).render("d", "u", "c", "x", "k")

    def test_bundled_template_renders(self):
        bundled = os.path.join(os.path.dirname(__file__), '..', 'templates', 'config.ovpn.tpl')

        rendered = ConfigRenderer(bundled).render("vpn.example.com", "alice", "CA", "CERT", "KEY")

        self.assertIn("remote vpn.example.com 443", rendered)
        self.assertIn("<key>\nKEY\n</key>", rendered)
        self.assertTrue(rendered.startswith("client\n"))

    def test_go_template_syntax_is_rejected(self):
        self._write("remote {{ .DNSName }} 443")

        with self.assertRaises(TemplateRenderFailure):
            ConfigRenderer(self.template_path).render("d", "u", "c", "x", "k")


if __name__ == '__main__':
    unittest.main()
