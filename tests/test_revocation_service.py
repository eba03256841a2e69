"""
Tests for the revocation policy.
"""
import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

from cvpn_pki_manager.exceptions import BackendUnavailable, PartialRevocationFailure
from cvpn_pki_manager.models.certificate import Certificate
from cvpn_pki_manager.services.revocation_service import RevocationPolicy


def make_cert(serial, days_ago, revoked=False):
    not_before = datetime.now(timezone.utc) - timedelta(days=days_ago)
    return Certificate(
        serial_number=serial,
        issuer_cn="cvpn-pki CA",
        subject_cn="alice@example.com",
        not_before=not_before,
        not_after=not_before + timedelta(days=365),
        revoked=revoked,
        certificate_pem="",
    )


class TestRevocationPolicy(unittest.TestCase):
    """Test cases for RevocationPolicy."""

    def setUp(self):
        self.backend = Mock()
        self.policy = RevocationPolicy(self.backend)
        self.certs = [make_cert("01", 3), make_cert("02", 2), make_cert("03", 1)]

    def test_keeps_newest_certificate(self):
        revoked = self.policy.apply("cvpn-pki", self.certs, revoke_all=False)

        self.assertEqual(revoked, ["01", "02"])
        self.backend.revoke_certificate.assert_any_call("cvpn-pki", "01")
        self.backend.revoke_certificate.assert_any_call("cvpn-pki", "02")
        self.assertEqual(self.backend.revoke_certificate.call_count, 2)

    def test_revoke_all_includes_newest(self):
        revoked = self.policy.apply("cvpn-pki", self.certs, revoke_all=True)

        self.assertEqual(revoked, ["01", "02", "03"])

    def test_already_revoked_certificates_are_skipped(self):
        certs = [make_cert("01", 3, revoked=True), make_cert("02", 2, revoked=True), make_cert("03", 1)]

        self.assertEqual(self.policy.apply("cvpn-pki", certs, revoke_all=False), [])
        self.backend.revoke_certificate.assert_not_called()

    def test_single_certificate_is_kept(self):
        self.assertEqual(self.policy.apply("cvpn-pki", [make_cert("01", 1)], revoke_all=False), [])
        self.backend.revoke_certificate.assert_not_called()

    def test_empty_list(self):
        self.assertEqual(self.policy.apply("cvpn-pki", [], revoke_all=True), [])

    def test_select_does_not_revoke(self):
        selected = self.policy.select(self.certs, revoke_all=False)

        self.assertEqual([c.serial_number for c in selected], ["01", "02"])
        self.backend.revoke_certificate.assert_not_called()

    def test_first_failure_propagates_unchanged(self):
        self.backend.revoke_certificate.side_effect = BackendUnavailable("vault down")

        with self.assertRaises(BackendUnavailable) as cm:
            self.policy.apply("cvpn-pki", self.certs, revoke_all=False)
        self.assertNotIsInstance(cm.exception, PartialRevocationFailure)

    def test_later_failure_reports_partial_revocation(self):
        error = BackendUnavailable("vault down")
        self.backend.revoke_certificate.side_effect = [None, error]

        with self.assertRaises(PartialRevocationFailure) as cm:
            self.policy.apply("cvpn-pki", self.certs, revoke_all=True)

        self.assertEqual(cm.exception.revoked, ["01"])
        self.assertEqual(cm.exception.failed_serial, "02")
        self.assertIs(cm.exception.__cause__, error)
        self.assertEqual(cm.exception.to_dict()['kind'], "partial_revocation")


if __name__ == '__main__':
    unittest.main()
