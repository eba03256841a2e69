"""
AWS Client VPN endpoint access.
"""
import logging
from contextlib import contextmanager
from typing import Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from ..exceptions import GatewayAPIFailure


class ClientVPNGateway:
    """Reads the DNS name and manages the imported CRL of a Client VPN endpoint."""

    def __init__(self, region: Optional[str] = None, timeout: int = 30, client=None):
        """
        Args:
            region: AWS region, default chain when None
            timeout: Connect and read timeout for every call, in seconds
            client: Preconfigured EC2 client (tests)
        """
        self.logger = logging.getLogger(__name__)
        self.region = region
        self.timeout = timeout
        self._client = client

    @property
    def client(self):
        if self._client is None:
            config = BotoConfig(
                region_name=self.region,
                connect_timeout=self.timeout,
                read_timeout=self.timeout,
                retries={'max_attempts': 3, 'mode': 'standard'},
            )
            self._client = boto3.client('ec2', config=config)
        return self._client

    @contextmanager
    def _aws_call(self, operation: str):
        try:
            yield
        except (ClientError, BotoCoreError) as e:
            self.logger.error(f"error in AWS call to {operation}: {e}")
            raise GatewayAPIFailure(f"error in AWS call to {operation}: {e}") from e

    def get_dns_name(self, endpoint_id: str) -> str:
        """Return the endpoint DNS name without its leading wildcard label."""
        with self._aws_call("DescribeClientVpnEndpoints"):
            response = self.client.describe_client_vpn_endpoints(ClientVpnEndpointIds=[endpoint_id])

        endpoints = response.get('ClientVpnEndpoints') or []
        if not endpoints or not endpoints[0].get('DnsName'):
            raise GatewayAPIFailure(f"Client VPN endpoint {endpoint_id} not found")
        return strip_wildcard_label(endpoints[0]['DnsName'])

    def export_crl(self, endpoint_id: str) -> Optional[str]:
        """Return the CRL imported in the endpoint, or None if there is none."""
        with self._aws_call("ExportClientVpnClientCertificateRevocationList"):
            response = self.client.export_client_vpn_client_certificate_revocation_list(
                ClientVpnEndpointId=endpoint_id
            )
        return response.get('CertificateRevocationList')

    def import_crl(self, endpoint_id: str, crl_pem: str) -> None:
        """Replace the CRL imported in the endpoint."""
        with self._aws_call("ImportClientVpnClientCertificateRevocationList"):
            self.client.import_client_vpn_client_certificate_revocation_list(
                CertificateRevocationList=crl_pem,
                ClientVpnEndpointId=endpoint_id,
            )


def strip_wildcard_label(dns_name: str) -> str:
    """``*.cvpn-endpoint-1.prod.clientvpn.eu-west-1.amazonaws.com`` -> ``cvpn-endpoint-1...``"""
    if dns_name.startswith('*.'):
        return dns_name[2:]
    return dns_name
